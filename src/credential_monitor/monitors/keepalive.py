# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
OAuth session keepalive monitor.

Periodically sends a minimal request through premium OAuth sessions that
have gone idle (no five-hour usage countdown running), so the session does
not go stale and the cached usage countdown starts again.

Cycle:
1. Load all credentials from the registry
2. Filter with KeepaliveEligibility (platform, scopes, health, tier, cooldown)
3. Skip credentials whose usage countdown is running; refresh stale usage
   once before deciding
4. Probe the rest one at a time
5. Remediate: refresh usage on success, mark rate limited (429) or
   overloaded (529) on failure; always record the cooldown
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..core.config import KEEPALIVE_MIN_SCAN_INTERVAL, KeepaliveConfig
from ..core.errors import ProbeConfigurationError
from ..core.interfaces import (
    CredentialRegistry,
    HeaderProvider,
    HealthMarker,
    TokenProvider,
    UsageTelemetry,
)
from ..core.types import Credential, ProbeResult
from ..probes.executor import ProbeExecutor, ProbeRequest
from ..probes.payloads import build_keepalive_headers, build_keepalive_payload
from ..usage.snapshot import is_usage_stale
from .eligibility import KeepaliveEligibility
from .scheduler import CooldownTracker, TickScheduler

lib_logger = logging.getLogger("credential_monitor")

RATE_LIMIT_RESET_HEADER = "anthropic-ratelimit-unified-reset"
STATUS_RATE_LIMITED = 429
STATUS_OVERLOADED = 529


def parse_reset_header(value: Optional[str]) -> Optional[int]:
    """Parse a rate-limit reset header (epoch seconds). Returns None if absent or invalid."""
    if not value:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class KeepaliveMonitor:
    """
    Keepalive engine for OAuth session credentials.

    Example:
        monitor = KeepaliveMonitor(registry, tokens, usage, health, headers, config)
        monitor.start()
        ...
        monitor.stop()
    """

    def __init__(
        self,
        registry: CredentialRegistry,
        tokens: TokenProvider,
        usage: UsageTelemetry,
        health: HealthMarker,
        headers: HeaderProvider,
        config: Optional[KeepaliveConfig] = None,
        executor: Optional[ProbeExecutor] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or KeepaliveConfig()
        self._registry = registry
        self._tokens = tokens
        self._usage = usage
        self._health = health
        self._headers = headers
        self._executor = executor or ProbeExecutor()
        self._clock = clock

        self.cooldowns = CooldownTracker(self.config.cooldown_seconds, clock=clock)
        self.eligibility = KeepaliveEligibility(self.config.platform, self.cooldowns)
        self.scheduler = TickScheduler(
            "Keepalive monitor",
            self.run_cycle,
            interval=self.config.scan_interval,
            min_interval=KEEPALIVE_MIN_SCAN_INTERVAL,
            warmup_delay=self.config.warmup_delay,
            enabled=self.config.enabled,
            on_stop=self.cooldowns.clear,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    async def run_once(self) -> bool:
        """Run one guarded cycle (skipped if a cycle is already running)."""
        return await self.scheduler.run_once()

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def run_cycle(self) -> None:
        now = self._clock()
        lib_logger.debug(f"Keepalive scanning credentials (model: {self.config.model})")

        records = await self._registry.list_all()
        if not records:
            lib_logger.debug("No credentials found for keepalive scan")
            return

        self.cooldowns.sweep(now)

        processed = 0
        triggered = 0
        for record in records:
            processed += 1
            credential = Credential.from_record(record)
            try:
                target = await self._evaluate(credential, record, now)
            except Exception as e:
                lib_logger.warning(
                    f"Keepalive evaluation failed for {credential.label}: {e}"
                )
                continue

            if target is None:
                continue

            triggered += 1
            await self._probe(target)

        if triggered > 0:
            lib_logger.info(
                f"Keepalive cycle completed: {triggered} credential(s) probed "
                f"(inspected {processed})"
            )
        else:
            lib_logger.debug(
                f"Keepalive cycle completed: no eligible credentials (inspected {processed})"
            )

    async def _evaluate(
        self, credential: Credential, record: Dict[str, Any], now: float
    ) -> Optional[Credential]:
        """
        Decide whether a credential needs a probe.

        Returns:
            The (possibly refreshed) credential to probe, or None to skip
        """
        eligibility = self.eligibility.evaluate(credential, now)
        if not eligibility.eligible:
            lib_logger.debug(
                f"Keepalive skip {credential.label}: {eligibility.failed_check}"
            )
            return None

        snapshot = self._usage.build_snapshot(record)
        if snapshot.has_countdown:
            return None

        if is_usage_stale(snapshot.updated_at, self.config.usage_max_age, now):
            refreshed = await self._refresh_usage(credential.id)
            if refreshed is not None:
                credential = Credential.from_record(refreshed)
                snapshot = self._usage.build_snapshot(refreshed)

        if snapshot.has_countdown:
            return None
        return credential

    async def _refresh_usage(self, credential_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch, persist and re-read usage for one credential.

        Returns:
            The latest record, or None if it no longer exists
        """
        try:
            usage_data = await self._usage.fetch_remote_usage(credential_id)
            if usage_data:
                await self._usage.persist_snapshot(credential_id, usage_data)
        except Exception as e:
            lib_logger.debug(f"Failed to refresh usage snapshot for {credential_id}: {e}")

        latest = await self._registry.get(credential_id)
        if not latest:
            return None
        latest.setdefault("id", credential_id)
        return latest

    # =========================================================================
    # PROBE AND REMEDIATION
    # =========================================================================

    async def _probe(self, credential: Credential) -> None:
        try:
            token = await self._tokens.get_valid_access_token(credential.id)
            if not token:
                lib_logger.warning(
                    f"Keepalive skipped for {credential.label}: access token unavailable"
                )
                return

            if not self.config.endpoint:
                raise ProbeConfigurationError(
                    "Keepalive endpoint is not configured (KEEPALIVE_ENDPOINT)"
                )

            request = ProbeRequest(
                url=self.config.endpoint,
                headers=build_keepalive_headers(
                    token, self.config, self._headers.get_headers(credential.id)
                ),
                payload=build_keepalive_payload(self.config),
                timeout=self.config.timeout,
                proxy=credential.proxy,
                label=credential.label,
            )
            result = await self._executor.send(request)

            if result.ok:
                lib_logger.info(f"Keepalive successful for {credential.label}")
                await self._refresh_usage(credential.id)
                return

            await self._remediate(credential, result)
        except ProbeConfigurationError as e:
            lib_logger.warning(f"Keepalive failed for {credential.label}: {e}")
        except Exception as e:
            lib_logger.warning(
                f"Keepalive probe failed for {credential.label}: {e}"
            )
        finally:
            self.cooldowns.record(credential.id)

    async def _remediate(self, credential: Credential, result: ProbeResult) -> None:
        status = result.status_code
        status_text = f" (status {status})" if status else ""
        lib_logger.warning(
            f"Keepalive failed for {credential.label}{status_text}: {result.error}"
        )

        if status == STATUS_RATE_LIMITED:
            reset = parse_reset_header(result.headers.get(RATE_LIMIT_RESET_HEADER))
            await self._health.mark_rate_limited(credential.id, None, reset)
        elif status == STATUS_OVERLOADED:
            await self._health.mark_overloaded(credential.id)
