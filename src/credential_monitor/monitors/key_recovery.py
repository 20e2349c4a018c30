# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
API key recovery prober.

API keys that started failing are retried on a fixed backoff until a probe
returns real text, at which point the key is flipped back to active and its
parent credential re-enabled when it had been disabled for errors.

Each cycle selects at most max_probes due entries and probes them strictly
one at a time, so upstream load per cycle is bounded no matter how slow
each probe is.
"""

import logging
import time
from typing import Callable, List, Optional

from ..core.config import RECOVERY_MIN_SCAN_INTERVAL, RecoveryConfig
from ..core.errors import ProbeConfigurationError, format_failure_reason, mask_credential
from ..core.interfaces import CredentialRegistry
from ..core.types import ProbeOutcome, RecoveryTarget
from ..probes.executor import ProbeExecutor, ProbeRequest
from ..probes.extraction import extract_response_text
from ..probes.payloads import (
    build_recovery_headers,
    build_recovery_payload,
    build_recovery_url,
    normalize_endpoint_type,
)
from ..utils.timestamps import to_iso
from .recovery_state import RecoveryAttempt, RecoveryStateStore
from .scheduler import TickScheduler

lib_logger = logging.getLogger("credential_monitor")


class RecoveryOutcome:
    """Result of one recovery attempt."""

    RECOVERED = "recovered"
    INCONCLUSIVE = "inconclusive"  # Upstream answered but with no text
    FAILED = "failed"


class KeyRecoveryMonitor:
    """
    Recovery engine for failed static API keys.

    Example:
        monitor = KeyRecoveryMonitor(registry, RecoveryConfig.from_env())
        monitor.start()
    """

    def __init__(
        self,
        registry: CredentialRegistry,
        config: Optional[RecoveryConfig] = None,
        executor: Optional[ProbeExecutor] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or RecoveryConfig()
        self.state = RecoveryStateStore(registry)
        self._executor = executor or ProbeExecutor()
        self._clock = clock
        self.scheduler = TickScheduler(
            "Key recovery monitor",
            self.run_cycle,
            interval=self.config.scan_interval,
            min_interval=RECOVERY_MIN_SCAN_INTERVAL,
            enabled=self.config.enabled,
        )

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    async def run_once(self) -> bool:
        return await self.scheduler.run_once()

    async def run_cycle(self) -> None:
        targets = await self.state.select_due(
            now=self._clock(),
            max_entries=self.config.max_probes,
            max_age=self.config.recovery_window,
        )
        if not targets:
            return

        lib_logger.debug(f"Recovering {len(targets)} API key(s) this cycle")

        for target in targets:
            try:
                await self.attempt_recovery(target)
            except Exception as e:
                lib_logger.warning(
                    f"Recovery attempt for API key {target.entry.id} "
                    f"({target.label}) failed unexpectedly: {e}"
                )

    def _build_request(self, target: RecoveryTarget, endpoint_type: str) -> ProbeRequest:
        return ProbeRequest(
            url=build_recovery_url(endpoint_type, self.config),
            headers=build_recovery_headers(target.entry.key, endpoint_type),
            payload=build_recovery_payload(endpoint_type, self.config),
            timeout=self.config.effective_timeout,
            proxy=target.proxy,
            label=f"{target.label}/{mask_credential(target.entry.key)}",
        )

    async def attempt_recovery(self, target: RecoveryTarget) -> str:
        """
        Probe one failed key and persist the outcome.

        Returns:
            A RecoveryOutcome value
        """
        endpoint_type = normalize_endpoint_type(target.endpoint_type)
        attempt = await self.state.begin_attempt(
            target,
            now=self._clock(),
            probe_interval=self.config.probe_interval,
            window=self.config.recovery_window,
        )
        key_id = target.entry.id

        try:
            request = self._build_request(target, endpoint_type)
        except ProbeConfigurationError as e:
            await self.state.record_retry(target, attempt, f"Failed: {e}")
            lib_logger.warning(f"API key {key_id} recovery probe not sent: {e}")
            return RecoveryOutcome.FAILED

        result = await self._executor.send(request)

        if result.outcome in (ProbeOutcome.SUCCESS, ProbeOutcome.MALFORMED):
            text = extract_response_text(result.body) if result.ok else ""
            if text:
                await self.state.record_success(target, attempt)
                await self.state.reactivate_credential(target.credential_id)
                lib_logger.info(
                    f"API key {key_id} recovered for {target.label} ({endpoint_type})"
                )
                return RecoveryOutcome.RECOVERED

            await self.state.record_retry(
                target, attempt, f"Empty response at {to_iso(attempt.started_at)}"
            )
            lib_logger.warning(
                f"API key {key_id} recovery attempt {attempt.number} returned "
                f"empty response ({target.label})"
            )
            return RecoveryOutcome.INCONCLUSIVE

        reason = format_failure_reason(result)
        await self.state.record_retry(target, attempt, f"Failed: {reason}")
        lib_logger.warning(
            f"API key {key_id} recovery attempt {attempt.number} failed "
            f"({target.label}): {reason}"
        )
        return RecoveryOutcome.FAILED

    async def expired_entries(self) -> List[RecoveryTarget]:
        """Entries still failing past their recovery deadline, for operator review."""
        return await self.state.list_expired(self._clock(), self.config.recovery_window)
