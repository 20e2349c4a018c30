# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
OAuth usage telemetry client.

Fetches five-hour / seven-day window usage for OAuth session credentials and
caches it on the credential record.

API Details:
- Endpoint: GET https://api.anthropic.com/api/oauth/usage
- Auth: Bearer access token + anthropic-beta: oauth-2025-04-20
- Response: {"five_hour": {"utilization": float, "resets_at": str}, "seven_day": {...}}
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from ..core.interfaces import CredentialRegistry, TokenProvider
from ..core.types import UsageSnapshot
from ..probes.proxy import build_transport
from ..utils.timestamps import now_iso
from .snapshot import build_usage_snapshot

lib_logger = logging.getLogger("credential_monitor")

DEFAULT_USAGE_ENDPOINT = "https://api.anthropic.com/api/oauth/usage"


class OAuthUsageClient:
    """
    Usage telemetry collaborator backed by the provider's OAuth usage API.

    The cached payload is written to the record's usage_snapshot field with
    usage_updated_at set to the fetch time.
    """

    def __init__(
        self,
        registry: CredentialRegistry,
        tokens: TokenProvider,
        endpoint: str = DEFAULT_USAGE_ENDPOINT,
        beta_header: Optional[str] = "oauth-2025-04-20",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._registry = registry
        self._tokens = tokens
        self.endpoint = endpoint
        self.beta_header = beta_header
        self.timeout = timeout
        self._client = client
        self._clock = clock

    async def fetch_remote_usage(self, credential_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch raw usage data for a credential.

        Returns:
            The usage payload, or None if no token is available or the
            request fails
        """
        token = await self._tokens.get_valid_access_token(credential_id)
        if not token:
            lib_logger.debug(f"No access token for {credential_id}, skipping usage fetch")
            return None

        record = await self._registry.get(credential_id) or {}
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        if self.beta_header:
            headers["anthropic-beta"] = self.beta_header

        try:
            if self._client is not None:
                response = await self._client.get(
                    self.endpoint, headers=headers, timeout=self.timeout
                )
            else:
                transport = build_transport(record.get("proxy"))
                async with httpx.AsyncClient(transport=transport) as new_client:
                    response = await new_client.get(
                        self.endpoint, headers=headers, timeout=self.timeout
                    )

            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            lib_logger.warning(
                f"Failed to fetch usage for {credential_id}: HTTP {e.response.status_code}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            lib_logger.warning(
                f"Failed to fetch usage for {credential_id}: {type(e).__name__}: {e}"
            )
            return None

        if not isinstance(data, dict):
            lib_logger.warning(f"Unexpected usage payload for {credential_id}")
            return None
        return data

    def build_snapshot(self, record: Dict[str, Any]) -> UsageSnapshot:
        return build_usage_snapshot(record, now=self._clock())

    async def persist_snapshot(self, credential_id: str, raw: Dict[str, Any]) -> None:
        await self._registry.update_fields(
            credential_id,
            {"usage_snapshot": raw, "usage_updated_at": now_iso()},
        )
