# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Single-attempt probe execution.

ProbeExecutor sends one synthetic request and classifies what came back.
It never retries: the monitors' periodic ticks are the retry mechanism.
HTTP and network failures are returned as a ProbeResult, not raised.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

from ..core.types import ProbeOutcome, ProbeResult
from .proxy import build_transport

lib_logger = logging.getLogger("credential_monitor")

# Rejection messages longer than this are truncated
MAX_ERROR_LENGTH = 500


@dataclass
class ProbeRequest:
    """A fully built probe, ready to send."""

    url: str
    headers: Dict[str, str]
    payload: Dict[str, Any]
    timeout: float
    proxy: Any = None
    label: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


def _describe_rejection(response: httpx.Response) -> str:
    """Pull a readable error message out of a non-2xx response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    message: Optional[str] = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message") or error.get("type")
        elif isinstance(error, str):
            message = error
        if not message:
            message = body.get("message")
        if not message:
            message = json.dumps(body)
    if not message:
        message = response.text or response.reason_phrase or "request rejected"

    message = str(message)
    if len(message) > MAX_ERROR_LENGTH:
        message = message[: MAX_ERROR_LENGTH - 3] + "..."
    return message


class ProbeExecutor:
    """
    Sends probes and classifies the outcome.

    Classification:
    - 2xx with a JSON body -> SUCCESS
    - 2xx with anything else -> MALFORMED
    - non-2xx -> REJECTED (status code, headers, error message)
    - connect/read failure or timeout -> NETWORK_ERROR (no status code)

    Args:
        client: Optional shared client, used for probes without a proxy
        transport_factory: Builds a transport from a proxy descriptor
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        transport_factory: Callable[[Any], Optional[httpx.AsyncBaseTransport]] = build_transport,
    ):
        self._client = client
        self._transport_factory = transport_factory

    async def send(self, request: ProbeRequest) -> ProbeResult:
        transport = self._transport_factory(request.proxy) if request.proxy else None

        try:
            if transport is None and self._client is not None:
                response = await self._post(self._client, request)
            else:
                async with httpx.AsyncClient(transport=transport) as client:
                    response = await self._post(client, request)
        except httpx.HTTPError as e:
            # Timeouts, connection resets, proxy failures
            lib_logger.debug(
                f"Probe for {request.label or request.url} hit {type(e).__name__}: {e}"
            )
            return ProbeResult(
                outcome=ProbeOutcome.NETWORK_ERROR,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )

        return self._classify(response)

    @staticmethod
    async def _post(client: httpx.AsyncClient, request: ProbeRequest) -> httpx.Response:
        return await client.post(
            request.url,
            json=request.payload,
            headers=request.headers,
            timeout=request.timeout,
        )

    @staticmethod
    def _classify(response: httpx.Response) -> ProbeResult:
        headers = {k.lower(): v for k, v in response.headers.items()}

        if response.status_code >= 300 or response.status_code < 200:
            return ProbeResult(
                outcome=ProbeOutcome.REJECTED,
                status_code=response.status_code,
                headers=headers,
                error=_describe_rejection(response),
            )

        try:
            body = response.json()
        except ValueError:
            return ProbeResult(
                outcome=ProbeOutcome.MALFORMED,
                status_code=response.status_code,
                headers=headers,
                body=response.text,
                error="Response body is not valid JSON",
            )

        return ProbeResult(
            outcome=ProbeOutcome.SUCCESS,
            status_code=response.status_code,
            headers=headers,
            body=body,
        )
