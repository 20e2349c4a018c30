# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Exceptions and error formatting helpers for the credential monitor.

Probe failures are not exceptions: ProbeExecutor returns a classified
ProbeResult. Exceptions are reserved for setup problems and registry
failures, which are fatal to a single attempt but never to a cycle.
"""

from typing import Optional

from .types import ProbeOutcome, ProbeResult


class MonitorError(Exception):
    """Base class for credential monitor errors."""


class ProbeConfigurationError(MonitorError):
    """A probe cannot be built (missing endpoint, unsupported protocol shape)."""


class RegistryError(MonitorError):
    """The credential registry could not be read or written."""


class CredentialNotFoundError(RegistryError):
    """Raised when a credential or API key entry does not exist."""

    def __init__(self, credential_id: str, key_id: Optional[str] = None):
        self.credential_id = credential_id
        self.key_id = key_id
        if key_id:
            message = f"API key '{key_id}' not found on credential '{credential_id}'"
        else:
            message = f"Credential '{credential_id}' not found"
        super().__init__(message)


def mask_credential(secret: str, style: str = "short") -> str:
    """
    Mask a secret for logging.

    Args:
        secret: API key or token
        style: "short" keeps the last 4 characters, "full" keeps the first
            6 and last 4

    Returns:
        Masked representation safe for logs
    """
    if not secret:
        return "<empty>"
    if len(secret) <= 10:
        return "..." + secret[-2:]
    if style == "full":
        return f"{secret[:6]}...{secret[-4:]}"
    return "..." + secret[-4:]


def format_failure_reason(result: ProbeResult, max_length: int = 300) -> str:
    """
    Describe a failed probe for the recovery record and logs.

    Returns:
        "HTTP <status>: <message>" for rejections, "<ErrorType> (<message>)"
        for network errors, otherwise the error text
    """
    if result.outcome == ProbeOutcome.REJECTED and result.status_code is not None:
        reason = f"HTTP {result.status_code}: {result.error or 'request rejected'}"
    elif result.outcome == ProbeOutcome.NETWORK_ERROR and result.error_type:
        reason = f"{result.error_type} ({result.error or 'network error'})"
    else:
        reason = result.error or "unknown error"
    if len(reason) > max_length:
        reason = reason[: max_length - 3] + "..."
    return reason
