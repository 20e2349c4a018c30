# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the credential monitor.

Registry records are plain dicts owned by the registry collaborator. The
dataclasses here are read-only views parsed tolerantly from those records:
malformed fields become "absent", they never raise.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..utils.timestamps import parse_timestamp

lib_logger = logging.getLogger("credential_monitor")


# =============================================================================
# TOLERANT FIELD PARSING
# =============================================================================


def parse_flag(value: Any, default: bool) -> bool:
    """
    Parse a boolean flag that may be stored as a string.

    Registry records written by other subsystems use "true"/"false" strings.
    Anything unrecognized falls back to the default.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    return default


def parse_json_field(value: Any) -> Optional[Dict[str, Any]]:
    """
    Parse a field that may hold a dict or a JSON-serialized dict.

    Returns:
        The dict, or None if the value is empty, not a dict, or not valid JSON
    """
    if not value:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError as e:
            lib_logger.debug(f"Ignoring unparsable JSON field: {e}")
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def parse_scopes(value: Any) -> List[str]:
    """Parse an OAuth scope set stored as a space-separated string or a list."""
    if isinstance(value, str):
        return [scope.strip() for scope in value.split() if scope.strip()]
    if isinstance(value, (list, tuple)):
        return [str(scope).strip() for scope in value if str(scope).strip()]
    return []


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# =============================================================================
# CREDENTIAL TYPES
# =============================================================================


class AuthMode:
    """Credential authentication modes."""

    OAUTH = "oauth"  # Session credential with scopes and a bearer token
    API_KEY = "api_key"  # Static API key(s)


@dataclass
class SubscriptionInfo:
    """Normalized subscription-tier metadata."""

    account_type: Optional[str] = None
    has_claude_max: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_premium(self) -> bool:
        return self.account_type == "claude_max" or self.has_claude_max


def parse_subscription_info(value: Any) -> Optional[SubscriptionInfo]:
    """
    Parse subscription metadata stored as a dict or a JSON string.

    Returns:
        SubscriptionInfo, or None when the metadata is absent or unparsable
    """
    data = parse_json_field(value)
    if data is None:
        return None
    account_type = data.get("accountType", data.get("account_type"))
    has_max = data.get("hasClaudeMax", data.get("has_claude_max"))
    return SubscriptionInfo(
        account_type=str(account_type) if account_type else None,
        has_claude_max=has_max is True,
        raw=data,
    )


@dataclass
class Credential:
    """
    Read-only view of a credential record.

    Health flags default to "healthy" when absent; only an explicit negative
    value marks impairment.
    """

    id: str
    name: str = ""
    platform: str = ""
    auth_mode: str = AuthMode.OAUTH
    scopes: List[str] = field(default_factory=list)
    is_active: bool = True
    schedulable: bool = True
    five_hour_auto_stopped: bool = False
    rate_limit_auto_stopped: bool = False
    rate_limit_status: str = ""
    rate_limited_at: Optional[str] = None
    status: str = ""
    subscription: Optional[SubscriptionInfo] = None
    usage_snapshot: Optional[Dict[str, Any]] = None
    usage_updated_at: Optional[float] = None
    proxy: Any = None
    endpoint_type: str = ""
    api_keys: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def label(self) -> str:
        return self.name or self.id

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Credential":
        """Build a view from a raw registry record."""
        api_keys = record.get("api_keys")
        return cls(
            id=str(record.get("id", "")),
            name=str(record.get("name") or ""),
            platform=str(record.get("platform") or record.get("account_type") or ""),
            auth_mode=str(record.get("auth_mode") or AuthMode.OAUTH),
            scopes=parse_scopes(record.get("scopes")),
            is_active=parse_flag(record.get("is_active"), True),
            schedulable=parse_flag(record.get("schedulable"), True),
            five_hour_auto_stopped=parse_flag(
                record.get("five_hour_auto_stopped"), False
            ),
            rate_limit_auto_stopped=parse_flag(
                record.get("rate_limit_auto_stopped"), False
            ),
            rate_limit_status=str(record.get("rate_limit_status") or ""),
            rate_limited_at=record.get("rate_limited_at") or None,
            status=str(record.get("status") or ""),
            subscription=parse_subscription_info(record.get("subscription_info")),
            usage_snapshot=parse_json_field(record.get("usage_snapshot")),
            usage_updated_at=parse_timestamp(record.get("usage_updated_at")),
            proxy=record.get("proxy") or None,
            endpoint_type=str(record.get("endpoint_type") or ""),
            api_keys=[k for k in api_keys if isinstance(k, dict)]
            if isinstance(api_keys, list)
            else [],
            raw=record,
        )


# =============================================================================
# USAGE TYPES
# =============================================================================


@dataclass
class UsageSnapshot:
    """
    Derived view of a credential's five-hour quota window.

    A positive remaining_seconds means the window is counting down, so the
    session has been used recently and is known to be alive.
    """

    remaining_seconds: Optional[float] = None
    resets_at: Optional[float] = None
    utilization: Optional[float] = None
    updated_at: Optional[float] = None

    @property
    def has_countdown(self) -> bool:
        return self.remaining_seconds is not None and self.remaining_seconds > 0


# =============================================================================
# RECOVERY TYPES
# =============================================================================


class KeyStatus:
    """Status values of an API key entry."""

    ACTIVE = "active"
    ERROR = "error"


@dataclass
class RecoveryEntry:
    """Per-API-key recovery record, stored inside the credential's api_keys list."""

    id: str
    key: str = ""
    status: str = KeyStatus.ACTIVE
    error_message: str = ""
    error_since: Optional[float] = None
    recovery_expires_at: Optional[float] = None
    recovery_attempts: int = 0
    next_recovery_at: Optional[float] = None
    last_recovery_attempt_at: Optional[float] = None
    last_recovery_result: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecoveryEntry":
        return cls(
            id=str(data.get("id", "")),
            key=str(data.get("key") or ""),
            status=str(data.get("status") or KeyStatus.ACTIVE),
            error_message=str(data.get("error_message") or ""),
            error_since=parse_timestamp(data.get("error_since")),
            recovery_expires_at=parse_timestamp(data.get("recovery_expires_at")),
            recovery_attempts=max(0, _as_int(data.get("recovery_attempts"))),
            next_recovery_at=parse_timestamp(data.get("next_recovery_at")),
            last_recovery_attempt_at=parse_timestamp(
                data.get("last_recovery_attempt_at")
            ),
            last_recovery_result=str(data.get("last_recovery_result") or ""),
        )


@dataclass
class RecoveryTarget:
    """An entry selected for a recovery probe, with its parent credential context."""

    credential_id: str
    credential_name: str
    endpoint_type: str
    proxy: Any
    entry: RecoveryEntry

    @property
    def label(self) -> str:
        return self.credential_name or self.credential_id


# =============================================================================
# PROBE TYPES
# =============================================================================


class ProbeOutcome:
    """
    Classified outcome of a single probe.

    Used by the monitors to pick a remediation.
    """

    SUCCESS = "success"  # 2xx with a JSON body
    MALFORMED = "malformed"  # 2xx but the body is not JSON
    REJECTED = "rejected"  # Non-2xx status
    NETWORK_ERROR = "network_error"  # Connect/read failure or timeout


@dataclass
class ProbeResult:
    """Result of ProbeExecutor.send()."""

    outcome: str
    status_code: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == ProbeOutcome.SUCCESS
