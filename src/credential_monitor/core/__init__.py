# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .config import KeepaliveConfig, RecoveryConfig
from .errors import (
    CredentialNotFoundError,
    MonitorError,
    ProbeConfigurationError,
    RegistryError,
    format_failure_reason,
    mask_credential,
)
from .types import (
    AuthMode,
    Credential,
    KeyStatus,
    ProbeOutcome,
    ProbeResult,
    RecoveryEntry,
    RecoveryTarget,
    SubscriptionInfo,
    UsageSnapshot,
    parse_subscription_info,
)

__all__ = [
    "AuthMode",
    "Credential",
    "CredentialNotFoundError",
    "KeepaliveConfig",
    "KeyStatus",
    "MonitorError",
    "ProbeConfigurationError",
    "ProbeOutcome",
    "ProbeResult",
    "RecoveryConfig",
    "RecoveryEntry",
    "RecoveryTarget",
    "RegistryError",
    "SubscriptionInfo",
    "UsageSnapshot",
    "format_failure_reason",
    "mask_credential",
    "parse_subscription_info",
]
