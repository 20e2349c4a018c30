# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Health monitoring and self-healing for pooled upstream AI credentials.

Two engines share one scheduling model:
- KeepaliveMonitor keeps idle OAuth sessions warm and their usage fresh
- KeyRecoveryMonitor retries failed API keys until they work again
"""

import logging

from .core.config import KeepaliveConfig, RecoveryConfig
from .monitors.keepalive import KeepaliveMonitor
from .monitors.key_recovery import KeyRecoveryMonitor, RecoveryOutcome
from .monitors.scheduler import CooldownTracker, TickScheduler
from .probes.executor import ProbeExecutor
from .probes.headers import ClientHeaderProfiles
from .registry.json_registry import (
    JsonCredentialRegistry,
    RegistryHealthMarker,
    RegistryTokenProvider,
)
from .usage.oauth_usage import OAuthUsageClient

__version__ = "0.1.0"

logging.getLogger("credential_monitor").addHandler(logging.NullHandler())

__all__ = [
    "ClientHeaderProfiles",
    "CooldownTracker",
    "JsonCredentialRegistry",
    "KeepaliveConfig",
    "KeepaliveMonitor",
    "KeyRecoveryMonitor",
    "OAuthUsageClient",
    "ProbeExecutor",
    "RecoveryConfig",
    "RecoveryOutcome",
    "RegistryHealthMarker",
    "RegistryTokenProvider",
    "TickScheduler",
]
