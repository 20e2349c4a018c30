# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Monitor configuration loaded from environment variables.

The CLI calls load_dotenv() before building these, so values can live in a
.env file. Invalid numbers log a warning and fall back to the default.

Keepalive:
    KEEPALIVE_ENABLED, KEEPALIVE_SCAN_INTERVAL, KEEPALIVE_WARMUP_DELAY,
    KEEPALIVE_MODEL, KEEPALIVE_MAX_TOKENS, KEEPALIVE_PROMPT,
    KEEPALIVE_INCLUDE_SYSTEM_PROMPT, KEEPALIVE_SYSTEM_PROMPT,
    KEEPALIVE_COOLDOWN_MINUTES, KEEPALIVE_USAGE_MAX_AGE, KEEPALIVE_TIMEOUT,
    KEEPALIVE_ENDPOINT, KEEPALIVE_USAGE_ENDPOINT, KEEPALIVE_API_VERSION,
    KEEPALIVE_BETA_HEADER, KEEPALIVE_PLATFORM

Key recovery:
    KEY_RECOVERY_ENABLED, KEY_RECOVERY_SCAN_INTERVAL, KEY_RECOVERY_PROBE_INTERVAL,
    KEY_RECOVERY_WINDOW, KEY_RECOVERY_MAX_PROBES, KEY_RECOVERY_PROMPT,
    KEY_RECOVERY_ANTHROPIC_MODEL, KEY_RECOVERY_OPENAI_MODEL,
    KEY_RECOVERY_TIMEOUT, KEY_RECOVERY_API_BASE
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import Optional

lib_logger = logging.getLogger("credential_monitor")

# Scan interval floors, to avoid hammering the registry and upstream
KEEPALIVE_MIN_SCAN_INTERVAL = 15.0
RECOVERY_MIN_SCAN_INTERVAL = 5.0

# Recovery probe timeout is clamped to this range (seconds)
RECOVERY_TIMEOUT_FLOOR = 5.0
RECOVERY_TIMEOUT_CEILING = 60.0

DEFAULT_PROBE_PROMPT = 'say word "hello"'


def _env_float(name: str, default: float) -> float:
    """Parse a number from an environment variable with fallback to default."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None or not math.isfinite(value):
        lib_logger.warning(f"Invalid {name} value '{raw}', using default {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable with fallback to default."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name} value '{raw}', using default {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


@dataclass(frozen=True)
class KeepaliveConfig:
    """Configuration for the OAuth session keepalive monitor."""

    enabled: bool = False
    scan_interval: float = 60.0
    warmup_delay: float = 5.0
    platform: str = "claude"
    model: str = "claude-3-haiku-20240307"
    max_tokens: int = 32
    prompt: str = DEFAULT_PROBE_PROMPT
    include_system_prompt: bool = True
    system_prompt: str = (
        "You are performing an availability check. Reply briefly that you are online."
    )
    cooldown_minutes: int = 10
    usage_max_age: float = 120.0
    timeout: float = 15.0
    endpoint: Optional[str] = "https://api.anthropic.com/v1/messages"
    usage_endpoint: str = "https://api.anthropic.com/api/oauth/usage"
    api_version: str = "2023-06-01"
    beta_header: Optional[str] = "oauth-2025-04-20"

    @property
    def cooldown_seconds(self) -> float:
        return max(self.cooldown_minutes, 0) * 60.0

    @property
    def effective_scan_interval(self) -> float:
        return max(self.scan_interval, KEEPALIVE_MIN_SCAN_INTERVAL)

    @classmethod
    def from_env(cls) -> "KeepaliveConfig":
        defaults = cls()
        return cls(
            enabled=_env_bool("KEEPALIVE_ENABLED", defaults.enabled),
            scan_interval=_env_float("KEEPALIVE_SCAN_INTERVAL", defaults.scan_interval),
            warmup_delay=_env_float("KEEPALIVE_WARMUP_DELAY", defaults.warmup_delay),
            platform=_env_str("KEEPALIVE_PLATFORM", defaults.platform),
            model=_env_str("KEEPALIVE_MODEL", defaults.model),
            max_tokens=_env_int("KEEPALIVE_MAX_TOKENS", defaults.max_tokens),
            prompt=_env_str("KEEPALIVE_PROMPT", defaults.prompt),
            include_system_prompt=_env_bool(
                "KEEPALIVE_INCLUDE_SYSTEM_PROMPT", defaults.include_system_prompt
            ),
            system_prompt=_env_str("KEEPALIVE_SYSTEM_PROMPT", defaults.system_prompt),
            cooldown_minutes=_env_int(
                "KEEPALIVE_COOLDOWN_MINUTES", defaults.cooldown_minutes
            ),
            usage_max_age=_env_float("KEEPALIVE_USAGE_MAX_AGE", defaults.usage_max_age),
            timeout=_env_float("KEEPALIVE_TIMEOUT", defaults.timeout),
            endpoint=_env_str("KEEPALIVE_ENDPOINT", defaults.endpoint),
            usage_endpoint=_env_str("KEEPALIVE_USAGE_ENDPOINT", defaults.usage_endpoint),
            api_version=_env_str("KEEPALIVE_API_VERSION", defaults.api_version),
            beta_header=_env_str("KEEPALIVE_BETA_HEADER", defaults.beta_header),
        )


@dataclass(frozen=True)
class RecoveryConfig:
    """Configuration for the API key recovery prober."""

    enabled: bool = True
    scan_interval: float = 30.0
    probe_interval: float = 120.0
    recovery_window: float = 86400.0
    max_probes: int = 3
    prompt: str = 'Please say the single word "hello" to confirm availability.'
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_model: str = "gpt-5-2025-08-07"
    max_output_tokens: int = 64
    timeout: float = 60.0
    api_base: Optional[str] = "https://app.factory.ai/api/llm"

    @property
    def effective_scan_interval(self) -> float:
        return max(self.scan_interval, RECOVERY_MIN_SCAN_INTERVAL)

    @property
    def effective_timeout(self) -> float:
        return max(min(self.timeout, RECOVERY_TIMEOUT_CEILING), RECOVERY_TIMEOUT_FLOOR)

    @classmethod
    def from_env(cls) -> "RecoveryConfig":
        defaults = cls()
        return cls(
            enabled=_env_bool("KEY_RECOVERY_ENABLED", defaults.enabled),
            scan_interval=_env_float("KEY_RECOVERY_SCAN_INTERVAL", defaults.scan_interval),
            probe_interval=_env_float(
                "KEY_RECOVERY_PROBE_INTERVAL", defaults.probe_interval
            ),
            recovery_window=_env_float("KEY_RECOVERY_WINDOW", defaults.recovery_window),
            max_probes=max(1, _env_int("KEY_RECOVERY_MAX_PROBES", defaults.max_probes)),
            prompt=_env_str("KEY_RECOVERY_PROMPT", defaults.prompt),
            anthropic_model=_env_str(
                "KEY_RECOVERY_ANTHROPIC_MODEL", defaults.anthropic_model
            ),
            openai_model=_env_str("KEY_RECOVERY_OPENAI_MODEL", defaults.openai_model),
            timeout=_env_float("KEY_RECOVERY_TIMEOUT", defaults.timeout),
            api_base=_env_str("KEY_RECOVERY_API_BASE", defaults.api_base),
        )
