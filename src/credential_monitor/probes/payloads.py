# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Probe request builders.

Every probe is the cheapest request the upstream accepts: a small fixed
output-token budget and a one-line prompt.

Two protocol shapes are supported for key recovery:
- "anthropic": chat-message envelope, POST {api_base}/a/v1/messages
- "openai": structured-response envelope, POST {api_base}/o/v1/responses
"""

import uuid
from typing import Any, Dict, Optional

from ..core.config import DEFAULT_PROBE_PROMPT, KeepaliveConfig, RecoveryConfig
from ..core.errors import ProbeConfigurationError

ENDPOINT_ANTHROPIC = "anthropic"
ENDPOINT_OPENAI = "openai"

RECOVERY_ENDPOINT_PATHS = {
    ENDPOINT_ANTHROPIC: "/a/v1/messages",
    ENDPOINT_OPENAI: "/o/v1/responses",
}

RECOVERY_USER_AGENT = "droid-key-recovery/1.0.0"


def normalize_endpoint_type(endpoint_type: Optional[str]) -> str:
    """Map a stored endpoint type onto a supported protocol shape."""
    if not endpoint_type:
        return ENDPOINT_ANTHROPIC
    normalized = str(endpoint_type).lower()
    if normalized in ("openai", "common"):
        return ENDPOINT_OPENAI
    return ENDPOINT_ANTHROPIC


# =============================================================================
# KEEPALIVE
# =============================================================================


def build_keepalive_payload(config: KeepaliveConfig) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": config.model,
        "max_tokens": config.max_tokens,
        "messages": [{"role": "user", "content": config.prompt}],
    }
    if config.include_system_prompt and config.system_prompt:
        payload["system"] = config.system_prompt
    return payload


def build_keepalive_headers(
    token: str, config: KeepaliveConfig, profile_headers: Dict[str, str]
) -> Dict[str, str]:
    """
    Merge client profile headers with the auth and protocol headers.

    Auth and protocol headers always win over the profile.
    """
    headers = dict(profile_headers)
    if config.beta_header and "anthropic-beta" not in headers:
        headers["anthropic-beta"] = config.beta_header
    headers.update(
        {
            "authorization": f"Bearer {token}",
            "content-type": "application/json",
            "accept": "application/json",
            "anthropic-version": config.api_version,
        }
    )
    return headers


# =============================================================================
# KEY RECOVERY
# =============================================================================


def build_recovery_url(endpoint_type: str, config: RecoveryConfig) -> str:
    if not config.api_base:
        raise ProbeConfigurationError(
            "Key recovery API base is not configured (KEY_RECOVERY_API_BASE)"
        )
    path = RECOVERY_ENDPOINT_PATHS.get(endpoint_type)
    if path is None:
        raise ProbeConfigurationError(f"Unsupported endpoint type '{endpoint_type}'")
    return f"{config.api_base.rstrip('/')}{path}"


def build_recovery_payload(endpoint_type: str, config: RecoveryConfig) -> Dict[str, Any]:
    user_content = [{"type": "text", "text": DEFAULT_PROBE_PROMPT}]

    if endpoint_type == ENDPOINT_OPENAI:
        return {
            "model": config.openai_model,
            "input": [{"role": "user", "content": user_content}],
            "instructions": config.prompt,
            "max_output_tokens": config.max_output_tokens,
            "stream": False,
        }

    return {
        "model": config.anthropic_model,
        "max_tokens": config.max_output_tokens,
        "messages": [{"role": "user", "content": user_content}],
        "system": [{"type": "text", "text": config.prompt}],
        "stream": False,
    }


def build_recovery_headers(api_key: str, endpoint_type: str) -> Dict[str, str]:
    headers = {
        "content-type": "application/json",
        "authorization": f"Bearer {api_key}",
        "user-agent": RECOVERY_USER_AGENT,
        "x-factory-client": "cli",
        "accept": "application/json",
        "x-session-id": str(uuid.uuid4()),
    }
    if endpoint_type == ENDPOINT_ANTHROPIC:
        headers["anthropic-version"] = "2023-06-01"
        headers["x-api-key"] = "placeholder"
        headers["x-api-provider"] = "anthropic"
    elif endpoint_type == ENDPOINT_OPENAI:
        headers["x-api-provider"] = "azure_openai"
    return headers
