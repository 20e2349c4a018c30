# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Keepalive eligibility predicates.

Checks run in a fixed order and stop at the first failure:
1. platform      - platform tag belongs to the monitored provider family
2. oauth_scopes  - session credential holding both profile and inference scopes
3. healthy       - no impairment flag set
4. premium_tier  - subscription metadata shows the premium tier
5. cooldown      - not acted on within the cooldown window
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..core.types import AuthMode, Credential
from .scheduler import CooldownTracker

PROFILE_SCOPE = "user:profile"
INFERENCE_SCOPE = "user:inference"


@dataclass
class Eligibility:
    """Outcome of an eligibility check."""

    eligible: bool
    failed_check: Optional[str] = None


def is_platform_match(credential: Credential, platform: str) -> bool:
    return platform.lower() in credential.platform.lower()


def has_session_scopes(credential: Credential) -> bool:
    if credential.auth_mode != AuthMode.OAUTH:
        return False
    scopes = set(credential.scopes)
    return PROFILE_SCOPE in scopes and INFERENCE_SCOPE in scopes


def is_healthy(credential: Credential) -> bool:
    if not credential.is_active or not credential.schedulable:
        return False
    if credential.five_hour_auto_stopped or credential.rate_limit_auto_stopped:
        return False
    if credential.rate_limit_status == "limited":
        return False
    if credential.rate_limited_at:
        return False
    if credential.status and credential.status != "active":
        return False
    return True


def is_premium_tier(credential: Credential) -> bool:
    return credential.subscription is not None and credential.subscription.is_premium


class KeepaliveEligibility:
    """Ordered predicate chain deciding whether a credential gets a keepalive probe."""

    def __init__(self, platform: str, cooldowns: CooldownTracker):
        self.platform = platform
        self._cooldowns = cooldowns
        self._checks: List[Tuple[str, Callable[[Credential, float], bool]]] = [
            ("platform", lambda c, now: is_platform_match(c, self.platform)),
            ("oauth_scopes", lambda c, now: has_session_scopes(c)),
            ("healthy", lambda c, now: is_healthy(c)),
            ("premium_tier", lambda c, now: is_premium_tier(c)),
            (
                "cooldown",
                lambda c, now: not self._cooldowns.is_cooling_down(c.id, now),
            ),
        ]

    def evaluate(self, credential: Credential, now: float) -> Eligibility:
        for name, check in self._checks:
            if not check(credential, now):
                return Eligibility(eligible=False, failed_check=name)
        return Eligibility(eligible=True)
