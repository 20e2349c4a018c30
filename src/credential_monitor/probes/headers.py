# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Client fingerprint headers for keepalive probes.

Each credential is bound to one header profile so its probes look like the
same CLI client on every cycle. Bindings live in memory; a restart may bind
a different profile.
"""

import copy
import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

lib_logger = logging.getLogger("credential_monitor")


# =============================================================================
# PROFILE CONSTANTS
# =============================================================================

CLI_USER_AGENT = "claude-cli/2.0.19 (external, cli)"
CLI_BETA_FEATURES = (
    "oauth-2025-04-20,interleaved-thinking-2025-05-14,"
    "fine-grained-tool-streaming-2025-05-14"
)


@dataclass(frozen=True)
class HeaderProfile:
    """A named set of client headers."""

    id: str
    headers: Dict[str, str]


DEFAULT_PROFILE = HeaderProfile(
    id="mac-arm64-node20",
    headers={
        "accept": "application/json",
        "x-stainless-retry-count": "0",
        "x-stainless-timeout": "600",
        "x-stainless-lang": "js",
        "x-stainless-package-version": "0.60.0",
        "x-stainless-os": "MacOS",
        "x-stainless-arch": "arm64",
        "x-stainless-runtime": "node",
        "x-stainless-runtime-version": "v20.18.1",
        "anthropic-dangerous-direct-browser-access": "true",
        "x-app": "cli",
        "user-agent": CLI_USER_AGENT,
        "anthropic-beta": CLI_BETA_FEATURES,
        "accept-language": "*",
        "sec-fetch-mode": "cors",
    },
)


class ClientHeaderProfiles:
    """
    Assigns a sticky header profile to each credential.

    Usage:
        profiles = ClientHeaderProfiles()
        headers = profiles.get_headers("acct-1")
    """

    def __init__(
        self,
        profiles: Optional[List[HeaderProfile]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._profiles = list(profiles) if profiles else [DEFAULT_PROFILE]
        self._rng = rng or random.Random()
        self._assignments: Dict[str, HeaderProfile] = {}

    def _pick_profile(self) -> HeaderProfile:
        return self._rng.choice(self._profiles)

    def get_profile(self, credential_id: str) -> HeaderProfile:
        profile = self._assignments.get(credential_id)
        if profile is None:
            profile = self._pick_profile()
            self._assignments[credential_id] = profile
            lib_logger.debug(
                f"Bound header profile '{profile.id}' to credential {credential_id}"
            )
        return profile

    def get_headers(self, credential_id: str) -> Dict[str, str]:
        """Return a copy of the credential's profile headers."""
        return copy.deepcopy(self.get_profile(credential_id).headers)
