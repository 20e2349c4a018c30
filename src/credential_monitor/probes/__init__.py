# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .executor import ProbeExecutor, ProbeRequest
from .extraction import TEXT_MATCHERS, extract_response_text, find_response_text
from .headers import ClientHeaderProfiles, HeaderProfile
from .proxy import build_transport, proxy_url_from_descriptor

__all__ = [
    "ClientHeaderProfiles",
    "HeaderProfile",
    "ProbeExecutor",
    "ProbeRequest",
    "TEXT_MATCHERS",
    "build_transport",
    "extract_response_text",
    "find_response_text",
    "proxy_url_from_descriptor",
]
