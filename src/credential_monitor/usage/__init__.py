# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .oauth_usage import OAuthUsageClient
from .snapshot import build_usage_snapshot, is_usage_stale

__all__ = ["OAuthUsageClient", "build_usage_snapshot", "is_usage_stale"]
