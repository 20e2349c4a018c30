# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage snapshot derivation and freshness checks.

The cached usage payload stored on an OAuth credential looks like:
    {
        "five_hour": {"utilization": 37.0, "resets_at": "2026-10-17T15:00:00Z"},
        "seven_day": {"utilization": 12.0, "resets_at": "..."}
    }

Only the five-hour window matters here: while it is counting down the
session has been used recently and needs no keepalive.
"""

import time
from typing import Any, Dict, Optional

from ..core.types import UsageSnapshot, parse_json_field
from ..utils.timestamps import parse_timestamp

FIVE_HOUR_WINDOW = "five_hour"


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_usage_snapshot(
    record: Dict[str, Any], now: Optional[float] = None
) -> UsageSnapshot:
    """
    Derive the five-hour window snapshot from a credential record.

    Malformed or missing usage data yields an empty snapshot (no countdown).

    Args:
        record: Raw credential record
        now: Current epoch seconds (defaults to time.time())

    Returns:
        UsageSnapshot
    """
    now = time.time() if now is None else now
    updated_at = parse_timestamp(record.get("usage_updated_at"))

    usage = parse_json_field(record.get("usage_snapshot"))
    window = usage.get(FIVE_HOUR_WINDOW) if usage else None
    if not isinstance(window, dict):
        return UsageSnapshot(updated_at=updated_at)

    resets_at = parse_timestamp(window.get("resets_at"))
    remaining = None
    if resets_at is not None:
        remaining = max(0.0, resets_at - now)

    return UsageSnapshot(
        remaining_seconds=remaining,
        resets_at=resets_at,
        utilization=_as_float(window.get("utilization")),
        updated_at=updated_at,
    )


def is_usage_stale(
    updated_at: Optional[float], max_age: float, now: Optional[float] = None
) -> bool:
    """
    Check whether cached usage needs a refresh.

    A non-positive max_age disables refreshing. A missing or unparsable
    timestamp counts as stale.
    """
    if max_age <= 0:
        return False
    if updated_at is None:
        return True
    now = time.time() if now is None else now
    return now - updated_at > max_age
