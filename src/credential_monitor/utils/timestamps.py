# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Timestamp helpers.

Registry records store timestamps as ISO-8601 strings, but older records
(and some collaborators) write epoch seconds or epoch milliseconds. Everything
read from a record goes through parse_timestamp(), which never raises.
"""

import math
import time
from datetime import datetime, timezone
from typing import Any, Optional

# Anything above this is treated as epoch milliseconds (year ~5138 in seconds)
_EPOCH_MS_THRESHOLD = 100_000_000_000


def parse_timestamp(value: Any) -> Optional[float]:
    """
    Parse a stored timestamp into epoch seconds.

    Args:
        value: ISO-8601 string, epoch seconds/milliseconds (int, float or
            numeric string), or an empty value

    Returns:
        Epoch seconds, or None if the value is empty or unparsable
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                dt = datetime.fromisoformat(text)
            except ValueError:
                return None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt.timestamp()

    if not math.isfinite(number) or number <= 0:
        return None
    if number > _EPOCH_MS_THRESHOLD:
        number = number / 1000.0
    return number


def to_iso(epoch: float) -> str:
    """Format epoch seconds as an ISO-8601 UTC string with millisecond precision."""
    dt = datetime.fromtimestamp(epoch, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(time.time())
