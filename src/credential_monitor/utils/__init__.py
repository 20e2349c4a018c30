# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .paths import get_data_dir, get_data_file
from .timestamps import now_iso, parse_timestamp, to_iso

__all__ = ["get_data_dir", "get_data_file", "now_iso", "parse_timestamp", "to_iso"]
