# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import sys
from pathlib import Path
from typing import Union


def get_data_dir() -> Path:
    """Get the data directory (next to the executable when frozen, else cwd)."""
    if getattr(sys, "frozen", False):
        base = Path(sys.executable).parent
    else:
        base = Path.cwd()
    return base / "data"


def get_data_file(name: Union[str, Path]) -> Path:
    """Resolve a file name inside the data directory. Absolute paths pass through."""
    path = Path(name)
    if path.is_absolute():
        return path
    return get_data_dir() / path
