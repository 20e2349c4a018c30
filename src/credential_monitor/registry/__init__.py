# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .json_registry import (
    JsonCredentialRegistry,
    RegistryHealthMarker,
    RegistryTokenProvider,
)

__all__ = ["JsonCredentialRegistry", "RegistryHealthMarker", "RegistryTokenProvider"]
