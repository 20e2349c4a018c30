# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Collaborator interfaces used by the monitors.

The monitors never own credential data. They read and write it through
these protocols; registry/json_registry.py provides file-backed
implementations and tests substitute their own.
"""

from typing import Any, Dict, List, Optional, Protocol

from .types import UsageSnapshot


class CredentialRegistry(Protocol):
    """Persistent store of credential records."""

    async def list_all(self) -> List[Dict[str, Any]]:
        """Return copies of all credential records."""
        ...

    async def get(self, credential_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of one record, or None if it does not exist."""
        ...

    async def update_fields(self, credential_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into a record without touching other fields."""
        ...

    async def update_recovery_entry(
        self, credential_id: str, key_id: str, fields: Dict[str, Any]
    ) -> None:
        """Merge fields into one API key entry without touching other fields."""
        ...


class TokenProvider(Protocol):
    async def get_valid_access_token(self, credential_id: str) -> Optional[str]:
        """Return a usable bearer token, or None if none is available."""
        ...


class UsageTelemetry(Protocol):
    async def fetch_remote_usage(self, credential_id: str) -> Optional[Dict[str, Any]]:
        """Fetch raw usage data from the provider, or None if unavailable."""
        ...

    def build_snapshot(self, record: Dict[str, Any]) -> UsageSnapshot:
        """Derive a UsageSnapshot from a credential record."""
        ...

    async def persist_snapshot(self, credential_id: str, raw: Dict[str, Any]) -> None:
        """Store raw usage data on the credential record."""
        ...


class HealthMarker(Protocol):
    async def mark_rate_limited(
        self,
        credential_id: str,
        scope: Optional[str] = None,
        reset_epoch: Optional[int] = None,
    ) -> None:
        ...

    async def mark_overloaded(self, credential_id: str) -> None:
        ...


class HeaderProvider(Protocol):
    def get_headers(self, credential_id: str) -> Dict[str, str]:
        """Return client fingerprint headers for a credential."""
        ...
