# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
JSON file credential registry.

File-backed implementation of the registry, token and health-marking
collaborators. The file is re-read on every operation so edits made by an
operator (or another process) are picked up; writes are atomic
(temp file + rename). Concurrent writers race with last-writer-wins.

File format:
    {
        "credentials": [
            {
                "id": "acct-1",
                "platform": "claude",
                "auth_mode": "oauth",
                "scopes": "user:profile user:inference",
                "access_token": "...",
                "token_expires_at": "2026-10-17T12:00:00Z",
                "api_keys": [{"id": "k1", "key": "...", "status": "error", ...}],
                ...
            }
        ]
    }
"""

import asyncio
import copy
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.errors import CredentialNotFoundError, RegistryError
from ..utils.timestamps import now_iso, parse_timestamp, to_iso

lib_logger = logging.getLogger("credential_monitor")

# Tokens expiring within this many seconds are treated as unusable
TOKEN_EXPIRY_MARGIN = 60


class JsonCredentialRegistry:
    """
    Credential registry stored in a single JSON file.

    All mutations go through a read-modify-write under an asyncio.Lock, so
    partial updates never clobber fields they do not name.
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        self._lock = asyncio.Lock()

    # =========================================================================
    # FILE ACCESS
    # =========================================================================

    def _load(self) -> Dict[str, Any]:
        if not self.file_path.exists():
            return {"credentials": []}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise RegistryError(f"Failed to read registry {self.file_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("credentials"), list):
            raise RegistryError(
                f"Registry {self.file_path} is missing a 'credentials' list"
            )
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)

            # Write atomically
            temp_path = self.file_path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_path.replace(self.file_path)
        except OSError as e:
            raise RegistryError(f"Failed to write registry {self.file_path}: {e}") from e

    @staticmethod
    def _find(data: Dict[str, Any], credential_id: str) -> Optional[Dict[str, Any]]:
        for record in data["credentials"]:
            if isinstance(record, dict) and str(record.get("id")) == credential_id:
                return record
        return None

    # =========================================================================
    # REGISTRY OPERATIONS
    # =========================================================================

    async def list_all(self) -> List[Dict[str, Any]]:
        async with self._lock:
            data = self._load()
        return [copy.deepcopy(r) for r in data["credentials"] if isinstance(r, dict)]

    async def get(self, credential_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            record = self._find(self._load(), credential_id)
        return copy.deepcopy(record) if record is not None else None

    async def add(self, record: Dict[str, Any]) -> None:
        """Insert or replace a whole record (used by tooling and tests)."""
        if not record.get("id"):
            raise RegistryError("Credential record requires an 'id'")
        async with self._lock:
            data = self._load()
            data["credentials"] = [
                r
                for r in data["credentials"]
                if not (isinstance(r, dict) and str(r.get("id")) == str(record["id"]))
            ]
            data["credentials"].append(copy.deepcopy(record))
            self._save(data)

    async def update_fields(self, credential_id: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            data = self._load()
            record = self._find(data, credential_id)
            if record is None:
                raise CredentialNotFoundError(credential_id)
            for name, value in fields.items():
                if name == "id":
                    continue
                record[name] = copy.deepcopy(value)
            self._save(data)

    async def update_recovery_entry(
        self, credential_id: str, key_id: str, fields: Dict[str, Any]
    ) -> None:
        async with self._lock:
            data = self._load()
            record = self._find(data, credential_id)
            if record is None:
                raise CredentialNotFoundError(credential_id)

            entry = None
            for candidate in record.get("api_keys") or []:
                if isinstance(candidate, dict) and str(candidate.get("id")) == key_id:
                    entry = candidate
                    break
            if entry is None:
                raise CredentialNotFoundError(credential_id, key_id)

            for name, value in fields.items():
                if name == "id":
                    continue
                entry[name] = copy.deepcopy(value)
            self._save(data)


class RegistryTokenProvider:
    """
    Serves bearer tokens stored on credential records.

    Token refresh is handled elsewhere; an expired or missing token is
    reported as unavailable.
    """

    def __init__(self, registry: JsonCredentialRegistry):
        self._registry = registry

    async def get_valid_access_token(self, credential_id: str) -> Optional[str]:
        record = await self._registry.get(credential_id)
        if not record:
            return None
        token = record.get("access_token")
        if not token:
            return None
        expires_at = parse_timestamp(record.get("token_expires_at"))
        if expires_at is not None and expires_at - TOKEN_EXPIRY_MARGIN <= time.time():
            lib_logger.debug(f"Access token for {credential_id} is expired")
            return None
        return str(token)


class RegistryHealthMarker:
    """Writes rate-limit and overload flags onto credential records."""

    def __init__(self, registry: JsonCredentialRegistry):
        self._registry = registry

    async def mark_rate_limited(
        self,
        credential_id: str,
        scope: Optional[str] = None,
        reset_epoch: Optional[int] = None,
    ) -> None:
        fields: Dict[str, Any] = {
            "rate_limit_status": "limited",
            "rate_limited_at": now_iso(),
            "rate_limit_scope": scope or "",
            "rate_limit_reset_at": to_iso(reset_epoch) if reset_epoch else "",
        }
        await self._registry.update_fields(credential_id, fields)
        reset_text = fields["rate_limit_reset_at"] or "unknown"
        lib_logger.info(
            f"Marked credential {credential_id} rate limited (reset: {reset_text})"
        )

    async def mark_overloaded(self, credential_id: str) -> None:
        await self._registry.update_fields(
            credential_id,
            {"overload_status": "overloaded", "overloaded_at": now_iso()},
        )
        lib_logger.info(f"Marked credential {credential_id} overloaded")
