# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Durable recovery records for failed API keys.

Each API key entry inside a static-key credential carries its own recovery
bookkeeping. All reads and writes go through the registry collaborator with
partial updates, so unrelated entry fields are never overwritten.

Entry lifecycle:
    active --(relay marks key failing)--> error
    error  --(selected, attempt persisted)--> probing
    probing --(text extracted)--> active (attempts reset to 0)
    probing --(empty response / failure)--> error (deadline unchanged)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.interfaces import CredentialRegistry
from ..core.types import (
    AuthMode,
    Credential,
    KeyStatus,
    RecoveryEntry,
    RecoveryTarget,
)
from ..utils.timestamps import to_iso

lib_logger = logging.getLogger("credential_monitor")


@dataclass
class RecoveryAttempt:
    """Bookkeeping for one in-flight recovery probe."""

    number: int
    started_at: float
    next_attempt_at: float
    deadline: float


def recovery_deadline(entry: RecoveryEntry, now: float, window: float) -> float:
    """
    Resolve an entry's recovery deadline.

    A persisted deadline always wins; otherwise it is derived from
    error_since (or now, on first touch) plus the recovery window.
    """
    if entry.recovery_expires_at is not None:
        return entry.recovery_expires_at
    error_since = entry.error_since if entry.error_since is not None else now
    return error_since + window


class RecoveryStateStore:
    """Selects due recovery entries and persists their state transitions."""

    def __init__(self, registry: CredentialRegistry):
        self._registry = registry

    # =========================================================================
    # SELECTION
    # =========================================================================

    async def _error_targets(self) -> List[RecoveryTarget]:
        targets = []
        for record in await self._registry.list_all():
            credential = Credential.from_record(record)
            if credential.auth_mode != AuthMode.API_KEY:
                continue
            for raw_entry in credential.api_keys:
                entry = RecoveryEntry.from_dict(raw_entry)
                if entry.status != KeyStatus.ERROR or not entry.id:
                    continue
                targets.append(
                    RecoveryTarget(
                        credential_id=credential.id,
                        credential_name=credential.name,
                        endpoint_type=credential.endpoint_type,
                        proxy=credential.proxy,
                        entry=entry,
                    )
                )
        return targets

    async def select_due(
        self, now: float, max_entries: int, max_age: float
    ) -> List[RecoveryTarget]:
        """
        Return at most max_entries entries due for a recovery probe.

        An entry is due when its status is error, its next attempt time has
        passed (or was never set) and its error episode is younger than
        max_age. Entries waiting longest come first.
        """
        due = []
        for target in await self._error_targets():
            entry = target.entry
            if entry.next_recovery_at is not None and entry.next_recovery_at > now:
                continue
            error_since = entry.error_since if entry.error_since is not None else now
            if now - error_since >= max_age:
                continue
            due.append(target)

        due.sort(key=lambda t: t.entry.next_recovery_at or t.entry.error_since or now)
        return due[:max_entries]

    async def list_expired(self, now: float, window: float) -> List[RecoveryTarget]:
        """Entries still in error whose recovery deadline has passed."""
        return [
            target
            for target in await self._error_targets()
            if recovery_deadline(target.entry, now, window) <= now
        ]

    async def list_errors(self) -> List[RecoveryTarget]:
        return await self._error_targets()

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def begin_attempt(
        self, target: RecoveryTarget, now: float, probe_interval: float, window: float
    ) -> RecoveryAttempt:
        """
        Persist the start of a recovery attempt (error -> probing).

        Fills in error_since and the deadline on first touch; afterwards the
        deadline is never re-derived.
        """
        entry = target.entry
        attempt = RecoveryAttempt(
            number=entry.recovery_attempts + 1,
            started_at=now,
            next_attempt_at=now + probe_interval,
            deadline=recovery_deadline(entry, now, window),
        )

        update: Dict[str, Any] = {
            "last_recovery_attempt_at": to_iso(now),
            "recovery_attempts": attempt.number,
            "next_recovery_at": to_iso(attempt.next_attempt_at),
        }
        if entry.error_since is None:
            update["error_since"] = to_iso(now)
        if entry.recovery_expires_at is None:
            update["recovery_expires_at"] = to_iso(attempt.deadline)

        await self._registry.update_recovery_entry(
            target.credential_id, entry.id, update
        )
        return attempt

    async def record_success(self, target: RecoveryTarget, attempt: RecoveryAttempt) -> None:
        """probing -> active: clear the error episode and reset attempts."""
        started = to_iso(attempt.started_at)
        await self._registry.update_recovery_entry(
            target.credential_id,
            target.entry.id,
            {
                "status": KeyStatus.ACTIVE,
                "error_message": "",
                "error_since": "",
                "recovery_expires_at": "",
                "next_recovery_at": "",
                "recovery_attempts": 0,
                "last_recovery_attempt_at": started,
                "last_recovery_result": f"Recovered at {started}",
            },
        )

    async def record_retry(
        self, target: RecoveryTarget, attempt: RecoveryAttempt, result_note: str
    ) -> None:
        """probing -> error: keep the schedule and deadline, note what happened."""
        update: Dict[str, Any] = {
            "last_recovery_result": result_note,
            "next_recovery_at": to_iso(attempt.next_attempt_at),
        }
        # A deadline that was already persisted stays byte-for-byte as stored
        if target.entry.recovery_expires_at is None:
            update["recovery_expires_at"] = to_iso(attempt.deadline)
        await self._registry.update_recovery_entry(
            target.credential_id, target.entry.id, update
        )

    async def mark_key_failed(
        self, credential_id: str, key_id: str, message: str, now: float
    ) -> None:
        """
        Start an error episode for a key (active -> error).

        Called by the relay path when a key starts failing. Clears any
        bookkeeping left over from a previous episode. A key already in
        error only gets its message updated; the running episode keeps its
        attempts, error_since and deadline.
        """
        record = await self._registry.get(credential_id)
        if record:
            for raw_entry in Credential.from_record(record).api_keys:
                if str(raw_entry.get("id")) != key_id:
                    continue
                if RecoveryEntry.from_dict(raw_entry).status == KeyStatus.ERROR:
                    await self._registry.update_recovery_entry(
                        credential_id, key_id, {"error_message": message}
                    )
                    lib_logger.debug(
                        f"API key {key_id} on {credential_id} already failing: {message}"
                    )
                    return
                break

        await self._registry.update_recovery_entry(
            credential_id,
            key_id,
            {
                "status": KeyStatus.ERROR,
                "error_message": message,
                "error_since": to_iso(now),
                "recovery_expires_at": "",
                "next_recovery_at": "",
                "recovery_attempts": 0,
            },
        )
        lib_logger.info(f"API key {key_id} on {credential_id} marked failing: {message}")

    async def reactivate_credential(self, credential_id: str) -> bool:
        """
        Best-effort re-enable of a credential after one of its keys recovered.

        Only undoes error-driven disablement (unschedulable or status
        "error"). A credential switched off on purpose (is_active false or
        another status) is left alone. Never raises.

        Returns:
            True if the credential was updated
        """
        try:
            record = await self._registry.get(credential_id)
            if not record:
                return False
            credential = Credential.from_record(record)
            if not credential.is_active:
                return False
            if credential.status not in ("", "active", KeyStatus.ERROR):
                return False
            if credential.schedulable and credential.status != KeyStatus.ERROR:
                return False

            await self._registry.update_fields(
                credential_id,
                {"schedulable": True, "status": "active", "error_message": ""},
            )
            lib_logger.info(
                f"Reactivated credential {credential.label} after successful key recovery"
            )
            return True
        except Exception as e:
            lib_logger.warning(f"Failed to reactivate credential {credential_id}: {e}")
            return False
