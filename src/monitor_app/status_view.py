# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Rich tables describing credential health and key recovery state.

Reads the registry directly; nothing here talks to an upstream provider.
"""

import time
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from credential_monitor.core.types import Credential, KeyStatus, RecoveryEntry
from credential_monitor.monitors.recovery_state import recovery_deadline
from credential_monitor.usage.snapshot import build_usage_snapshot

# Credential status icons and colors: (icon, label, color)
STATUS_DISPLAY = {
    "active": (":white_check_mark:", "Active", "green"),
    "limited": (":stopwatch:", "Rate limited", "yellow"),
    "disabled": (":no_entry:", "Disabled", "red"),
    "error": (":warning:", "Error", "red"),
}


def format_duration(seconds: Optional[float]) -> str:
    """Format a duration for display (e.g., 3725 -> '1h 2m')."""
    if seconds is None or seconds <= 0:
        return "-"
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_relative(timestamp: Optional[float], now: float) -> str:
    """Format a timestamp relative to now ('in 2m', '5m ago')."""
    if timestamp is None:
        return "-"
    delta = timestamp - now
    if abs(delta) < 1:
        return "now"
    if delta > 0:
        return f"in {format_duration(delta)}"
    return f"{format_duration(-delta)} ago"


def credential_status(credential: Credential) -> str:
    if not credential.is_active or not credential.schedulable:
        return "disabled"
    if credential.rate_limit_status == "limited" or credential.rate_limited_at:
        return "limited"
    if credential.status and credential.status != "active":
        return "error"
    return "active"


def build_credentials_table(records: List[Dict[str, Any]], now: float) -> Table:
    table = Table(title="Credentials", expand=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Platform")
    table.add_column("Auth")
    table.add_column("Status")
    table.add_column("5h window", justify="right")
    table.add_column("Keys", justify="right")

    for record in records:
        credential = Credential.from_record(record)
        icon, label, color = STATUS_DISPLAY[credential_status(credential)]
        snapshot = build_usage_snapshot(record, now=now)
        failing = sum(
            1
            for raw in credential.api_keys
            if RecoveryEntry.from_dict(raw).status == KeyStatus.ERROR
        )
        keys = (
            f"{len(credential.api_keys) - failing}/{len(credential.api_keys)}"
            if credential.api_keys
            else "-"
        )
        table.add_row(
            credential.id,
            credential.name or "-",
            credential.platform or "-",
            credential.auth_mode,
            f"{icon} [{color}]{label}[/{color}]",
            format_duration(snapshot.remaining_seconds),
            keys,
        )
    return table


def build_recovery_table(
    records: List[Dict[str, Any]], now: float, window: float
) -> Optional[Table]:
    """Table of failing API keys, or None if every key is healthy."""
    table = Table(title="Key recovery", expand=False)
    table.add_column("Credential", style="cyan", no_wrap=True)
    table.add_column("Key")
    table.add_column("Attempts", justify="right")
    table.add_column("Error since")
    table.add_column("Next attempt")
    table.add_column("Deadline")
    table.add_column("Last result")

    rows = 0
    for record in records:
        credential = Credential.from_record(record)
        for raw in credential.api_keys:
            entry = RecoveryEntry.from_dict(raw)
            if entry.status != KeyStatus.ERROR:
                continue
            rows += 1
            deadline = recovery_deadline(entry, now, window)
            deadline_text = Text(format_relative(deadline, now))
            if deadline <= now:
                deadline_text = Text("expired", style="bold red")
            table.add_row(
                credential.label,
                entry.id,
                str(entry.recovery_attempts),
                format_relative(entry.error_since, now),
                format_relative(entry.next_recovery_at, now),
                deadline_text,
                entry.last_recovery_result or "-",
            )
    return table if rows else None


def show_status(
    console: Console, records: List[Dict[str, Any]], window: float
) -> None:
    now = time.time()
    if not records:
        console.print("[dim]No credentials configured yet.[/dim]")
        return
    console.print(build_credentials_table(records, now))
    recovery_table = build_recovery_table(records, now, window)
    if recovery_table is None:
        console.print("[green]All API keys healthy.[/green]")
    else:
        console.print(recovery_table)
