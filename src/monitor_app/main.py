# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Command-line entry point for the credential monitors.

Commands:
    run          Start the keepalive and key recovery monitors
    status       Show credential health and failing API keys
    mark-failed  Start a recovery episode for an API key
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from credential_monitor import (
    ClientHeaderProfiles,
    JsonCredentialRegistry,
    KeepaliveConfig,
    KeepaliveMonitor,
    KeyRecoveryMonitor,
    OAuthUsageClient,
    RecoveryConfig,
    RegistryHealthMarker,
    RegistryTokenProvider,
)
from credential_monitor.core.errors import MonitorError
from credential_monitor.monitors.recovery_state import RecoveryStateStore
from credential_monitor.utils.paths import get_data_file

from .status_view import show_status

console = Console()

DEFAULT_REGISTRY_FILE = "credentials.json"


def setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_registry_path(override: Optional[str]) -> Path:
    return get_data_file(
        override or os.environ.get("CREDENTIAL_REGISTRY_FILE", DEFAULT_REGISTRY_FILE)
    )


def build_monitors(
    registry: JsonCredentialRegistry,
    keepalive_config: KeepaliveConfig,
    recovery_config: RecoveryConfig,
    clock: Callable[[], float] = time.time,
) -> Tuple[KeepaliveMonitor, KeyRecoveryMonitor]:
    tokens = RegistryTokenProvider(registry)
    usage = OAuthUsageClient(
        registry,
        tokens,
        endpoint=keepalive_config.usage_endpoint,
        beta_header=keepalive_config.beta_header,
        timeout=keepalive_config.timeout,
        clock=clock,
    )
    keepalive = KeepaliveMonitor(
        registry=registry,
        tokens=tokens,
        usage=usage,
        health=RegistryHealthMarker(registry),
        headers=ClientHeaderProfiles(),
        config=keepalive_config,
        clock=clock,
    )
    recovery = KeyRecoveryMonitor(registry, recovery_config, clock=clock)
    return keepalive, recovery


async def run_monitors(
    registry: JsonCredentialRegistry,
    keepalive_config: KeepaliveConfig,
    recovery_config: RecoveryConfig,
    once: bool,
) -> None:
    keepalive, recovery = build_monitors(registry, keepalive_config, recovery_config)
    monitors = [m for m in (keepalive, recovery) if m.config.enabled]
    if not monitors:
        console.print("[bold yellow]Both monitors are disabled, nothing to do.[/bold yellow]")
        return

    if once:
        for monitor in monitors:
            await monitor.run_once()
        return

    for monitor in monitors:
        monitor.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        for monitor in monitors:
            monitor.stop()
        for monitor in monitors:
            await monitor.scheduler.wait_idle()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monitor-app",
        description="Keepalive and key recovery monitors for a credential pool.",
    )
    parser.add_argument("--registry", help="Path to the credential registry JSON file")
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start the monitors")
    run.add_argument("--once", action="store_true", help="Run a single cycle of each monitor")
    run.add_argument(
        "--keepalive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override KEEPALIVE_ENABLED",
    )
    run.add_argument(
        "--recovery",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override KEY_RECOVERY_ENABLED",
    )

    sub.add_parser("status", help="Show credential and key recovery status")

    mark = sub.add_parser("mark-failed", help="Mark an API key as failing")
    mark.add_argument("credential_id")
    mark.add_argument("key_id")
    mark.add_argument("--message", default="Marked failing by operator")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv(args.env_file or None)
    setup_logging(args.log_level or os.environ.get("LOG_LEVEL", "INFO"))

    registry = JsonCredentialRegistry(get_registry_path(args.registry))
    keepalive_config = KeepaliveConfig.from_env()
    recovery_config = RecoveryConfig.from_env()

    try:
        if args.command == "status":
            records = asyncio.run(registry.list_all())
            show_status(console, records, recovery_config.recovery_window)
        elif args.command == "mark-failed":
            store = RecoveryStateStore(registry)
            asyncio.run(
                store.mark_key_failed(
                    args.credential_id, args.key_id, args.message, time.time()
                )
            )
            console.print(
                f"[green]API key {args.key_id} on {args.credential_id} queued for recovery.[/green]"
            )
        else:
            if args.keepalive is not None:
                keepalive_config = replace(keepalive_config, enabled=args.keepalive)
            if args.recovery is not None:
                recovery_config = replace(recovery_config, enabled=args.recovery)
            asyncio.run(
                run_monitors(registry, keepalive_config, recovery_config, args.once)
            )
    except MonitorError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
