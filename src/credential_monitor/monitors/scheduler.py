# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Single-flight periodic scheduling and per-credential cooldowns.

TickScheduler drives one monitor's cycle on a fixed interval. A cycle that
is still running when the timer fires again causes that tick to be skipped,
never queued, so a slow cycle cannot pile up work.

CooldownTracker remembers when each credential was last acted on so the
same credential is not probed twice inside its cooldown window.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional, Set

lib_logger = logging.getLogger("credential_monitor")

# Cooldown records older than this are dropped on sweep
COOLDOWN_RETENTION_SECONDS = 24 * 60 * 60


class CooldownTracker:
    """
    In-memory map of credential id -> last action timestamp.

    Owned by a single monitor and mutated only by its running cycle, so no
    lock is needed. Not persisted: a restart forgets all cooldowns.
    """

    def __init__(
        self,
        window_seconds: float,
        retention_seconds: float = COOLDOWN_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._last_action: Dict[str, float] = {}

    def record(self, credential_id: str, timestamp: Optional[float] = None) -> None:
        self._last_action[credential_id] = (
            self._clock() if timestamp is None else timestamp
        )

    def last_action(self, credential_id: str) -> Optional[float]:
        return self._last_action.get(credential_id)

    def is_cooling_down(self, credential_id: str, now: Optional[float] = None) -> bool:
        last = self._last_action.get(credential_id)
        if last is None:
            return False
        now = self._clock() if now is None else now
        return now - last < self.window_seconds

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop records older than the retention period. Returns the number removed."""
        now = self._clock() if now is None else now
        expired = [
            cid
            for cid, ts in self._last_action.items()
            if not ts or now - ts > self.retention_seconds
        ]
        for cid in expired:
            del self._last_action[cid]
        return len(expired)

    def clear(self) -> None:
        self._last_action.clear()

    def __len__(self) -> int:
        return len(self._last_action)

    def __contains__(self, credential_id: str) -> bool:
        return credential_id in self._last_action


class SchedulerState:
    """Guard states of a TickScheduler."""

    IDLE = "idle"
    RUNNING = "running"


class TickScheduler:
    """
    Process-wide timer driving one monitor's cycle.

    Handles:
    - Interval clamping to a floor
    - One warm-up cycle shortly after start
    - Single-flight guard: a tick that fires while a cycle runs is skipped
    - Catching and logging cycle errors so the timer keeps going

    Usage:
        scheduler = TickScheduler("keepalive", monitor.run_cycle, interval=60)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        name: str,
        tick: Callable[[], Awaitable[None]],
        interval: float,
        min_interval: float = 0.0,
        warmup_delay: float = 0.0,
        enabled: bool = True,
        on_stop: Optional[Callable[[], None]] = None,
    ):
        self.name = name
        self.interval = max(interval, min_interval)
        self.warmup_delay = max(warmup_delay, 0.0)
        self.enabled = enabled
        self._tick = tick
        self._on_stop = on_stop
        self._state = SchedulerState.IDLE
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()
        self.skipped_ticks = 0

        if interval < min_interval:
            lib_logger.debug(
                f"{name} interval {interval}s raised to floor {min_interval}s"
            )

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_started(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> bool:
        """
        Start the timer. Must be called from a running event loop.

        Returns:
            True if the timer was started
        """
        if not self.enabled:
            lib_logger.info(f"{self.name} disabled via config")
            return False
        if self.is_started:
            lib_logger.warning(f"{self.name} already running")
            return False

        self._timer_task = asyncio.get_running_loop().create_task(self._timer_loop())
        lib_logger.info(f"{self.name} started (interval {self.interval:.0f}s)")
        return True

    def stop(self) -> None:
        """
        Stop firing new ticks. Idempotent.

        A cycle already running is left to finish.
        """
        was_started = self.is_started
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
        self._state = SchedulerState.IDLE
        if self._on_stop is not None:
            self._on_stop()
        if was_started:
            lib_logger.info(f"{self.name} stopped")

    async def wait_idle(self) -> None:
        """Wait for any in-flight cycle to finish."""
        if self._cycle_tasks:
            await asyncio.gather(*list(self._cycle_tasks), return_exceptions=True)

    async def run_once(self) -> bool:
        """
        Run one guarded cycle.

        Returns:
            True if the cycle ran, False if it was skipped because another
            cycle is in progress
        """
        # Test-and-set with no await in between
        if self._state == SchedulerState.RUNNING:
            self.skipped_ticks += 1
            lib_logger.debug(f"{self.name} tick already in progress, skipping")
            return False
        self._state = SchedulerState.RUNNING

        try:
            await self._tick()
        except Exception as e:
            lib_logger.error(f"{self.name} cycle failed: {e}", exc_info=True)
        finally:
            self._state = SchedulerState.IDLE
        return True

    def _fire(self) -> None:
        task = asyncio.get_running_loop().create_task(self.run_once())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)

    async def _timer_loop(self) -> None:
        await asyncio.sleep(self.warmup_delay)
        self._fire()
        while True:
            await asyncio.sleep(self.interval)
            self._fire()
