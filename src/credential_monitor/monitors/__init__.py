# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .eligibility import Eligibility, KeepaliveEligibility
from .keepalive import KeepaliveMonitor, parse_reset_header
from .key_recovery import KeyRecoveryMonitor, RecoveryOutcome
from .recovery_state import RecoveryAttempt, RecoveryStateStore, recovery_deadline
from .scheduler import CooldownTracker, SchedulerState, TickScheduler

__all__ = [
    "CooldownTracker",
    "Eligibility",
    "KeepaliveEligibility",
    "KeepaliveMonitor",
    "KeyRecoveryMonitor",
    "RecoveryAttempt",
    "RecoveryOutcome",
    "RecoveryStateStore",
    "SchedulerState",
    "TickScheduler",
    "parse_reset_header",
    "recovery_deadline",
]
