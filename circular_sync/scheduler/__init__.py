"""Cycle scheduling: pure wake-time planning plus the APScheduler driver."""

from .apsched_adapter import APSchedulerAdapter
from .clock import CycleState, cleanup_due, initial_state, plan_next_cleanup, plan_next_run

__all__ = [
    "APSchedulerAdapter",
    "CycleState",
    "cleanup_due",
    "initial_state",
    "plan_next_cleanup",
    "plan_next_run",
]
