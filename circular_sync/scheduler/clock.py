"""Wall-clock aligned cycle planning.

The loop state is an immutable :class:`CycleState` handed from one cycle to
the next, so every step here is a pure function.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

RUN_ALIGNMENT = timedelta(minutes=1)
CLEANUP_ALIGNMENT = timedelta(hours=1)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class CycleState:
    next_run: datetime
    next_cleanup: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def truncate(moment: datetime, interval: timedelta) -> datetime:
    """Round ``moment`` down to a multiple of ``interval`` since the epoch."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    remainder = (moment - _EPOCH) % interval
    return moment - remainder


def initial_state(now: datetime | None = None) -> CycleState:
    """First cycle runs immediately and is also a cleanup cycle."""

    now = now or utc_now()
    return CycleState(next_run=now, next_cleanup=now)


def plan_next_run(state: CycleState, period: timedelta) -> CycleState:
    return replace(state, next_run=truncate(state.next_run, RUN_ALIGNMENT) + period)


def cleanup_due(state: CycleState) -> bool:
    return state.next_run > state.next_cleanup


def plan_next_cleanup(state: CycleState, period: timedelta) -> CycleState:
    return replace(state, next_cleanup=truncate(state.next_run, CLEANUP_ALIGNMENT) + period)


__all__ = [
    "CLEANUP_ALIGNMENT",
    "CycleState",
    "RUN_ALIGNMENT",
    "cleanup_due",
    "initial_state",
    "plan_next_cleanup",
    "plan_next_run",
    "truncate",
    "utc_now",
]
