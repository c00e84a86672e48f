from __future__ import annotations

from datetime import datetime, timedelta, timezone

from circular_sync.scheduler.clock import (
    CycleState,
    cleanup_due,
    initial_state,
    plan_next_cleanup,
    plan_next_run,
    truncate,
)

UTC = timezone.utc


def test_truncate_to_minute_and_hour() -> None:
    moment = datetime(2024, 9, 7, 10, 42, 37, 500, tzinfo=UTC)
    assert truncate(moment, timedelta(minutes=1)) == datetime(2024, 9, 7, 10, 42, tzinfo=UTC)
    assert truncate(moment, timedelta(hours=1)) == datetime(2024, 9, 7, 10, tzinfo=UTC)


def test_truncate_treats_naive_as_utc() -> None:
    assert truncate(datetime(2024, 9, 7, 10, 42, 37), timedelta(minutes=1)) == datetime(
        2024, 9, 7, 10, 42, tzinfo=UTC
    )


def test_first_cycle_is_immediate_and_cleans_up() -> None:
    now = datetime(2024, 9, 7, 10, 42, 37, tzinfo=UTC)
    state = initial_state(now)
    assert state == CycleState(next_run=now, next_cleanup=now)

    planned = plan_next_run(state, timedelta(minutes=5))
    assert planned.next_run == datetime(2024, 9, 7, 10, 47, tzinfo=UTC)
    assert cleanup_due(planned)


def test_next_cleanup_is_hour_aligned() -> None:
    state = CycleState(
        next_run=datetime(2024, 9, 7, 10, 47, tzinfo=UTC),
        next_cleanup=datetime(2024, 9, 7, 10, 42, 37, tzinfo=UTC),
    )
    planned = plan_next_cleanup(state, timedelta(hours=6))
    assert planned.next_cleanup == datetime(2024, 9, 7, 16, 0, tzinfo=UTC)
    assert planned.next_run == state.next_run


def test_cleanup_not_due_until_boundary_passed() -> None:
    boundary = datetime(2024, 9, 7, 16, 0, tzinfo=UTC)
    assert not cleanup_due(CycleState(next_run=boundary, next_cleanup=boundary))
    assert cleanup_due(CycleState(next_run=boundary + timedelta(minutes=1), next_cleanup=boundary))


def test_cleanup_cadence_over_a_day() -> None:
    wait = timedelta(minutes=5)
    period = timedelta(hours=6)
    state = initial_state(datetime(2024, 9, 7, 0, 0, 30, tzinfo=UTC))
    cleanups = []
    for _ in range(24 * 12):
        state = plan_next_run(state, wait)
        if cleanup_due(state):
            cleanups.append(state.next_run)
            state = plan_next_cleanup(state, period)
    assert len(cleanups) == 4
    assert cleanups[1] - cleanups[0] >= period


def test_states_are_not_mutated() -> None:
    now = datetime(2024, 9, 7, 10, 0, tzinfo=UTC)
    state = initial_state(now)
    plan_next_run(state, timedelta(minutes=5))
    plan_next_cleanup(state, timedelta(hours=6))
    assert state == CycleState(next_run=now, next_cleanup=now)
