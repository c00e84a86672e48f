"""APScheduler wrapper running sync cycles strictly one after another."""

from __future__ import annotations

from datetime import timedelta
from typing import Callable

from apscheduler.executors.debug import DebugExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.date import DateTrigger

from ..logging_conf import component_logger
from .clock import CycleState, plan_next_run

CycleCallback = Callable[[CycleState], CycleState]
DEFAULT_RETRY_WAIT = timedelta(minutes=5)


def _build_scheduler() -> BlockingScheduler:
    # DebugExecutor runs the job in the scheduler thread, so cycles never overlap
    return BlockingScheduler(executors={"default": DebugExecutor()}, timezone="UTC")


class APSchedulerAdapter:
    """Chain one-shot jobs: each cycle schedules the next at its planned wake time."""

    def __init__(
        self,
        scheduler: BlockingScheduler | None = None,
        retry_wait: timedelta = DEFAULT_RETRY_WAIT,
    ) -> None:
        self.scheduler = scheduler or _build_scheduler()
        # Delay before the next attempt when a cycle raises instead of returning a state
        self.retry_wait = retry_wait
        self.logger = component_logger("scheduler")
        self.started = False

    def run_forever(self, cycle: CycleCallback, state: CycleState) -> None:
        """Schedule the first cycle and block until shutdown."""

        self.schedule_cycle(cycle, state)
        self.start()

    def start(self) -> None:
        if not self.started:
            self.started = True
            self.logger.info("apscheduler_started")
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_cycle(self, cycle: CycleCallback, state: CycleState) -> None:
        self.scheduler.add_job(
            self._run_cycle,
            trigger=DateTrigger(run_date=state.next_run),
            args=[cycle, state],
            misfire_grace_time=None,
            coalesce=True,
        )
        self.logger.debug("cycle_scheduled", run_at=state.next_run.isoformat())

    def _run_cycle(self, cycle: CycleCallback, state: CycleState) -> None:
        next_state: CycleState | None = None
        try:
            next_state = cycle(state)
        finally:
            if next_state is None:
                next_state = plan_next_run(state, self.retry_wait)
                self.logger.error("cycle_aborted", retry_at=next_state.next_run.isoformat())
            self.schedule_cycle(cycle, next_state)


__all__ = ["APSchedulerAdapter", "CycleCallback", "DEFAULT_RETRY_WAIT"]
