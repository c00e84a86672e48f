"""Cycle orchestrator wiring together fetching, extraction, sync and cleanup."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from .config import SyncConfig
from .engine import (
    BaseStore,
    Circular,
    CircularExtractor,
    FeedFetcher,
    FetchError,
    MarkupError,
    PurgeResult,
    SQLiteCircularStore,
    SyncResult,
    reconcile,
)
from .infra import SQLiteManager, StoreError
from .logging_conf import component_logger
from .scheduler.clock import CycleState, cleanup_due, plan_next_cleanup, plan_next_run


@dataclass(slots=True)
class CycleReport:
    """Outcome of one fetch → extract → sync (→ cleanup) pass."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    parsed: int = 0
    sync: SyncResult | None = None
    purge: PurgeResult | None = None
    cleanup_requested: bool = False
    failed_phase: str | None = None
    error: str | None = None

    @property
    def synced(self) -> bool:
        return self.sync is not None

    @property
    def ok(self) -> bool:
        return self.error is None


class Orchestrator:
    """Central coordinator running sync cycles."""

    def __init__(
        self,
        config: SyncConfig,
        fetcher: FeedFetcher,
        extractor: CircularExtractor,
        store: BaseStore,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.logger = logger or component_logger("orchestrator")

    @classmethod
    def from_config(cls, config: SyncConfig, manager: SQLiteManager | None = None) -> "Orchestrator":
        return cls(
            config=config,
            fetcher=FeedFetcher(
                page_size=config.page_size,
                timeout=config.request_timeout,
                logger=component_logger("fetcher"),
            ),
            extractor=CircularExtractor(logger=component_logger("extractor")),
            store=SQLiteCircularStore(config.database_path, manager),
        )

    def run_cycle(self, state: CycleState) -> CycleState:
        """Run one scheduled cycle and return the state for the next one."""

        state = plan_next_run(state, self.config.cycle_wait)
        due = cleanup_due(state)
        report = self.run_once(cleanup=due)
        # A cycle that never reached the store keeps the cleanup pending
        if due and report.synced:
            state = plan_next_cleanup(state, self.config.cleanup_period)
        self.logger.info(
            "waiting",
            next_run=state.next_run.isoformat(),
            next_cleanup=state.next_cleanup.isoformat(),
        )
        return state

    def run_once(self, cleanup: bool = False) -> CycleReport:
        report = CycleReport(cleanup_requested=cleanup)
        try:
            circulars = self._collect(report)
            self._sync(circulars, report)
            if cleanup:
                self._cleanup(circulars, report)
        except (FetchError, MarkupError, StoreError) as exc:
            report.error = str(exc)
            self.logger.error("cycle_failed", phase=report.failed_phase, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            report.error = str(exc)
            self.logger.exception("cycle_crashed", phase=report.failed_phase, error=str(exc))
        return report

    def close(self) -> None:
        self.fetcher.close()
        self.store.close()

    # ------------------------------------------------------------------
    def _collect(self, report: CycleReport) -> list[Circular]:
        report.failed_phase = "fetch"
        self.logger.info("getting_circulars")
        corpus = self.fetcher.fetch(self.config.site_url)

        report.failed_phase = "extract"
        self.logger.info("parsing_circulars")
        circulars = self.extractor.extract(corpus)
        report.parsed = len(circulars)
        return circulars

    def _sync(self, circulars: list[Circular], report: CycleReport) -> None:
        report.failed_phase = "sync"
        self.logger.info("updating_store", circulars=len(circulars))
        report.sync = self.store.sync(circulars, recent_window=self.config.recent_window)
        report.failed_phase = None
        self.logger.info(
            "store_synced",
            upserted=report.sync.upserted,
            inserted_only=report.sync.inserted_only,
            attachments=report.sync.attachments,
        )

    def _cleanup(self, circulars: list[Circular], report: CycleReport) -> None:
        report.failed_phase = "cleanup"
        self.logger.info("removing_deleted_circulars")
        plan = reconcile(
            self.store.persisted_circular_ids(),
            self.store.persisted_attachment_ids(),
            circulars,
        )
        report.purge = self.store.purge(plan)
        report.failed_phase = None
        self.logger.info(
            "removed_circulars",
            circulars=report.purge.circulars,
            attachments=report.purge.attachments,
        )


__all__ = ["CycleReport", "Orchestrator"]
