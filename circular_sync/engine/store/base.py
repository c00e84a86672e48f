"""Circular store Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ..reconciler import RemovalPlan
from ..records import Circular

DEFAULT_RECENT_WINDOW = 25


@dataclass(frozen=True, slots=True)
class SyncResult:
    upserted: int
    inserted_only: int
    attachments: int


@dataclass(frozen=True, slots=True)
class PurgeResult:
    circulars: int
    attachments: int


class BaseStore(ABC):
    """Uniform persistence contract used by the orchestrator."""

    @abstractmethod
    def sync(
        self, circulars: Sequence[Circular], recent_window: int = DEFAULT_RECENT_WINDOW
    ) -> SyncResult:
        """Write one extraction batch atomically."""

    @abstractmethod
    def persisted_circular_ids(self) -> list[int]:
        """Identifiers of every stored circular, highest first."""

    @abstractmethod
    def persisted_attachment_ids(self) -> list[int]:
        """Identifiers of every stored attachment, highest first."""

    @abstractmethod
    def purge(self, plan: RemovalPlan) -> PurgeResult:
        """Delete the planned identifiers atomically."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseStore", "DEFAULT_RECENT_WINDOW", "PurgeResult", "SyncResult"]
