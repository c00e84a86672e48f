"""Identifier diffing between the persisted store and the latest extraction."""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from operator import neg
from typing import Iterable, Sequence

from .records import Circular, attachment_ids, circular_ids


@dataclass(frozen=True, slots=True)
class RemovalPlan:
    """Persisted identifiers missing from the current active listing."""

    circular_ids: list[int] = field(default_factory=list)
    attachment_ids: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.circular_ids and not self.attachment_ids


def _contains_descending(values: Sequence[int], target: int) -> bool:
    # values is sorted in descending order; search on the negated key keeps bisect ascending
    index = bisect_left(values, -target, key=neg)
    return index < len(values) and values[index] == target


def find_removal_candidates(persisted: Iterable[int], current: Iterable[int]) -> list[int]:
    """Return persisted identifiers absent from ``current``, highest first."""

    persisted_sorted = sorted(set(persisted), reverse=True)
    current_sorted = sorted(current, reverse=True)
    return [
        identifier
        for identifier in persisted_sorted
        if not _contains_descending(current_sorted, identifier)
    ]


def reconcile(
    persisted_circulars: Iterable[int],
    persisted_attachments: Iterable[int],
    circulars: Iterable[Circular],
) -> RemovalPlan:
    """Build the removal plan for both identifier domains independently."""

    circulars = list(circulars)
    return RemovalPlan(
        circular_ids=find_removal_candidates(persisted_circulars, circular_ids(circulars)),
        attachment_ids=find_removal_candidates(persisted_attachments, attachment_ids(circulars)),
    )


__all__ = ["RemovalPlan", "find_removal_candidates", "reconcile"]
