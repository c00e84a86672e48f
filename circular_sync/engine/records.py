"""Structured records extracted from the circulars feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file linked to exactly one circular."""

    id: int
    title: str


@dataclass(frozen=True, slots=True)
class Circular:
    """An announcement published on the school portal."""

    id: int
    title: str
    category: str
    published_date: date
    valid_until_date: date
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    def attachment_ids(self) -> list[int]:
        return [attachment.id for attachment in self.attachments]


def circular_ids(circulars: Iterable[Circular]) -> list[int]:
    return [circular.id for circular in circulars]


def attachment_ids(circulars: Iterable[Circular]) -> list[int]:
    return [att_id for circular in circulars for att_id in circular.attachment_ids()]


__all__ = ["Attachment", "Circular", "attachment_ids", "circular_ids"]
