"""Heuristic extraction of circulars from the assembled feed markup.

The label scan works on plain ``InlineNode`` pairs so it can be exercised
without any HTML; only :func:`iter_raw_rows` knows about selectolax.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterator, Sequence

import structlog
from selectolax.parser import HTMLParser, Node

from .records import Attachment, Circular

ROW_SELECTOR = "tr.row-result"
CIRCULAR_ID_SELECTOR = ".download-file"
ATTACHMENT_SELECTOR = ".link-to-file"
ID_ATTRIBUTE = "id_doc"
INFO_CELL_INDEX = 1

CATEGORY_LABEL = "Categoria"
PUBLISHED_LABEL = "Pubblicato il"
VALID_UNTIL_LABEL = "Valido fino"

DATE_FORMAT = "%d/%m/%Y"
_DATE_SHAPE = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_UINT_SHAPE = re.compile(r"^\d+$")
_UINT64_MAX = 2**64 - 1


class MarkupError(RuntimeError):
    """The corpus cannot be parsed as markup at all."""


@dataclass(frozen=True, slots=True)
class InlineNode:
    """A value node paired with the text of the node right before it."""

    label: str
    text: str


@dataclass(slots=True)
class RawRow:
    """Library independent view of one result row."""

    circular_id: str | None
    inline_nodes: list[InlineNode] = field(default_factory=list)
    # (id_doc attribute, visible text) for every attachment marker
    attachments: list[tuple[str, str]] = field(default_factory=list)


def find_labelled_value(label: str, nodes: Sequence[InlineNode]) -> str | None:
    """Return the text of the first node whose preceding label contains ``label``."""

    for node in nodes:
        if label in node.label:
            return node.text
    return None


def parse_unsigned(text: str) -> int:
    """Parse an unsigned 64-bit decimal identifier."""

    value = text.strip()
    if not _UINT_SHAPE.match(value):
        raise ValueError(f"not an unsigned integer: {text!r}")
    number = int(value)
    if number > _UINT64_MAX:
        raise ValueError(f"identifier out of range: {text!r}")
    return number


def parse_feed_date(text: str) -> date:
    """Parse a ``DD/MM/YYYY`` date as shown by the portal."""

    value = text.strip()
    if not _DATE_SHAPE.match(value):
        raise ValueError(f"unexpected date format: {text!r}")
    return datetime.strptime(value, DATE_FORMAT).date()


def build_circular(row: RawRow, logger: structlog.BoundLogger) -> Circular | None:
    """Turn a raw row into a circular, or ``None`` when a mandatory field is unusable."""

    if row.circular_id is None:
        logger.warning("circular_skipped", reason="missing_id")
        return None
    try:
        circular_id = parse_unsigned(row.circular_id)
    except ValueError:
        logger.warning("circular_skipped", reason="invalid_id", raw_id=row.circular_id)
        return None

    title = row.inline_nodes[0].text.strip() if row.inline_nodes else ""
    if not title:
        logger.warning("circular_skipped", circular_id=circular_id, reason="missing_field", field="title")
        return None

    values: dict[str, str] = {}
    for field_name, label in (
        ("category", CATEGORY_LABEL),
        ("published_date", PUBLISHED_LABEL),
        ("valid_until_date", VALID_UNTIL_LABEL),
    ):
        value = find_labelled_value(label, row.inline_nodes)
        if value is None:
            logger.warning(
                "circular_skipped", circular_id=circular_id, reason="missing_field", field=field_name
            )
            return None
        values[field_name] = value

    dates: dict[str, date] = {}
    for field_name in ("published_date", "valid_until_date"):
        try:
            dates[field_name] = parse_feed_date(values[field_name])
        except ValueError:
            logger.warning(
                "circular_skipped",
                circular_id=circular_id,
                reason="invalid_date",
                field=field_name,
                value=values[field_name],
            )
            return None

    attachments: list[Attachment] = []
    for raw_id, text in row.attachments:
        try:
            attachment_id = parse_unsigned(raw_id)
        except ValueError:
            logger.warning("attachment_skipped", circular_id=circular_id, raw_id=raw_id)
            continue
        attachments.append(Attachment(id=attachment_id, title=text.strip()))

    return Circular(
        id=circular_id,
        title=title,
        category=values["category"].strip(),
        published_date=dates["published_date"],
        valid_until_date=dates["valid_until_date"],
        attachments=tuple(attachments),
    )


def _node_text(node: Node | None) -> str:
    if node is None:
        return ""
    return node.text(deep=True) or ""


def iter_raw_rows(corpus: str) -> Iterator[RawRow]:
    """Yield one :class:`RawRow` per result row, in document order."""

    if not isinstance(corpus, str):
        raise MarkupError(f"Corpus must be text, got {type(corpus).__name__}")
    parser = HTMLParser(corpus)
    if parser.root is None or parser.body is None:
        raise MarkupError("Corpus has no document body")

    for row in parser.css(ROW_SELECTOR):
        marker = row.css_first(CIRCULAR_ID_SELECTOR)
        circular_id = marker.attributes.get(ID_ATTRIBUTE) if marker is not None else None
        cells = row.css("td")
        if len(cells) <= INFO_CELL_INDEX:
            yield RawRow(circular_id=circular_id)
            continue
        info_cell = cells[INFO_CELL_INDEX]
        inline_nodes = [
            InlineNode(label=_node_text(span.prev), text=_node_text(span))
            for span in info_cell.css("span")
        ]
        attachments = [
            (link.attributes[ID_ATTRIBUTE] or "", _node_text(link))
            for link in info_cell.css(ATTACHMENT_SELECTOR)
            if ID_ATTRIBUTE in link.attributes
        ]
        yield RawRow(circular_id=circular_id, inline_nodes=inline_nodes, attachments=attachments)


class CircularExtractor:
    """Parse the assembled feed corpus into ordered circulars."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("circular_sync.extractor")

    def extract(self, corpus: str) -> list[Circular]:
        circulars: list[Circular] = []
        seen_circulars: set[int] = set()
        seen_attachments: set[int] = set()
        skipped = 0
        for raw_row in iter_raw_rows(corpus):
            circular = build_circular(raw_row, self.logger)
            if circular is None:
                skipped += 1
                continue
            if circular.id in seen_circulars:
                self.logger.warning("circular_skipped", circular_id=circular.id, reason="duplicate_id")
                skipped += 1
                continue
            seen_circulars.add(circular.id)
            circular = self._drop_repeated_attachments(circular, seen_attachments)
            circulars.append(circular)
        self.logger.info("circulars_parsed", parsed=len(circulars), skipped=skipped)
        return circulars

    def _drop_repeated_attachments(self, circular: Circular, seen: set[int]) -> Circular:
        kept: list[Attachment] = []
        for attachment in circular.attachments:
            if attachment.id in seen:
                self.logger.warning(
                    "attachment_skipped",
                    circular_id=circular.id,
                    attachment_id=attachment.id,
                    reason="duplicate_id",
                )
                continue
            seen.add(attachment.id)
            kept.append(attachment)
        if len(kept) == len(circular.attachments):
            return circular
        return replace(circular, attachments=tuple(kept))


__all__ = [
    "CircularExtractor",
    "InlineNode",
    "MarkupError",
    "RawRow",
    "build_circular",
    "find_labelled_value",
    "iter_raw_rows",
    "parse_feed_date",
    "parse_unsigned",
]
