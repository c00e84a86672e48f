"""Shared fixtures: feed markup builders, recording logger and sample configs."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

from circular_sync.config import SyncConfig
from circular_sync.engine import Attachment, Circular


class RecordingLogger:
    """Minimal structlog stand-in collecting ``(level, event, fields)`` tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **fields: Any) -> None:
        self.events.append((level, event, fields))

    def debug(self, event: str, **fields: Any) -> None:
        self._record("debug", event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._record("info", event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._record("warning", event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._record("error", event, **fields)

    def exception(self, event: str, **fields: Any) -> None:
        self._record("exception", event, **fields)

    def named(self, event: str) -> list[dict[str, Any]]:
        return [fields for _level, name, fields in self.events if name == event]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


def row_html(
    circular_id: str | None = "1001",
    title: str = "Sciopero del personale",
    category: str | None = "Circolari",
    published: str | None = "07/09/2024",
    valid_until: str | None = "30/09/2024",
    attachments: Sequence[tuple[str, str]] = (),
) -> str:
    """Render one ``tr.row-result`` the way the portal lays it out."""

    marker = (
        f'<a class="download-file" id_doc="{circular_id}">Scarica</a>'
        if circular_id is not None
        else '<a class="preview">Anteprima</a>'
    )
    parts = [f'<span class="titolo">{title}</span><br>']
    if category is not None:
        parts.append(f"Categoria: <span>{category}</span><br>")
    if published is not None:
        parts.append(f"Pubblicato il: <span>{published}</span><br>")
    if valid_until is not None:
        parts.append(f"Valido fino al: <span>{valid_until}</span><br>")
    for att_id, att_title in attachments:
        parts.append(f'<a class="link-to-file" id_doc="{att_id}">{att_title}</a>')
    return (
        '<tr class="row-result">'
        f"<td>{marker}</td>"
        f"<td>{''.join(parts)}</td>"
        "</tr>"
    )


def corpus(*rows: str) -> str:
    return "<html><body><table>" + "".join(rows) + "</table></body></html>"


@pytest.fixture
def build_row() -> Callable[..., str]:
    return row_html


@pytest.fixture
def build_corpus() -> Callable[..., str]:
    return corpus


def make_circular(
    circular_id: int,
    title: str | None = None,
    attachments: Sequence[int] = (),
    published: date = date(2024, 9, 7),
) -> Circular:
    return Circular(
        id=circular_id,
        title=title or f"Circolare {circular_id}",
        category="Circolari",
        published_date=published,
        valid_until_date=published + timedelta(days=30),
        attachments=tuple(Attachment(id=att_id, title=f"Allegato {att_id}") for att_id in attachments),
    )


@pytest.fixture
def build_circular_record() -> Callable[..., Circular]:
    return make_circular


@pytest.fixture
def sync_config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        connection_string=str(tmp_path / "circolari.db"),
        site_url="https://portal.example/sdg/app/default/comunicati.php?sede_codice=XXXX0000",
        cycle_wait="5m",
        log_dir=tmp_path / "logs",
    )
