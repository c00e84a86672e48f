from __future__ import annotations

import sqlite3
from dataclasses import replace
from pathlib import Path

import pytest

from circular_sync.engine.reconciler import RemovalPlan
from circular_sync.engine.records import Attachment
from circular_sync.engine.store import SQLiteCircularStore
from circular_sync.infra.storage import StoreError


@pytest.fixture
def store(tmp_path: Path):
    store = SQLiteCircularStore(tmp_path / "circolari.db")
    yield store
    store.close()


def _rows(path: Path, query: str) -> list[tuple]:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(query).fetchall()
    finally:
        conn.close()


def test_sync_inserts_circulars_and_attachments(store, build_circular_record) -> None:
    circulars = [
        build_circular_record(2, attachments=[21, 22]),
        build_circular_record(1, attachments=[11]),
    ]
    result = store.sync(circulars)

    assert (result.upserted, result.inserted_only, result.attachments) == (2, 0, 3)
    assert store.persisted_circular_ids() == [2, 1]
    assert store.persisted_attachment_ids() == [22, 21, 11]
    rows = _rows(store.path, "SELECT id, titolo, categoria, data, valida_fino FROM circolare ORDER BY id")
    assert rows[0] == (1, "Circolare 1", "Circolari", "2024-09-07", "2024-10-07")
    owners = _rows(store.path, "SELECT id_allegato, id_circolare FROM circolare_allegato ORDER BY id_allegato")
    assert owners == [(11, 1), (21, 2), (22, 2)]


def test_recent_window_is_updated_and_history_is_immutable(store, build_circular_record) -> None:
    circulars = [build_circular_record(100 - i, attachments=[1000 - i]) for i in range(30)]
    store.sync(circulars, recent_window=25)

    edited = [
        replace(
            circular,
            title=f"Edited {circular.id}",
            attachments=tuple(Attachment(id=a.id, title="Edited") for a in circular.attachments),
        )
        for circular in circulars
    ]
    result = store.sync(edited, recent_window=25)

    assert (result.upserted, result.inserted_only) == (25, 5)
    titles = dict(_rows(store.path, "SELECT id, titolo FROM circolare"))
    for position, circular in enumerate(circulars):
        expected = f"Edited {circular.id}" if position < 25 else f"Circolare {circular.id}"
        assert titles[circular.id] == expected
    att_titles = dict(_rows(store.path, "SELECT id_allegato, titolo FROM circolare_allegato"))
    assert att_titles[1000] == "Edited"
    assert att_titles[1000 - 29] == "Allegato 971"


def test_insertion_timestamp_survives_upsert(store, build_circular_record) -> None:
    store.sync([build_circular_record(1)])
    conn = sqlite3.connect(store.path)
    conn.execute("UPDATE circolare SET aggiunta_il = '2000-01-01T00:00:00+00:00'")
    conn.commit()
    conn.close()

    store.sync([build_circular_record(1, title="Nuovo titolo")])
    assert _rows(store.path, "SELECT titolo, aggiunta_il FROM circolare") == [
        ("Nuovo titolo", "2000-01-01T00:00:00+00:00")
    ]


def test_failed_statement_rolls_back_whole_batch(store, build_circular_record) -> None:
    store.ensure_schema()
    conn = sqlite3.connect(store.path)
    conn.execute(
        "CREATE TRIGGER reject_three BEFORE INSERT ON circolare WHEN NEW.id = 3 "
        "BEGIN SELECT RAISE(ABORT, 'rejected'); END"
    )
    conn.commit()
    conn.close()

    batch = [build_circular_record(i, attachments=[10 * i]) for i in (1, 2, 3, 4)]
    with pytest.raises(StoreError):
        store.sync(batch)

    assert store.persisted_circular_ids() == []
    assert store.persisted_attachment_ids() == []


def test_purge_removes_attachments_before_circulars(store, build_circular_record) -> None:
    store.sync(
        [
            build_circular_record(3, attachments=[31]),
            build_circular_record(2, attachments=[21, 22]),
            build_circular_record(1, attachments=[11]),
        ]
    )
    # 22 is not listed explicitly; it must go with its owning circular
    result = store.purge(RemovalPlan(circular_ids=[2], attachment_ids=[21, 11]))

    assert store.persisted_circular_ids() == [3, 1]
    assert store.persisted_attachment_ids() == [31]
    assert (result.circulars, result.attachments) == (1, 3)


def test_purge_with_empty_plan_is_noop(store, build_circular_record) -> None:
    store.sync([build_circular_record(1)])
    result = store.purge(RemovalPlan())
    assert (result.circulars, result.attachments) == (0, 0)
    assert store.persisted_circular_ids() == [1]


def test_recent_lists_newest_first(store, build_circular_record) -> None:
    from datetime import date

    store.sync(
        [
            build_circular_record(1, published=date(2024, 1, 10)),
            build_circular_record(2, published=date(2024, 3, 1)),
        ]
    )
    rows = store.recent(limit=1)
    assert [row["id"] for row in rows] == [2]


def test_full_unsigned_range_round_trips(store, build_circular_record) -> None:
    top = 2**64 - 1
    middle = 2**63
    store.sync(
        [
            build_circular_record(top, attachments=[top - 1]),
            build_circular_record(middle, attachments=[middle]),
            build_circular_record(5, attachments=[50]),
        ]
    )

    assert store.persisted_circular_ids() == [top, middle, 5]
    assert store.persisted_attachment_ids() == [top - 1, middle, 50]
    assert {row["id"] for row in store.recent()} == {top, middle, 5}

    result = store.purge(RemovalPlan(circular_ids=[middle], attachment_ids=[top - 1]))
    assert (result.circulars, result.attachments) == (1, 2)
    assert store.persisted_circular_ids() == [top, 5]
    assert store.persisted_attachment_ids() == [50]


def test_purge_counts_only_deleted_rows(store, build_circular_record) -> None:
    store.sync([build_circular_record(2, attachments=[20]), build_circular_record(1)])
    result = store.purge(RemovalPlan(circular_ids=[2, 99], attachment_ids=[20, 77]))
    assert (result.circulars, result.attachments) == (1, 1)
    assert store.persisted_circular_ids() == [1]
