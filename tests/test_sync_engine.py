import pytest

from storyvault.db import sqlite_connector as db
from storyvault.services.crawl.base import SYNOPSIS_NOT_AVAILABLE, StoreWriteError, StoryRecord
from storyvault.services.crawl.sync import INSERT, UNCHANGED, UPDATE, SyncEngine, WriteOperation, classify


def _engine(db_path):
    return SyncEngine(db_path=db_path, clock=lambda: "2024-01-01T00:00:00Z")


def _row(db_path, url):
    rows = db.run_query("SELECT * FROM stories WHERE url = ?", (url,), path=db_path)
    return rows[0] if rows else None


def test_classify_rules():
    stored = StoryRecord(title="Old", url="u", tags=("a", "b"), synopsis="X")
    assert classify(StoryRecord(title="New", url="u", tags=("B", "a"), synopsis="X"), stored) == UNCHANGED
    assert classify(StoryRecord(title="Old", url="u", tags=("a",), synopsis="X"), stored) == UPDATE
    assert classify(StoryRecord(title="Old", url="u", tags=("a", "b"), synopsis="Y"), stored) == UPDATE
    assert classify(StoryRecord(title="Old", url="u", tags=("a", "b")), stored) == UNCHANGED
    assert classify(StoryRecord(title="Old", url="u"), None) == INSERT


def test_insert_then_lookup_returns_fields(db_path):
    engine = _engine(db_path)
    result = engine.sync([StoryRecord(title="Tale", url="https://s/1", tags=("Sci-Fi", "horror"), synopsis="Y")])
    assert (result.inserted, result.updated, result.unchanged) == (1, 0, 0)
    assert result.decisions == {"https://s/1": INSERT}
    row = _row(db_path, "https://s/1")
    assert row["title"] == "Tale"
    assert row["categories"] == "horror,sci-fi"
    assert row["synopsis"] == "Y"
    assert row["last_synced_at"] == "2024-01-01T00:00:00Z"


def test_reconciling_same_batch_twice_is_idempotent(db_path):
    engine = _engine(db_path)
    batch = [
        StoryRecord(title="A", url="https://s/a", tags=("x",), synopsis="one"),
        StoryRecord(title="B", url="https://s/b", tags=("y", "z"), synopsis="two"),
    ]
    first = engine.sync(batch)
    assert first.inserted == 2
    second = engine.sync(batch)
    assert (second.inserted, second.updated, second.unchanged) == (0, 0, 2)
    assert second.operations == []


def test_reordered_tags_are_unchanged(db_path):
    db.execute(
        "INSERT INTO stories (title, url, categories, synopsis) VALUES (?, ?, ?, ?)",
        ("T", "https://s/u", "a,b", "X"),
        path=db_path,
    )
    result = _engine(db_path).reconcile([StoryRecord(title="T", url="https://s/u", tags=("b", "a"), synopsis="X")])
    assert result.decisions["https://s/u"] == UNCHANGED
    assert result.operations == []


def test_update_rewrites_title_and_keeps_untouched_rows(db_path):
    engine = _engine(db_path)
    engine.sync(
        [
            StoryRecord(title="Old title", url="https://s/1", tags=("a",), synopsis="X"),
            StoryRecord(title="Other", url="https://s/2", tags=("b",), synopsis="Z"),
        ]
    )
    result = engine.sync(
        [
            StoryRecord(title="New title", url="https://s/1", tags=("a", "c"), synopsis="X"),
            StoryRecord(title="Renamed only", url="https://s/2", tags=("b",), synopsis="Z"),
        ]
    )
    assert (result.inserted, result.updated, result.unchanged) == (0, 1, 1)
    assert _row(db_path, "https://s/1")["title"] == "New title"
    assert _row(db_path, "https://s/1")["categories"] == "a,c"
    assert _row(db_path, "https://s/2")["title"] == "Other"


def test_missing_synopsis_inserts_sentinel_and_preserves_stored_value(db_path):
    engine = _engine(db_path)
    engine.sync([StoryRecord(title="T", url="https://s/1", tags=("a",))])
    assert _row(db_path, "https://s/1")["synopsis"] == SYNOPSIS_NOT_AVAILABLE

    engine.sync([StoryRecord(title="T", url="https://s/1", tags=("a",), synopsis="Real")])
    result = engine.sync([StoryRecord(title="T", url="https://s/1", tags=("a", "b"))])
    assert result.updated == 1
    assert _row(db_path, "https://s/1")["synopsis"] == "Real"


def test_duplicate_urls_in_batch_collapse_to_last(db_path):
    result = _engine(db_path).sync(
        [
            StoryRecord(title="First", url="https://s/1", synopsis="a"),
            StoryRecord(title="Second", url="https://s/1", synopsis="b"),
        ]
    )
    assert result.inserted == 1
    assert _row(db_path, "https://s/1")["title"] == "Second"


def test_empty_batch_reports_zero_counts(db_path):
    result = _engine(db_path).sync([])
    assert result.to_dict() == {"inserted": 0, "updated": 0, "unchanged": 0}
    assert result.operations == []


def test_failed_batch_applies_nothing(db_path):
    engine = _engine(db_path)
    result = engine.reconcile([StoryRecord(title="A", url="https://s/a", synopsis="x")])
    result.operations.append(WriteOperation(INSERT, "bad", "INSERT INTO no_such_table VALUES (?)", (1,)))
    with pytest.raises(StoreWriteError):
        engine.apply(result)
    assert _row(db_path, "https://s/a") is None


def test_large_batch_lookup_spans_chunks(db_path):
    engine = _engine(db_path)
    batch = [StoryRecord(title=f"S{i}", url=f"https://s/{i}", synopsis="x") for i in range(1200)]
    assert engine.sync(batch).inserted == 1200
    assert engine.reconcile(batch).unchanged == 1200
