"""Diff-based reconciliation of extracted stories against the store.

Classification reads every existing row for the batch up front, then emits
one write per changed record. The writes are applied as a single atomic
batch, so no operation depends on another one from the same run.
Title is carried on every write but never triggers one: only tags and
synopsis are compared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from storyvault.db import sqlite_connector as db

from .base import SYNOPSIS_NOT_AVAILABLE, StoryRecord, deserialize_tags, now_iso

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
UNCHANGED = "unchanged"

_LOOKUP_CHUNK = 500

_INSERT_SQL = (
    "INSERT INTO stories (title, url, categories, synopsis, last_synced_at) VALUES (?, ?, ?, ?, ?) "
    "ON CONFLICT (url) DO UPDATE SET title = excluded.title, categories = excluded.categories, "
    "synopsis = excluded.synopsis, last_synced_at = excluded.last_synced_at"
)
_UPDATE_SQL = "UPDATE stories SET title = ?, categories = ?, synopsis = ?, last_synced_at = ? WHERE url = ?"


@dataclass(frozen=True)
class WriteOperation:
    kind: str
    url: str
    sql: str
    params: Tuple[Any, ...]


@dataclass
class SyncResult:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    operations: List[WriteOperation] = field(default_factory=list)
    decisions: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, int]:
        return {"inserted": self.inserted, "updated": self.updated, "unchanged": self.unchanged}


def classify(incoming: StoryRecord, existing: Optional[StoryRecord]) -> str:
    if existing is None:
        return INSERT
    synopsis = incoming.synopsis if incoming.synopsis is not None else existing.synopsis
    if incoming.tags != existing.tags or synopsis != existing.synopsis:
        return UPDATE
    return UNCHANGED


class SyncEngine:
    def __init__(self, *, db_path: Optional[str] = None, clock: Callable[[], str] = now_iso) -> None:
        self.db_path = db_path
        self.clock = clock

    def load_existing(self, urls: Sequence[str]) -> Dict[str, StoryRecord]:
        found: Dict[str, StoryRecord] = {}
        urls = list(urls)
        for start in range(0, len(urls), _LOOKUP_CHUNK):
            chunk = urls[start:start + _LOOKUP_CHUNK]
            marks = ",".join("?" for _ in chunk)
            rows = db.run_query(
                f"SELECT title, url, categories, synopsis FROM stories WHERE url IN ({marks})",
                chunk,
                path=self.db_path,
            )
            for row in rows:
                found[row["url"]] = StoryRecord(
                    title=row["title"] or "",
                    url=row["url"],
                    tags=deserialize_tags(row["categories"]),
                    synopsis=row["synopsis"],
                )
        return found

    def reconcile(self, records: Iterable[StoryRecord]) -> SyncResult:
        """Classify each record and build the write set; nothing is written here."""
        batch: Dict[str, StoryRecord] = {}
        seen = 0
        for rec in records:
            seen += 1
            batch[rec.url] = rec
        if seen != len(batch):
            logger.info("Collapsed %d duplicate URL(s) in sync batch", seen - len(batch))

        result = SyncResult()
        existing = self.load_existing(list(batch))
        synced_at = self.clock()
        for url, rec in batch.items():
            current = existing.get(url)
            decision = classify(rec, current)
            result.decisions[url] = decision
            if decision == INSERT:
                result.inserted += 1
                synopsis = rec.synopsis if rec.synopsis is not None else SYNOPSIS_NOT_AVAILABLE
                result.operations.append(
                    WriteOperation(INSERT, url, _INSERT_SQL, (rec.title, url, rec.tag_blob, synopsis, synced_at))
                )
            elif decision == UPDATE:
                result.updated += 1
                synopsis = rec.synopsis if rec.synopsis is not None else current.synopsis
                result.operations.append(
                    WriteOperation(UPDATE, url, _UPDATE_SQL, (rec.title, rec.tag_blob, synopsis, synced_at, url))
                )
            else:
                result.unchanged += 1
        return result

    def apply(self, result: SyncResult) -> int:
        """Write the batch atomically; raises StoreWriteError with nothing applied."""
        return db.apply_batch(((op.sql, op.params) for op in result.operations), path=self.db_path)

    def sync(self, records: Iterable[StoryRecord]) -> SyncResult:
        result = self.reconcile(records)
        self.apply(result)
        logger.info(
            "Sync complete: %d inserted, %d updated, %d unchanged",
            result.inserted, result.updated, result.unchanged,
        )
        return result
