"""Round-robin category scheduler backed by the single-row scrape_state table.

Selecting the next category and committing the advance are separate steps:
the orchestrator commits once per run, after the crawl attempt, with a
compare-and-swap against the cursor value it started from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from storyvault.db import sqlite_connector as db

from .base import SchedulerInitError

logger = logging.getLogger(__name__)

CURSOR_BEFORE_START = -1


@dataclass(frozen=True)
class ScheduledCategory:
    key: str
    url: str
    index: int
    previous_index: int


class CategoryScheduler:
    def __init__(self, categories: Mapping[str, str], *, db_path: Optional[str] = None) -> None:
        self._catalog: List[Tuple[str, str]] = list(categories.items())
        self.db_path = db_path

    @property
    def category_count(self) -> int:
        return len(self._catalog)

    def current_cursor(self) -> Optional[int]:
        """Stored cursor value, or None while uninitialized."""
        rows = db.run_query(
            "SELECT last_scraped_category_index FROM scrape_state WHERE id = 1",
            path=self.db_path,
        )
        if not rows:
            return None
        return int(rows[0]["last_scraped_category_index"])

    def next_category(self) -> Tuple[ScheduledCategory, bool]:
        """Pick the category after the cursor without moving the cursor.

        Returns (category, first_run) where first_run is True when this call
        created the cursor row.
        """
        if not self._catalog:
            raise SchedulerInitError("Category catalog is empty; nothing to schedule")
        created = db.execute(
            "INSERT OR IGNORE INTO scrape_state (id, last_scraped_category_index) VALUES (1, ?)",
            (CURSOR_BEFORE_START,),
            path=self.db_path,
        )
        first_run = created == 1
        if first_run:
            logger.info("Initialized scheduler cursor")
        cursor = self.current_cursor()
        if cursor is None:
            raise SchedulerInitError("Scheduler cursor row is missing after initialization")
        next_index = (cursor + 1) % len(self._catalog)
        key, url = self._catalog[next_index]
        return ScheduledCategory(key=key, url=url, index=next_index, previous_index=cursor), first_run

    def commit_advance(self, next_index: int, *, expected_prior: int) -> bool:
        """Persist next_index if the cursor still holds expected_prior.

        Returns False when another run moved the cursor first; the stored value
        is then left alone.
        """
        if not 0 <= next_index < max(len(self._catalog), 1):
            raise ValueError(f"Cursor index {next_index} outside catalog of {len(self._catalog)}")
        updated = db.execute(
            "UPDATE scrape_state SET last_scraped_category_index = ? "
            "WHERE id = 1 AND last_scraped_category_index = ?",
            (next_index, expected_prior),
            path=self.db_path,
        )
        if updated != 1:
            logger.warning(
                "Cursor moved by another run (expected %s); not advancing to %s", expected_prior, next_index
            )
            return False
        logger.info("Scheduler cursor advanced %s -> %s", expected_prior, next_index)
        return True
