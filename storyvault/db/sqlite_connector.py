import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from storyvault import config
from storyvault.services.crawl.base import StoreWriteError

logger = logging.getLogger(__name__)

Statement = Tuple[str, Sequence[Any]]

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS stories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL UNIQUE,
        title TEXT,
        categories TEXT NOT NULL DEFAULT '',
        synopsis TEXT,
        last_synced_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_stories_title ON stories (title)",
    """
    CREATE TABLE IF NOT EXISTS scrape_state (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        last_scraped_category_index INTEGER NOT NULL
    )
    """,
)


# SQLite LOWER() folds ASCII only; title search folds both sides with this.
def _casefold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


@contextmanager
def connect(path: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Open a connection to the story store, closing it on exit.

    Connections run in autocommit mode; multi-statement writes go through
    apply_batch(), which manages its own transaction.
    """
    path = path or config.db_path()
    if path != ":memory:":
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
    try:
        conn = sqlite3.connect(path, timeout=10.0, isolation_level=None)
    except sqlite3.Error as exc:
        raise RuntimeError(f"Failed to open story store at '{path}': {exc}") from exc
    conn.row_factory = sqlite3.Row
    conn.create_function("CASEFOLD", 1, _casefold, deterministic=True)
    try:
        yield conn
    finally:
        conn.close()


def init_schema(path: Optional[str] = None) -> None:
    with connect(path) as conn:
        for stmt in SCHEMA:
            conn.execute(stmt)


def run_query(query: str, parameters: Sequence[Any] = (), *, path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Run a read statement and return rows as dicts."""
    with connect(path) as conn:
        cur = conn.execute(query, tuple(parameters))
        return [dict(row) for row in cur.fetchall()]


def execute(query: str, parameters: Sequence[Any] = (), *, path: Optional[str] = None) -> int:
    """Run a single write statement; returns the affected row count."""
    with connect(path) as conn:
        cur = conn.execute(query, tuple(parameters))
        return cur.rowcount


def apply_batch(statements: Iterable[Statement], *, path: Optional[str] = None) -> int:
    """Apply all statements atomically: every one commits or none does.

    Raises StoreWriteError after rolling back if any statement fails.
    """
    stmts = list(statements)
    if not stmts:
        return 0
    with connect(path) as conn:
        try:
            conn.execute("BEGIN IMMEDIATE")
            for query, params in stmts:
                conn.execute(query, tuple(params))
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error("Batch of %d statements rolled back: %s", len(stmts), exc)
            raise StoreWriteError(f"Batch write failed: {exc}") from exc
    return len(stmts)
