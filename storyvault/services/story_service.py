"""Read paths over the story store: filtered search and synopsis lookup.

Tag filters are substring matches against the stored comma-joined tag blob,
so a filter for ``fi`` also matches ``sci-fi``. This is a known limitation of
the blob representation.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from storyvault.db import sqlite_connector as db
from storyvault.services.crawl.base import ExtractionSkip, StoryRecord, deserialize_tags, normalize_tags, resolve_story_url
from storyvault.services.crawl.sync import SyncEngine, SyncResult

SEARCH_COLUMNS = "title, url, categories"


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def parse_tag_param(raw: Optional[str]) -> List[str]:
    """Split a comma-separated query parameter into tags, dropping blanks."""
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


def build_search_query(
    free_text: Optional[str] = None,
    include_tags: Iterable[str] = (),
    exclude_tags: Iterable[str] = (),
) -> Tuple[str, List[str]]:
    """Translate a search request into (sql, params).

    - free_text: case-insensitive substring of the title
    - include_tags: every tag must appear in the tag blob
    - exclude_tags: none of the tags may appear in the tag blob
    Rows are always ordered by title.
    """
    clauses: List[str] = []
    params: List[str] = []

    text = (free_text or "").strip()
    if text:
        clauses.append("CASEFOLD(title) LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(text.casefold()))
    for tag in normalize_tags(include_tags):
        clauses.append("categories LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(tag))
    for tag in normalize_tags(exclude_tags):
        clauses.append("categories NOT LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(tag))

    query = f"SELECT {SEARCH_COLUMNS} FROM stories"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY title ASC"
    return query, params


def search_stories(
    free_text: Optional[str] = None,
    include_tags: Iterable[str] = (),
    exclude_tags: Iterable[str] = (),
    *,
    db_path: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query, params = build_search_query(free_text, include_tags, exclude_tags)
    rows = db.run_query(query, params, path=db_path)
    return [
        {"title": r["title"], "url": r["url"], "categories": list(deserialize_tags(r["categories"]))}
        for r in rows
    ]


def get_synopsis(url: str, *, db_path: Optional[str] = None) -> Optional[str]:
    if not url:
        return None
    try:
        url = resolve_story_url(url)
    except ExtractionSkip:
        return None
    rows = db.run_query("SELECT synopsis FROM stories WHERE url = ?", (url,), path=db_path)
    if not rows:
        return None
    return rows[0]["synopsis"]


def save_stories(records: Iterable[StoryRecord], *, db_path: Optional[str] = None) -> SyncResult:
    """Upsert externally supplied stories with the crawler's diff semantics."""
    return SyncEngine(db_path=db_path).sync(records)
