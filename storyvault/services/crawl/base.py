from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

SYNOPSIS_NOT_AVAILABLE = "Synopsis not available."
TAG_SEPARATOR = ","

_UNRESOLVABLE_SCHEMES = ("javascript:", "mailto:", "tel:", "data:")


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


# --- Errors ---

class CrawlError(RuntimeError):
    """Base class for crawl/sync failures."""


class TransientFetchError(CrawlError):
    """A single page could not be rendered in time; recovered by the caller."""


class ExtractionSkip(CrawlError):
    """One index entry was unusable and is dropped from the batch."""


class StoreWriteError(CrawlError):
    """The atomic write batch was rejected; nothing was applied."""


class SchedulerInitError(CrawlError):
    """No category can be scheduled (empty catalog)."""


# --- Tags ---

def normalize_tags(tags: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    """Canonical tag form: lowercase, trimmed, deduplicated, sorted."""
    out = set()
    for t in tags or ():
        if t is None:
            continue
        token = str(t).strip().strip(",;").strip().lower()
        if token:
            out.add(token)
    return tuple(sorted(out))


def serialize_tags(tags: Optional[Iterable[Any]]) -> str:
    return TAG_SEPARATOR.join(normalize_tags(tags))


def deserialize_tags(blob: Optional[str]) -> Tuple[str, ...]:
    if not blob:
        return ()
    return normalize_tags(blob.split(TAG_SEPARATOR))


# --- Records ---

@dataclass(frozen=True)
class StoryRecord:
    """One story as extracted or stored.

    `synopsis` is None until the detail page has been fetched. Tags are kept
    in canonical form regardless of how they were supplied.
    """

    title: str
    url: str
    tags: Tuple[str, ...] = field(default_factory=tuple)
    synopsis: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", normalize_tags(self.tags))

    def with_synopsis(self, synopsis: Optional[str]) -> "StoryRecord":
        return replace(self, synopsis=synopsis)

    @property
    def tag_blob(self) -> str:
        return serialize_tags(self.tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "categories": list(self.tags),
            "synopsis": self.synopsis,
        }


class Spider:
    """Minimal extractor contract: subclasses turn rendered markup into records."""

    name: str = "base"

    @staticmethod
    def normalize_records(items: Iterable[Any]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for x in items:
            if hasattr(x, "to_dict"):
                out.append(x.to_dict())
            elif isinstance(x, dict):
                out.append(x)
            else:
                raise TypeError(f"Unsupported record type: {type(x)}")
        return out


# --- URLs ---

def resolve_story_url(href: Optional[str], base_url: Optional[str] = None) -> str:
    """Canonical identity of a story: absolute http(s) URL, lowercase host, no fragment.

    Relative hrefs are resolved against base_url. Raises ExtractionSkip when
    the value cannot be turned into such a URL.
    """
    raw = (href or "").strip()
    if not raw or raw.startswith("#"):
        raise ExtractionSkip(f"empty href {href!r}")
    if raw.lower().startswith(_UNRESOLVABLE_SCHEMES):
        raise ExtractionSkip(f"non-navigable href {raw!r}")
    try:
        absolute = urljoin(base_url or "", raw)
        parts = urlsplit(absolute)
        parts.port  # raises ValueError on a malformed port
    except ValueError as exc:
        raise ExtractionSkip(f"malformed href {raw!r}: {exc}") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ExtractionSkip(f"href {raw!r} does not resolve to an absolute URL")
    return urlunsplit((parts.scheme, parts.netloc.lower(), parts.path or "/", parts.query, ""))
