from __future__ import annotations

import logging
from typing import FrozenSet, Iterator, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from selectolax.parser import HTMLParser, Node

from ..base import SYNOPSIS_NOT_AVAILABLE, ExtractionSkip, Spider, StoryRecord, resolve_story_url

logger = logging.getLogger(__name__)

SYNOPSIS_MAX_CHARS = 1000
ELLIPSIS = "..."


class IndexListing:
    """Lazy view over the story entries of one rendered index page.

    Each iteration re-walks the document, so the listing can be consumed
    more than once.
    """

    def __init__(self, spider: "StorySpider", html: str, base_url: str) -> None:
        self._spider = spider
        self._html = html
        self._base_url = base_url

    def __iter__(self) -> Iterator[StoryRecord]:
        return self._spider._iter_index(self._html, self._base_url)


class StorySpider(Spider):
    """Selector-driven extractor for story index and synopsis pages.

    Selectors (CSS):
      - link_sel: anchors that point at per-story detail pages
      - tags_sel: element holding the whitespace-separated tag list, found among
        the link's siblings without crossing into the next or previous entry
      - synopsis_sels: detail page content regions, in order of preference
      - excluded_paths: URL path prefixes that are listings, not stories
    """

    name = "story_index"

    def __init__(
        self,
        *,
        link_sel: str = "a.story-title, .story-item > a[href]",
        tags_sel: str = ".story-tags, .tags",
        synopsis_sels: Sequence[str] = (".synopsis", ".story-body"),
        excluded_paths: Sequence[str] = ("/authors/", "/author/", "/tags/", "/tag/", "/users/"),
    ) -> None:
        self.link_sel = link_sel
        self.tags_sel = tags_sel
        self.synopsis_sels = tuple(synopsis_sels)
        self.excluded_paths = tuple(excluded_paths)

    # --- Public API ---
    def extract_index(self, html: str, base_url: str) -> IndexListing:
        return IndexListing(self, html, base_url)

    def extract_synopsis(self, html: str) -> str:
        doc = HTMLParser(html or "")
        region = None
        for sel in self.synopsis_sels:
            region = doc.css_first(sel)
            if region is not None:
                break
        if region is None:
            return SYNOPSIS_NOT_AVAILABLE

        text = ""
        para = region.css_first("p")
        if para is not None:
            text = _collapse(para.text(separator=" "))
        if not text:
            text = _collapse(region.text(separator=" "))
        if not text:
            return SYNOPSIS_NOT_AVAILABLE
        if len(text) > SYNOPSIS_MAX_CHARS:
            text = text[:SYNOPSIS_MAX_CHARS] + ELLIPSIS
        return text

    # --- Internals ---
    def _iter_index(self, html: str, base_url: str) -> Iterator[StoryRecord]:
        doc = HTMLParser(html or "")
        anchors = doc.css(self.link_sel) or []
        link_ids = frozenset(n.mem_id for n in anchors)
        tag_ids = frozenset(n.mem_id for n in doc.css(self.tags_sel) or [])
        seen = set()
        for anchor in anchors:
            try:
                rec = self._parse_entry(anchor, base_url, link_ids, tag_ids)
            except ExtractionSkip as exc:
                logger.info("Skipping index entry on %s: %s", base_url, exc)
                continue
            if rec.url in seen:
                continue
            seen.add(rec.url)
            yield rec

    def _parse_entry(
        self, anchor: Node, base_url: str, link_ids: FrozenSet[int], tag_ids: FrozenSet[int]
    ) -> StoryRecord:
        url = resolve_story_url(anchor.attributes.get("href"), base_url)
        path = urlsplit(url).path
        if any(path.startswith(p) for p in self.excluded_paths):
            raise ExtractionSkip(f"non-story path {path}")
        title = _collapse(anchor.text(separator=" ")) or (anchor.attributes.get("title") or "").strip()
        if not title:
            raise ExtractionSkip(f"no title for {url}")
        return StoryRecord(title=title, url=url, tags=self._tags_near(anchor, link_ids, tag_ids))

    def _tags_near(self, anchor: Node, link_ids: FrozenSet[int], tag_ids: FrozenSet[int]) -> Tuple[str, ...]:
        """Tags of one entry, never crossing into a neighbouring entry.

        Siblings after the link are scanned up to the next story link for a
        tags_sel match, then siblings before it back to the previous link.
        With no match, a plain (non-link) next sibling is used.
        """
        start = anchor
        # a link alone inside a wrapper (heading, cell): look beside the wrapper
        while _next_element(start) is None and _prev_element(start) is None:
            parent = start.parent
            if parent is None or parent.tag in ("body", "html"):
                break
            start = parent

        fallback = None
        holder = None
        sib = _next_element(start)
        while sib is not None and not self._holds_link(sib, link_ids):
            holder = self._tag_holder(sib, tag_ids)
            if holder is not None:
                break
            if fallback is None:
                fallback = sib
            sib = _next_element(sib)

        if holder is None:
            sib = _prev_element(start)
            while sib is not None and not self._holds_link(sib, link_ids):
                holder = self._tag_holder(sib, tag_ids)
                if holder is not None:
                    break
                sib = _prev_element(sib)

        holder = holder or fallback
        if holder is None:
            return ()
        return tuple(t for t in holder.text(separator=" ").split() if t)

    def _holds_link(self, node: Node, link_ids: FrozenSet[int]) -> bool:
        return node.mem_id in link_ids or node.css_first(self.link_sel) is not None

    def _tag_holder(self, node: Node, tag_ids: FrozenSet[int]) -> Optional[Node]:
        if node.mem_id in tag_ids:
            return node
        return node.css_first(self.tags_sel)


def _collapse(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def _is_element(node: Node) -> bool:
    return (node.tag or "")[:1].isalpha()


def _next_element(node: Node) -> Optional[Node]:
    sib = node.next
    while sib is not None and not _is_element(sib):
        sib = sib.next
    return sib


def _prev_element(node: Node) -> Optional[Node]:
    sib = node.prev
    while sib is not None and not _is_element(sib):
        sib = sib.prev
    return sib
