from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from storyvault import config
from storyvault.db import sqlite_connector as db

from .base import SYNOPSIS_NOT_AVAILABLE, SchedulerInitError, StoryRecord
from .renderer import Renderer, get_renderer
from .scheduler import CategoryScheduler, ScheduledCategory
from .spiders.story_spider import StorySpider
from .sync import SyncEngine

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_EMPTY = "empty"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass
class CrawlReport:
    status: str = STATUS_FAILED
    category: Optional[str] = None
    category_index: Optional[int] = None
    first_run: bool = False
    found: int = 0
    synopsis_failures: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    cursor_committed: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (STATUS_OK, STATUS_EMPTY)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CrawlOrchestrator:
    """One crawl run: schedule, render index, fan out detail pages, sync, advance.

    Once a category has been selected the cursor is committed exactly once,
    whatever happens afterwards, so an unreachable category cannot stall the
    rotation. Errors are logged and reported, never raised out of run().
    """

    def __init__(
        self,
        scheduler: CategoryScheduler,
        spider: StorySpider,
        sync_engine: SyncEngine,
        renderer_factory: Callable[[], Renderer],
        *,
        max_concurrency: int = 10,
        page_timeout: float = 30.0,
    ) -> None:
        self.scheduler = scheduler
        self.spider = spider
        self.sync_engine = sync_engine
        self.renderer_factory = renderer_factory
        self.max_concurrency = max(1, int(max_concurrency))
        self.page_timeout = float(page_timeout)

    async def run(self) -> CrawlReport:
        report = CrawlReport()
        try:
            category, first_run = await asyncio.to_thread(self.scheduler.next_category)
        except SchedulerInitError as exc:
            logger.error("Scheduled crawl aborted: %s", exc)
            report.status = STATUS_SKIPPED
            report.error = str(exc)
            return report
        except Exception as exc:
            logger.exception("Scheduled crawl aborted while selecting a category")
            report.error = str(exc)
            return report

        report.category = category.key
        report.category_index = category.index
        report.first_run = first_run
        logger.info("Starting scheduled crawl for category: [%s]", category.key.upper())
        try:
            await self._crawl(category, report)
        except Exception as exc:
            logger.exception("Crawl failed for category [%s]", category.key.upper())
            report.status = STATUS_FAILED
            report.error = str(exc)
        finally:
            report.cursor_committed = await asyncio.to_thread(self._commit, category)

        if report.succeeded:
            logger.info("Finished crawl for category: [%s]", category.key.upper())
        return report

    async def _crawl(self, category: ScheduledCategory, report: CrawlReport) -> None:
        async with self.renderer_factory() as renderer:
            logger.info("Rendering with %s renderer", renderer.name)
            html = await asyncio.wait_for(renderer.render(category.url), timeout=self.page_timeout)
            records = list(self.spider.extract_index(html, category.url))
            report.found = len(records)
            if not records:
                logger.info("No stories found for category [%s]. Skipping.", category.key.upper())
                report.status = STATUS_EMPTY
                return
            logger.info("Found %d stories. Fetching synopses...", len(records))
            records = await self.fetch_synopses(renderer, records)

        report.synopsis_failures = sum(1 for r in records if r.synopsis == SYNOPSIS_NOT_AVAILABLE)
        result = await asyncio.to_thread(self.sync_engine.sync, records)
        report.inserted = result.inserted
        report.updated = result.updated
        report.unchanged = result.unchanged
        report.status = STATUS_OK

    async def fetch_synopses(self, renderer: Renderer, records: List[StoryRecord]) -> List[StoryRecord]:
        """Attach a synopsis to every record, at most max_concurrency pages at a time.

        Output order matches input order.
        """
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _one(rec: StoryRecord) -> StoryRecord:
            async with sem:
                return rec.with_synopsis(await self._synopsis_for(renderer, rec.url))

        return list(await asyncio.gather(*(_one(r) for r in records)))

    async def _synopsis_for(self, renderer: Renderer, url: str) -> str:
        try:
            html = await asyncio.wait_for(renderer.render(url), timeout=self.page_timeout)
        except asyncio.TimeoutError:
            logger.warning("Synopsis page timed out after %.1fs: %s", self.page_timeout, url)
            return SYNOPSIS_NOT_AVAILABLE
        except Exception as exc:
            logger.warning("Synopsis page failed: %s (%s)", url, exc)
            return SYNOPSIS_NOT_AVAILABLE
        return self.spider.extract_synopsis(html)

    def _commit(self, category: ScheduledCategory) -> bool:
        try:
            return self.scheduler.commit_advance(category.index, expected_prior=category.previous_index)
        except Exception:
            logger.exception("Failed to commit scheduler cursor for [%s]", category.key.upper())
            return False


def build_orchestrator(*, db_path: Optional[str] = None, renderer_kind: Optional[str] = None) -> CrawlOrchestrator:
    timeout = config.page_timeout()
    return CrawlOrchestrator(
        CategoryScheduler(config.load_categories(), db_path=db_path),
        StorySpider(),
        SyncEngine(db_path=db_path),
        lambda: get_renderer(renderer_kind, timeout=timeout),
        max_concurrency=config.max_concurrency(),
        page_timeout=timeout,
    )


def run_crawl(*, db_path: Optional[str] = None, renderer_kind: Optional[str] = None) -> CrawlReport:
    """Entry point for the scheduled trigger: one crawl run."""
    db.init_schema(db_path)
    return asyncio.run(build_orchestrator(db_path=db_path, renderer_kind=renderer_kind).run())
