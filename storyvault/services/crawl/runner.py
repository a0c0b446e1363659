from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Optional

from storyvault import config
from storyvault.db.sqlite_connector import init_schema

from .orchestrator import run_crawl
from .renderer import get_renderer
from .spiders.story_spider import StorySpider

logger = logging.getLogger(__name__)


async def _render_once(url: str, renderer_kind: Optional[str]) -> str:
    async with get_renderer(renderer_kind) as renderer:
        return await renderer.render(url)


def _load_html(args: argparse.Namespace) -> str:
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            return f.read()
    return asyncio.run(_render_once(args.url, args.renderer))


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Story catalog crawler")
    parser.add_argument("--db", default=None, help="SQLite store path (default: STORYVAULT_DB_PATH)")
    parser.add_argument("--renderer", choices=("playwright", "http"), default=None)
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("crawl", help="Run one scheduled crawl (next category in rotation)")
    sub.add_parser("init-db", help="Create the store schema if missing")

    idx = sub.add_parser("index", help="Extract story entries from an index page and print JSON")
    src = idx.add_mutually_exclusive_group(required=True)
    src.add_argument("--url", help="Index page URL to render")
    src.add_argument("--file", help="Local HTML snapshot")
    idx.add_argument("--base-url", default=None, help="Base URL for resolving links (default: --url)")

    syn = sub.add_parser("synopsis", help="Extract the synopsis from a story page")
    src2 = syn.add_mutually_exclusive_group(required=True)
    src2.add_argument("--url", help="Story page URL to render")
    src2.add_argument("--file", help="Local HTML snapshot")

    args = parser.parse_args(argv)
    config.configure_logging(args.log_level)

    if args.cmd == "init-db":
        init_schema(args.db)
        print(args.db or config.db_path())
        return 0

    if args.cmd == "crawl":
        report = run_crawl(db_path=args.db, renderer_kind=args.renderer)
        print(json.dumps(report.to_dict(), ensure_ascii=False))
        return 0 if report.succeeded else 1

    spider = StorySpider()
    html = _load_html(args)

    if args.cmd == "index":
        base_url = args.base_url or args.url or ""
        records = spider.normalize_records(spider.extract_index(html, base_url))
        print(json.dumps(records, ensure_ascii=False, indent=2))
        return 0

    if args.cmd == "synopsis":
        print(spider.extract_synopsis(html))
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
