"""Page rendering collaborators.

Both renderers share one contract: ``await renderer.render(url)`` returns the
page markup or raises TransientFetchError. They are async context managers so
the browser/client lives exactly as long as one crawl run.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
from playwright.async_api import Browser, Error as PlaywrightError, Playwright, async_playwright

from storyvault import config

from .base import TransientFetchError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": "StoryVault-Crawler/0.1"}


class Renderer:
    name = "base"

    async def __aenter__(self) -> "Renderer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def render(self, url: str) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class PlaywrightRenderer(Renderer):
    """Headless Chromium; each render gets its own page, closed on every path."""

    name = "playwright"

    def __init__(self, *, timeout: float = 30.0, user_agent: Optional[str] = None) -> None:
        self.timeout = float(timeout)
        self.user_agent = user_agent or DEFAULT_HEADERS["User-Agent"]
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "PlaywrightRenderer":
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(
                headless=True,
                args=["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
            )
        except PlaywrightError as exc:
            await self.close()
            raise TransientFetchError(f"Could not start browser: {exc}") from exc
        return self

    async def render(self, url: str) -> str:
        if self._browser is None:
            raise RuntimeError("PlaywrightRenderer used outside 'async with'")
        page = None
        try:
            page = await self._browser.new_page(user_agent=self.user_agent)
            await page.goto(url, wait_until="networkidle", timeout=self.timeout * 1000)
            return await page.content()
        except PlaywrightError as exc:
            raise TransientFetchError(f"Render failed for {url}: {exc}") from exc
        finally:
            if page is not None:
                try:
                    await page.close()
                except PlaywrightError as exc:
                    logger.debug("Page close failed for %s: %s", url, exc)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None


class HttpRenderer(Renderer):
    """Plain HTTP fetch for catalogs that render server-side."""

    name = "http"

    def __init__(self, *, timeout: float = 30.0, headers: Optional[Dict[str, str]] = None) -> None:
        self.timeout = float(timeout)
        self.headers = headers or dict(DEFAULT_HEADERS)
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HttpRenderer":
        self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers, follow_redirects=True)
        return self

    async def render(self, url: str) -> str:
        if self._client is None:
            raise RuntimeError("HttpRenderer used outside 'async with'")
        try:
            r = await self._client.get(url)
            r.raise_for_status()
            return r.text
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Fetch failed for {url}: {exc}") from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def get_renderer(kind: Optional[str] = None, *, timeout: Optional[float] = None) -> Renderer:
    kind = (kind or config.renderer_kind()).lower()
    timeout = timeout if timeout is not None else config.page_timeout()
    if kind == "playwright":
        return PlaywrightRenderer(timeout=timeout)
    if kind == "http":
        return HttpRenderer(timeout=timeout)
    raise ValueError(f"Unknown renderer '{kind}' (expected 'playwright' or 'http')")
