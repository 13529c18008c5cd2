from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from playwright.async_api import BrowserContext, Page, async_playwright

from tiktok_scraper.logs import get_logger, log_event


logger = get_logger("browser")

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--lang=en-US,en;q=0.9",
]

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""

PAGE_VIEWPORT = {"width": 1366, "height": 850}
PAGE_HEADERS = {"Accept-Language": "en-US,en;q=0.9"}
PAGE_DEFAULT_TIMEOUT_MS = 30000


async def _safe_close_with_timeout(awaitable: Any, *, label: str, timeout_s: float = 3.0) -> None:
    try:
        await asyncio.wait_for(awaitable, timeout=max(0.5, timeout_s))
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.DEBUG, "close_skipped", target=label, error=str(exc)[:160])


class BrowserSession:
    """Owns the single long-lived browser (a persistent Chromium context) and hands out one page per run.

    The launch is shared: concurrent first callers await the same in-flight task.
    """

    def __init__(
        self,
        *,
        headless: bool,
        user_data_dir: str,
        keep_open: bool = False,
        production: bool = False,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.headless = headless
        self.user_data_dir = user_data_dir
        self.keep_open = keep_open
        self.production = production
        self._playwright_factory = playwright_factory
        self._playwright: Any = None
        self._context: Optional[BrowserContext] = None
        self._launching: Optional[asyncio.Task[BrowserContext]] = None
        self.launch_count = 0

    async def acquire(self) -> BrowserContext:
        if self._launching is None:
            self._launching = asyncio.ensure_future(self._launch())
        launching = self._launching
        try:
            return await asyncio.shield(launching)
        except Exception:
            if self._launching is launching:
                self._launching = None
            raise

    async def _launch(self) -> BrowserContext:
        self.launch_count += 1
        log_event(logger, logging.INFO, "Launching Chrome", headless=self.headless, profile=self.user_data_dir)
        playwright = await self._playwright_factory().start()
        try:
            context = await playwright.chromium.launch_persistent_context(
                self.user_data_dir,
                headless=self.headless,
                args=LAUNCH_ARGS,
                locale="en-US",
                no_viewport=not self.headless,
            )
            await context.add_init_script(STEALTH_INIT_SCRIPT)
        except Exception:
            await _safe_close_with_timeout(playwright.stop(), label="playwright")
            raise
        self._playwright = playwright
        self._context = context
        return context

    async def open_page(self) -> Page:
        context = await self.acquire()
        page = await context.new_page()
        try:
            await page.set_extra_http_headers(PAGE_HEADERS)
            await page.set_viewport_size(PAGE_VIEWPORT)
            page.set_default_timeout(PAGE_DEFAULT_TIMEOUT_MS)
        except Exception:
            await _safe_close_with_timeout(page.close(), label="page")
            raise
        return page

    async def release(self, page: Page) -> None:
        if self.keep_open:
            log_event(logger, logging.INFO, "Keeping page open for inspection", url=page.url)
            return
        await _safe_close_with_timeout(page.close(), label="page")

    async def shutdown(self) -> None:
        if self._context is None:
            return
        if not self.production:
            log_event(logger, logging.INFO, "Leaving browser running to keep the profile session")
            return
        await _safe_close_with_timeout(self._context.close(), label="context")
        if self._playwright is not None:
            await _safe_close_with_timeout(self._playwright.stop(), label="playwright")
        self._context = None
        self._playwright = None
        self._launching = None
