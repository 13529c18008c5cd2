from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Awaitable, Callable, List
from urllib.parse import urlparse

from tiktok_scraper.browser_session import BrowserSession
from tiktok_scraper.checkpoint import CaptchaCheckpoint
from tiktok_scraper.errors import InvalidSearchError, ScrapeError, ScrapeSetupError
from tiktok_scraper.extractor import PageExtractor
from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.metrics import RunMetricsCollector
from tiktok_scraper.models import RunMode, ScrapeResult, VideoRecord
from tiktok_scraper.navigator import Navigator
from tiktok_scraper.runs import RunControl, RunRegistry
from tiktok_scraper.urls import build_search_url, is_target_host
from tiktok_scraper.waits import CancelToken, sleep_within


logger = get_logger()

OpenFirst = Callable[[Any, CancelToken], Awaitable[str]]


def validate_start_url(start_url: str) -> str:
    url = str(start_url or "").strip()
    if not url:
        raise InvalidSearchError("Empty start URL")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not is_target_host(parsed.hostname):
        raise InvalidSearchError(f"Not a TikTok URL: {url}")
    return url


class ScrapeRunner:
    """Drives one page through checkpoint -> extract -> record -> advance until the target count or a dead end."""

    def __init__(
        self,
        session: BrowserSession,
        navigator: Navigator,
        extractor: PageExtractor,
        checkpoint: CaptchaCheckpoint,
        registry: RunRegistry,
        *,
        video_pause_s: float = 0.6,
        first_video_settle_s: float = 1.0,
    ) -> None:
        self.session = session
        self.navigator = navigator
        self.extractor = extractor
        self.checkpoint = checkpoint
        self.registry = registry
        self.video_pause_s = video_pause_s
        self.first_video_settle_s = first_video_settle_s

    async def scrape_from_search(self, search: str, max_count: int = 5) -> ScrapeResult:
        search_url = build_search_url(search)

        async def open_first(page: Any, cancel: CancelToken) -> str:
            url = await self.navigator.open_first_video(page, search_url, cancel)
            await sleep_within(None, self.first_video_settle_s, cancel)
            return url

        return await self._run("search", search, max_count, open_first)

    async def scrape_sequence(self, start_url: str, max_count: int = 5) -> ScrapeResult:
        url = validate_start_url(start_url)

        async def open_first(page: Any, cancel: CancelToken) -> str:
            return await self.navigator.open_start_url(page, url, cancel)

        return await self._run("sequence", url, max_count, open_first)

    async def _run(self, mode: RunMode, query: str, max_count: int, open_first: OpenFirst) -> ScrapeResult:
        run_id = str(uuid.uuid4())
        control = self.registry.register(RunControl(run_id, mode, query))
        cancel = control.cancel_token
        metrics = RunMetricsCollector(
            run_id=run_id,
            mode=mode,
            query_or_start_url=query,
            headless=self.session.headless,
            videos_targeted=max_count,
        )
        items: List[VideoRecord] = []
        page = None
        log_event(logger, logging.INFO, "Run started", runId=run_id, mode=mode, query=query, maxCount=max_count)
        try:
            try:
                page = await self.session.open_page()
            except Exception as exc:  # noqa: BLE001
                raise ScrapeSetupError(f"browser_unavailable:{str(exc)[:200]}") from exc
            await open_first(page, cancel)

            for index in range(max_count):
                cancel.raise_if_cancelled()
                step = metrics.begin_video(index, page.url)
                await self.checkpoint.check(page, control, metrics, index)

                started = time.monotonic()
                try:
                    extraction = await self.extractor.extract(page, cancel)
                except ScrapeError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    metrics.record_error(step, str(exc)[:300])
                    log_event(logger, logging.ERROR, "Extraction failed", index=index, error=str(exc)[:300])
                else:
                    extraction_ms = int((time.monotonic() - started) * 1000)
                    record = extraction.record
                    metrics.record_extraction(step, extraction_ms=extraction_ms, comments_count=len(record.comments))
                    for error in extraction.errors:
                        metrics.record_error(step, error)
                    items.append(record)
                    log_event(
                        logger,
                        logging.INFO,
                        "Scraped video",
                        index=index,
                        url=record.url,
                        captionLen=len(record.caption or ""),
                        comments=len(record.comments),
                        tookMs=extraction_ms,
                    )

                if index == max_count - 1:
                    metrics.end_video(step, page.url)
                    break

                nav = await self.navigator.advance(page, cancel=cancel)
                metrics.record_navigation(step, nav)
                metrics.end_video(step, page.url)
                if not nav.moved:
                    log_event(logger, logging.INFO, "Stopped early, could not move to next video", index=index)
                    break
                await sleep_within(None, self.video_pause_s, cancel)

            final = metrics.finalize(len(items))
            log_event(
                logger,
                logging.INFO,
                "Run finished",
                runId=run_id,
                scraped=final.videos_scraped,
                navFailures=final.nav_failures,
                captchas=final.captchas,
                durationMs=final.duration_ms,
            )
            return ScrapeResult(items=items, metrics=final)
        finally:
            self.registry.unregister(run_id)
            if page is not None:
                await self.session.release(page)
