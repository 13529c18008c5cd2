from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from tiktok_scraper.annotate import annotate, filter_matches
from tiktok_scraper.browser_session import BrowserSession
from tiktok_scraper.cache import ResultCache, cache_key
from tiktok_scraper.checkpoint import CaptchaCheckpoint
from tiktok_scraper.comments import CommentHarvester
from tiktok_scraper.config import Settings, settings
from tiktok_scraper.extractor import PageExtractor
from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.models import ScrapeRunMetrics, VideoRecord
from tiktok_scraper.navigator import Navigator
from tiktok_scraper.oembed import MetadataResolver
from tiktok_scraper.runs import RunRegistry
from tiktok_scraper.scraper import ScrapeRunner
from tiktok_scraper.selectors import load_selectors
from tiktok_scraper.urls import build_search_url


logger = get_logger()


@dataclass
class AnnotatedResult:
    key: str
    items: List[VideoRecord]
    metrics: ScrapeRunMetrics
    from_cache: bool


class ScrapeService:
    """Serves annotated views over raw scrapes, scraping only on a cache miss or forced refresh."""

    def __init__(self, runner: ScrapeRunner, cache: ResultCache, registry: Optional[RunRegistry] = None) -> None:
        self.runner = runner
        self.cache = cache
        self.registry = registry or runner.registry

    async def scrape_annotate_and_cache(
        self,
        search: str,
        keyword: str,
        max_count: int = 5,
        only_matches: bool = False,
        force_refresh: bool = False,
    ) -> AnnotatedResult:
        build_search_url(search)
        key = cache_key(search, max_count)

        entry = None if force_refresh else self.cache.get(key)
        from_cache = entry is not None
        if entry is None:
            log_event(logger, logging.INFO, "RAW cache MISS, scraping", rawKey=key, forceRefresh=force_refresh)
            result = await self.runner.scrape_from_search(search, max_count)
            entry = self.cache.set(key, result.items, result.metrics)
            log_event(logger, logging.INFO, "RAW cached", rawKey=key, count=len(result.items), size=len(self.cache))
        else:
            log_event(logger, logging.INFO, "RAW cache HIT", rawKey=key, size=len(self.cache))

        items = filter_matches(annotate(entry.items, keyword), only_matches)
        return AnnotatedResult(key=key, items=items, metrics=entry.metrics, from_cache=from_cache)

    def clear_cache_entry(self, search: str, max_count: int) -> bool:
        key = cache_key(search, max_count)
        removed = self.cache.delete(key)
        log_event(logger, logging.INFO, "RAW cache clear entry", key=key, ok=removed)
        return removed

    def clear_cache_all(self) -> int:
        removed = self.cache.clear()
        log_event(logger, logging.INFO, "RAW cache cleared ALL", removed=removed)
        return removed

    async def shutdown(self) -> None:
        await self.runner.session.shutdown()


def build_service(cfg: Settings = settings) -> ScrapeService:
    selectors = load_selectors(cfg.scraper_selectors_file)
    session = BrowserSession(
        headless=cfg.scraper_headless,
        user_data_dir=cfg.scraper_chrome_user_data_dir,
        keep_open=cfg.scraper_keep_browser_open,
        production=cfg.is_production,
    )
    harvester = CommentHarvester(
        selectors,
        settle_ms=cfg.scraper_comment_settle_ms,
        stagnation_escape=cfg.scraper_comment_stagnation_escape,
    )
    extractor = PageExtractor(
        selectors,
        MetadataResolver(),
        harvester,
        comment_limit=cfg.scraper_comment_limit,
        comment_timeout_s=cfg.scraper_comment_timeout_s,
    )
    navigator = Navigator(
        selectors,
        next_timeout_s=cfg.scraper_next_video_timeout_s,
        poll_window_s=cfg.scraper_next_video_poll_window_s,
        first_video_wait_s=cfg.scraper_first_video_wait_s,
    )
    checkpoint = CaptchaCheckpoint(
        selectors,
        mode=cfg.scraper_captcha_mode,
        wait_timeout_s=cfg.scraper_captcha_wait_timeout_s,
    )
    registry = RunRegistry()
    runner = ScrapeRunner(
        session,
        navigator,
        extractor,
        checkpoint,
        registry,
        video_pause_s=cfg.scraper_video_pause_s,
    )
    cache = ResultCache(max_entries=cfg.scraper_cache_max_entries, ttl_ms=cfg.scraper_cache_ttl_ms)
    return ScrapeService(runner, cache, registry)
