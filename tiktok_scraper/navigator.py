from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from tiktok_scraper.errors import InvalidSearchError, RunCancelledError, ScrapeSetupError
from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.models import NextVideoResult
from tiktok_scraper.selectors import AnchorPatternProbe, SelectorConfig, css_probes, first_located
from tiktok_scraper.urls import absolute_url, is_video_url
from tiktok_scraper.waits import CancelToken, Deadline, poll_until, sleep_within


logger = get_logger("navigator")

SNAPSHOT_JS = """
({ videoSelector, captionSelector }) => {
  const video = document.querySelector(videoSelector);
  const caption = document.querySelector(captionSelector);
  return {
    videoSrc: (video && video.currentSrc) || null,
    caption: (caption && caption.innerText) || '',
  };
}
"""

FOCUS_CLICK_TIMEOUT_MS = 2000


@dataclass(frozen=True)
class NavSnapshot:
    url: str
    video_src: Optional[str]
    caption: str


async def goto_with_fallback(page: Any, url: str, timeout_ms: int = 60000) -> str:
    """Navigate with a soft fallback so a slow `domcontentloaded` does not sink the run."""
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        return ""
    except Exception as first_exc:  # noqa: BLE001
        try:
            await page.goto(url, wait_until="commit", timeout=max(12000, int(timeout_ms * 0.6)))
            return f"goto_fallback:{str(first_exc)[:120]}"
        except Exception as second_exc:  # noqa: BLE001
            raise RuntimeError(f"goto_failed:{str(second_exc)[:220]}") from second_exc


class Navigator:
    """Reaches the first video of a search and steps through "next video" transitions.

    States: SEARCHING -> AT_VIDEO -> ADVANCING -> (AT_VIDEO | STOPPED). `advance()`
    returning `moved=False` is the STOPPED transition.
    """

    def __init__(
        self,
        selectors: SelectorConfig,
        *,
        next_timeout_s: float = 12.0,
        poll_window_s: float = 2.5,
        poll_interval_s: float = 0.2,
        first_video_wait_s: float = 8.0,
        goto_timeout_ms: int = 60000,
    ) -> None:
        self.selectors = selectors
        self.next_timeout_s = next_timeout_s
        self.poll_window_s = poll_window_s
        self.poll_interval_s = poll_interval_s
        self.first_video_wait_s = first_video_wait_s
        self.goto_timeout_ms = goto_timeout_ms

    # SEARCHING

    async def open_first_video(self, page: Any, search_url: str, cancel: Optional[CancelToken] = None) -> str:
        if not re.match(r"^https?://", search_url or "", flags=re.IGNORECASE):
            raise InvalidSearchError(f"Bad URL: {search_url}")
        log_event(logger, logging.INFO, "Opening search page", url=search_url)
        try:
            await goto_with_fallback(page, search_url, timeout_ms=self.goto_timeout_ms)
        except RuntimeError as exc:
            raise ScrapeSetupError(f"search_page_unreachable:{exc}") from exc

        await sleep_within(None, 1.2, cancel)
        await self._wheel(page, 1200)
        await sleep_within(None, 0.6, cancel)

        probes = css_probes(self.selectors.search_result_links) + [
            AnchorPatternProbe(self.selectors.video_href_pattern)
        ]
        located = await first_located(page, probes)
        if located is None:
            raise ScrapeSetupError("Failed to find a video link on the search results page.")
        if located.element is not None:
            try:
                await located.element.click(delay=20, timeout=5000)
            except Exception:  # noqa: BLE001
                pass
        else:
            try:
                await goto_with_fallback(page, absolute_url(located.href or ""), timeout_ms=self.goto_timeout_ms)
            except RuntimeError as exc:
                raise ScrapeSetupError(f"first_video_unreachable:{exc}") from exc

        ready = await poll_until(
            lambda: self._looks_like_video(page),
            timeout_s=self.first_video_wait_s,
            interval_s=self.poll_interval_s,
            cancel=cancel,
        )
        if not ready:
            await self._press(page, "Enter")
            await sleep_within(None, 0.7, cancel)
        await self._focus(page, self.selectors.focus_after_open)
        await sleep_within(None, 0.4, cancel)
        log_event(logger, logging.INFO, "Opened first video", url=page.url, via=located.source, ready=ready)
        return str(page.url)

    async def open_start_url(self, page: Any, start_url: str, cancel: Optional[CancelToken] = None) -> str:
        log_event(logger, logging.INFO, "Opening start URL", url=start_url)
        try:
            await goto_with_fallback(page, start_url, timeout_ms=self.goto_timeout_ms)
        except RuntimeError as exc:
            raise ScrapeSetupError(f"start_url_unreachable:{exc}") from exc
        await sleep_within(None, 0.8, cancel)
        return str(page.url)

    async def _looks_like_video(self, page: Any) -> bool:
        if is_video_url(page.url):
            return True
        if await page.query_selector(self.selectors.video) is not None:
            return True
        return await page.query_selector(self.selectors.caption_signal) is not None

    # ADVANCING

    async def snapshot(self, page: Any) -> NavSnapshot:
        try:
            raw = await page.evaluate(
                SNAPSHOT_JS,
                {"videoSelector": self.selectors.video, "captionSelector": self.selectors.caption_signal},
            )
        except Exception:  # noqa: BLE001
            raw = {}
        raw = raw or {}
        return NavSnapshot(
            url=str(page.url),
            video_src=raw.get("videoSrc") or None,
            caption=str(raw.get("caption") or ""),
        )

    async def has_changed(self, page: Any, before: NavSnapshot) -> bool:
        if str(page.url) != before.url:
            return True
        current = await self.snapshot(page)
        if before.video_src and current.video_src and current.video_src != before.video_src:
            return True
        return bool(current.caption) and current.caption != before.caption

    def ladder(self) -> List[Tuple[str, Callable[[Any], Awaitable[None]]]]:
        async def next_control(page: Any) -> None:
            located = await first_located(page, css_probes(self.selectors.next_control))
            if located is not None and located.element is not None:
                await located.element.click(timeout=FOCUS_CLICK_TIMEOUT_MS)

        async def click_then_key(page: Any) -> None:
            try:
                await page.click("body", timeout=FOCUS_CLICK_TIMEOUT_MS)
            except Exception:  # noqa: BLE001
                pass
            await page.keyboard.press("ArrowDown")

        return [
            ("ArrowDown", lambda page: page.keyboard.press("ArrowDown")),
            ("ArrowRight", lambda page: page.keyboard.press("ArrowRight")),
            ("PageDown", lambda page: page.keyboard.press("PageDown")),
            ("wheel", lambda page: page.mouse.wheel(0, 1400)),
            ("next_control", next_control),
            ("click_then_ArrowDown", click_then_key),
        ]

    async def advance(
        self,
        page: Any,
        timeout_s: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
    ) -> NextVideoResult:
        started = time.monotonic()
        deadline = Deadline(self.next_timeout_s if timeout_s is None else timeout_s)
        attempts = 0

        try:
            await page.bring_to_front()
        except Exception:  # noqa: BLE001
            pass
        await self._focus(page, self.selectors.focus_before_advance)

        if not is_video_url(page.url):
            attempts += 1
            await self._press(page, "Enter")
            await sleep_within(deadline, 0.3, cancel)

        before = await self.snapshot(page)

        for name, action in self.ladder():
            if deadline.expired:
                break
            if cancel is not None:
                cancel.raise_if_cancelled()
            attempts += 1
            try:
                await action(page)
            except RunCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                log_event(logger, logging.DEBUG, "ladder_action_failed", action=name, error=str(exc)[:160])
            moved = await poll_until(
                lambda: self.has_changed(page, before),
                timeout_s=deadline.clamp(self.poll_window_s),
                interval_s=self.poll_interval_s,
                cancel=cancel,
            )
            if moved:
                if not is_video_url(page.url):
                    attempts += 1
                    await self._press(page, "Enter")
                    await sleep_within(None, 0.5, cancel)
                took_ms = int((time.monotonic() - started) * 1000)
                log_event(logger, logging.DEBUG, "advanced", action=name, attempts=attempts, tookMs=took_ms)
                return NextVideoResult(moved=True, attempts=attempts, took_ms=took_ms)

        return NextVideoResult(moved=False, attempts=attempts, took_ms=int((time.monotonic() - started) * 1000))

    # helpers

    async def _focus(self, page: Any, selectors: List[str]) -> None:
        for selector in selectors:
            try:
                element = await page.query_selector(selector)
            except Exception:  # noqa: BLE001
                continue
            if element is None:
                continue
            try:
                await element.click(delay=20, timeout=FOCUS_CLICK_TIMEOUT_MS)
            except Exception:  # noqa: BLE001
                pass
            return

    @staticmethod
    async def _press(page: Any, key: str) -> None:
        try:
            await page.keyboard.press(key)
        except Exception:  # noqa: BLE001
            pass

    @staticmethod
    async def _wheel(page: Any, delta_y: int) -> None:
        try:
            await page.mouse.wheel(0, delta_y)
        except Exception:  # noqa: BLE001
            pass
