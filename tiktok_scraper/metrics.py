from __future__ import annotations

import time
from typing import List, Optional

from tiktok_scraper.logs import now_iso
from tiktok_scraper.models import NextVideoResult, PerVideoMetrics, RunMode, ScrapeRunMetrics


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class VideoStep:
    """Open traversal step; `RunMetricsCollector.end_video` seals it into a frozen PerVideoMetrics."""

    def __init__(self, index: int, url_before: Optional[str]) -> None:
        self.index = index
        self.url_before = url_before
        self.started_at = now_iso()
        self._t0 = time.monotonic()
        self.extraction_ms = 0
        self.comments_count = 0
        self.nav_attempts = 0
        self.nav_succeeded = False
        self.moved_to_next_ms: Optional[int] = None
        self.errors: List[str] = []
        self.sealed = False

    def seal(self, url_after: Optional[str]) -> PerVideoMetrics:
        self.sealed = True
        return PerVideoMetrics(
            index=self.index,
            url_before=self.url_before,
            url_after=url_after,
            started_at=self.started_at,
            ended_at=now_iso(),
            duration_ms=_elapsed_ms(self._t0),
            extraction_ms=self.extraction_ms,
            moved_to_next_ms=self.moved_to_next_ms,
            comments_count=self.comments_count,
            nav_attempts=self.nav_attempts,
            nav_succeeded=self.nav_succeeded,
            errors=list(self.errors),
        )


class RunMetricsCollector:
    def __init__(
        self,
        *,
        run_id: str,
        mode: RunMode,
        query_or_start_url: str,
        headless: bool,
        videos_targeted: int,
    ) -> None:
        self.run_id = run_id
        self.mode = mode
        self.query_or_start_url = query_or_start_url
        self.headless = headless
        self.videos_targeted = videos_targeted
        self.started_at = now_iso()
        self._t0 = time.monotonic()
        self.nav_failures = 0
        self.captchas = 0
        self.total_comments = 0
        self.per_video: List[PerVideoMetrics] = []
        self._final: Optional[ScrapeRunMetrics] = None

    def _check_open(self) -> None:
        if self._final is not None:
            raise RuntimeError(f"run {self.run_id} metrics already finalized")

    def begin_video(self, index: int, url_before: Optional[str]) -> VideoStep:
        self._check_open()
        return VideoStep(index, url_before)

    def record_captcha(self) -> None:
        self._check_open()
        self.captchas += 1

    def record_extraction(self, step: VideoStep, *, extraction_ms: int, comments_count: int) -> None:
        self._check_open()
        step.extraction_ms = extraction_ms
        step.comments_count = comments_count
        self.total_comments += comments_count

    def record_error(self, step: VideoStep, message: str) -> None:
        self._check_open()
        step.errors.append(message)

    def record_navigation(self, step: VideoStep, result: NextVideoResult) -> None:
        self._check_open()
        step.nav_attempts = result.attempts
        step.moved_to_next_ms = result.took_ms
        step.nav_succeeded = result.moved
        if not result.moved:
            self.nav_failures += 1

    def end_video(self, step: VideoStep, url_after: Optional[str]) -> PerVideoMetrics:
        self._check_open()
        if step.sealed:
            raise RuntimeError(f"video step {step.index} already sealed")
        sealed = step.seal(url_after)
        self.per_video.append(sealed)
        return sealed

    def finalize(self, videos_scraped: int) -> ScrapeRunMetrics:
        if self._final is not None:
            return self._final
        self._final = ScrapeRunMetrics(
            run_id=self.run_id,
            mode=self.mode,
            query_or_start_url=self.query_or_start_url,
            headless=self.headless,
            started_at=self.started_at,
            ended_at=now_iso(),
            duration_ms=_elapsed_ms(self._t0),
            videos_targeted=self.videos_targeted,
            videos_scraped=videos_scraped,
            nav_failures=self.nav_failures,
            captchas=self.captchas,
            total_comments=self.total_comments,
            per_video=list(self.per_video),
        )
        return self._final
