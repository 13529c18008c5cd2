from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Any, Callable, List, Optional

from tiktok_scraper.errors import CaptchaRequiredError, CaptchaTimeoutError, RunCancelledError
from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.metrics import RunMetricsCollector
from tiktok_scraper.runs import RunControl
from tiktok_scraper.selectors import SelectorConfig, css_probes, first_located
from tiktok_scraper.waits import Deadline


logger = get_logger("checkpoint")

CAPTCHA_MODES = ("console", "signal", "fail")
OPERATOR_PROMPT = ">> Solve the captcha in Chrome, then press Enter here."


class ConsoleLineReader:
    """Reads operator lines on one daemon thread and hands them to the event loop through a queue.

    End of input is delivered once as None, after which `eof` stays set and the thread exits.
    """

    def __init__(self, read_line: Callable[[], str]) -> None:
        self._read_line = read_line
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue[Optional[str]]] = None
        self.eof = False

    def _started(self) -> asyncio.Queue[Optional[str]]:
        if self._queue is None:
            self._loop = asyncio.get_running_loop()
            self._queue = asyncio.Queue()
            threading.Thread(target=self._pump, name="captcha-console", daemon=True).start()
        return self._queue

    def _pump(self) -> None:
        while True:
            try:
                line = self._read_line()
            except (OSError, ValueError):
                line = ""
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, line or None)
            except RuntimeError:
                return
            if not line:
                return

    def discard_pending(self) -> None:
        """Drop lines typed before the current prompt."""
        queue = self._started()
        while not queue.empty():
            if queue.get_nowait() is None:
                self.eof = True

    async def next_line(self) -> Optional[str]:
        line = await self._started().get()
        if line is None:
            self.eof = True
        return line


class CaptchaCheckpoint:
    """Detects a challenge overlay before extraction and holds the run until it is cleared.

    Modes:
      console  prompt on stdout and wait for one line on stdin (or a resume signal);
               once stdin is closed only the resume signal can clear the wait
      signal   wait for RunControl.resume(), e.g. from the HTTP resume endpoint
      fail     raise CaptchaRequiredError immediately
    `wait_timeout_s` > 0 bounds the console/signal wait with CaptchaTimeoutError.
    """

    def __init__(
        self,
        selectors: SelectorConfig,
        *,
        mode: str = "console",
        wait_timeout_s: float = 0.0,
        read_line: Optional[Callable[[], str]] = None,
    ) -> None:
        mode = str(mode or "console").strip().lower()
        if mode not in CAPTCHA_MODES:
            raise ValueError(f"unknown captcha mode: {mode}")
        self.selectors = selectors
        self.mode = mode
        self.wait_timeout_s = float(wait_timeout_s or 0)
        self._console = ConsoleLineReader(read_line or sys.stdin.readline)

    async def detect(self, page: Any) -> bool:
        return await first_located(page, css_probes(self.selectors.captcha)) is not None

    async def check(self, page: Any, control: RunControl, metrics: RunMetricsCollector, index: int) -> bool:
        """Return True when a checkpoint was seen and cleared, False when none was present."""
        control.cancel_token.raise_if_cancelled()
        if not await self.detect(page):
            return False
        metrics.record_captcha()
        log_event(
            logger,
            logging.WARNING,
            "Captcha detected, waiting for operator",
            index=index,
            runId=control.run_id,
            mode=self.mode,
        )
        if self.mode == "fail":
            raise CaptchaRequiredError(f"captcha_required:run={control.run_id}:index={index}")

        control.suspend()
        try:
            await self._wait_for_operator(control)
        finally:
            control.mark_running()
        log_event(logger, logging.INFO, "Captcha cleared, resuming", index=index, runId=control.run_id)
        return True

    async def _wait_for_operator(self, control: RunControl) -> None:
        deadline = Deadline(self.wait_timeout_s) if self.wait_timeout_s > 0 else None
        resume_waiter = asyncio.ensure_future(control.wait_resumed())
        cancel_waiter = asyncio.ensure_future(control.cancel_token.wait())
        console_waiter: Optional[asyncio.Future[Any]] = None
        if self.mode == "console":
            print(OPERATOR_PROMPT, flush=True)
            self._console.discard_pending()
            if self._console.eof:
                self._log_console_closed(control)
            else:
                console_waiter = asyncio.ensure_future(self._console.next_line())
        try:
            while True:
                waiters: List[asyncio.Future[Any]] = [resume_waiter, cancel_waiter]
                if console_waiter is not None:
                    waiters.append(console_waiter)
                done, _ = await asyncio.wait(
                    waiters,
                    timeout=deadline.remaining() if deadline is not None else None,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if cancel_waiter in done:
                    raise RunCancelledError(control.cancel_token.reason or "cancelled")
                if resume_waiter in done:
                    return
                if console_waiter is not None and console_waiter in done:
                    if console_waiter.result() is not None:
                        return
                    console_waiter = None
                    self._log_console_closed(control)
                    continue
                raise CaptchaTimeoutError(
                    f"captcha_wait_timeout:run={control.run_id}:{int(self.wait_timeout_s * 1000)}ms"
                )
        finally:
            for fut in (resume_waiter, cancel_waiter, console_waiter):
                if fut is not None and not fut.done():
                    fut.cancel()

    def _log_console_closed(self, control: RunControl) -> None:
        log_event(logger, logging.WARNING, "Operator console closed, waiting for resume signal", runId=control.run_id)
