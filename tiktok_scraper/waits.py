from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from tiktok_scraper.errors import RunCancelledError


class CancelToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()


class Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.expires_at = clock() + max(0.0, float(seconds))

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def clamp(self, seconds: float) -> float:
        return max(0.0, min(float(seconds), self.remaining()))


async def sleep_within(deadline: Optional[Deadline], seconds: float, cancel: Optional[CancelToken] = None) -> None:
    """Sleep `seconds`, cut short at `deadline`."""
    if cancel is not None:
        cancel.raise_if_cancelled()
    delay = deadline.clamp(seconds) if deadline is not None else max(0.0, seconds)
    if delay > 0:
        await asyncio.sleep(delay)
    if cancel is not None:
        cancel.raise_if_cancelled()


async def poll_until(
    condition: Callable[[], Awaitable[bool]],
    *,
    timeout_s: float,
    interval_s: float = 0.2,
    cancel: Optional[CancelToken] = None,
) -> bool:
    """Evaluate `condition` every `interval_s` until it holds or `timeout_s` elapses.

    A condition that raises counts as not satisfied yet.
    """
    deadline = Deadline(timeout_s)
    while True:
        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            if await condition():
                return True
        except RunCancelledError:
            raise
        except Exception:  # noqa: BLE001
            pass
        if deadline.expired:
            return False
        await sleep_within(deadline, interval_s, cancel)
