from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from tiktok_scraper.logs import now_iso
from tiktok_scraper.models import ActiveRun, RunMode, RunState
from tiktok_scraper.waits import CancelToken


class RunControl:
    """External handles on one in-flight run: its cancel token and its checkpoint resume signal."""

    def __init__(self, run_id: str, mode: RunMode, query_or_start_url: str) -> None:
        self.run_id = run_id
        self.mode = mode
        self.query_or_start_url = query_or_start_url
        self.started_at = now_iso()
        self.cancel_token = CancelToken()
        self.state: RunState = "running"
        self._resume = asyncio.Event()

    def suspend(self) -> None:
        self._resume.clear()
        self.state = "suspended"

    def resume(self) -> bool:
        if self.state != "suspended":
            return False
        self._resume.set()
        return True

    def mark_running(self) -> None:
        if self.state == "suspended":
            self.state = "running"

    async def wait_resumed(self) -> None:
        await self._resume.wait()

    def cancel(self, reason: str = "cancelled by operator") -> None:
        self.state = "cancelling"
        self.cancel_token.cancel(reason)

    def describe(self) -> ActiveRun:
        return ActiveRun(
            run_id=self.run_id,
            mode=self.mode,
            query_or_start_url=self.query_or_start_url,
            state=self.state,
            started_at=self.started_at,
        )


class RunRegistry:
    def __init__(self) -> None:
        self._runs: Dict[str, RunControl] = {}

    def register(self, control: RunControl) -> RunControl:
        self._runs[control.run_id] = control
        return control

    def unregister(self, run_id: str) -> None:
        self._runs.pop(run_id, None)

    def get(self, run_id: str) -> Optional[RunControl]:
        return self._runs.get(run_id)

    def list(self) -> List[ActiveRun]:
        return [control.describe() for control in self._runs.values()]
