"""Shared pytest fixtures for tiktok_scraper tests."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from tiktok_scraper.models import Comment, ScrapeRunMetrics, VideoRecord
from tiktok_scraper.selectors import SelectorConfig


class FakeElement:
    def __init__(self, on_click: Optional[Callable[[], None]] = None) -> None:
        self.clicks = 0
        self._on_click = on_click

    async def click(self, **kwargs: Any) -> None:
        self.clicks += 1
        if self._on_click is not None:
            self._on_click()


class FakeKeyboard:
    def __init__(self, page: "FakePage") -> None:
        self.page = page
        self.pressed: List[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)
        handler = self.page.on_key.get(key)
        if handler is not None:
            handler()


class FakeMouse:
    def __init__(self) -> None:
        self.wheels: List[int] = []

    async def wheel(self, delta_x: int, delta_y: int) -> None:
        self.wheels.append(delta_y)


class FakePage:
    """Minimal stand-in for a Playwright Page.

    `scripts` maps a JS constant to a value or to a callable taking the evaluate argument.
    `elements` maps a CSS selector to the element `query_selector` returns.
    """

    def __init__(
        self,
        url: str = "https://www.tiktok.com/@alice/video/1",
        *,
        elements: Optional[Dict[str, Any]] = None,
        scripts: Optional[Dict[str, Any]] = None,
        attached: Optional[List[str]] = None,
    ) -> None:
        self.url = url
        self.elements = dict(elements or {})
        self.scripts = dict(scripts or {})
        self.attached = list(attached or [])
        self.on_key: Dict[str, Callable[[], None]] = {}
        self.keyboard = FakeKeyboard(self)
        self.mouse = FakeMouse()
        self.gotos: List[str] = []
        self.closed = False
        self.headers: Dict[str, str] = {}
        self.viewport: Dict[str, int] = {}
        self.default_timeout: Optional[int] = None

    async def query_selector(self, selector: str) -> Any:
        return self.elements.get(selector)

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: int = 30000) -> Any:
        if selector in self.attached:
            return FakeElement()
        await asyncio.sleep(timeout / 1000)
        raise TimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script not in self.scripts:
            return None
        value = self.scripts[script]
        if callable(value):
            return value(arg)
        return value

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.gotos.append(url)
        self.url = url

    async def click(self, selector: str, **kwargs: Any) -> None:
        return None

    async def bring_to_front(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True

    async def set_extra_http_headers(self, headers: Dict[str, str]) -> None:
        self.headers = dict(headers)

    async def set_viewport_size(self, size: Dict[str, int]) -> None:
        self.viewport = dict(size)

    def set_default_timeout(self, timeout: int) -> None:
        self.default_timeout = timeout


def make_metrics(run_id: str = "run-1", **overrides: Any) -> ScrapeRunMetrics:
    data: Dict[str, Any] = {
        "run_id": run_id,
        "mode": "search",
        "query_or_start_url": "cats",
        "headless": True,
        "started_at": "2024-01-01T00:00:00.000Z",
        "ended_at": "2024-01-01T00:00:01.000Z",
    }
    data.update(overrides)
    return ScrapeRunMetrics(**data)


def make_record(url: str, description: str = "", comments: Optional[List[str]] = None) -> VideoRecord:
    return VideoRecord(
        url=url,
        title=description or url,
        description=description or None,
        caption=description or None,
        comments=[Comment(username="u", text=text) for text in (comments or [])],
    )


@pytest.fixture
def selectors() -> SelectorConfig:
    return SelectorConfig()


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()
