"""Tests for reaching the first video and advancing between videos."""

import time

import pytest

from conftest import FakeElement, FakePage

from tiktok_scraper.errors import InvalidSearchError, RunCancelledError, ScrapeSetupError
from tiktok_scraper.navigator import SNAPSHOT_JS, Navigator
from tiktok_scraper.selectors import FIND_ANCHOR_HREF_JS
from tiktok_scraper.waits import CancelToken


@pytest.fixture
def navigator(selectors):
    return Navigator(selectors, next_timeout_s=0.5, poll_window_s=0.1, poll_interval_s=0.02, first_video_wait_s=0.2)


class TestAdvance:
    async def test_static_page_stops_within_deadline(self, navigator):
        page = FakePage(scripts={SNAPSHOT_JS: {"videoSrc": "blob:1", "caption": "same"}})

        started = time.monotonic()
        result = await navigator.advance(page)
        elapsed = time.monotonic() - started

        assert result.moved is False
        assert result.attempts >= 1
        assert elapsed < 0.5 + 0.3

    async def test_url_change_counts_as_moved(self, navigator):
        page = FakePage()
        page.on_key["ArrowDown"] = lambda: setattr(page, "url", "https://www.tiktok.com/@bob/video/2")

        result = await navigator.advance(page)

        assert result.moved is True
        assert result.attempts == 1

    async def test_video_src_change_counts_as_moved(self, navigator):
        state = {"src": "blob:1"}
        page = FakePage(scripts={SNAPSHOT_JS: lambda _: {"videoSrc": state["src"], "caption": ""}})
        page.on_key["ArrowRight"] = lambda: state.update(src="blob:2")

        result = await navigator.advance(page)

        assert result.moved is True
        assert page.keyboard.pressed == ["ArrowDown", "ArrowRight"]
        assert result.attempts == 2

    async def test_caption_change_counts_as_moved(self, navigator):
        state = {"caption": "first"}
        page = FakePage(scripts={SNAPSHOT_JS: lambda _: {"videoSrc": None, "caption": state["caption"]}})
        page.on_key["ArrowDown"] = lambda: state.update(caption="second")

        assert (await navigator.advance(page)).moved is True

    async def test_presses_enter_when_not_on_a_video(self, navigator):
        page = FakePage(url="https://www.tiktok.com/search?q=cats")

        result = await navigator.advance(page)

        assert page.keyboard.pressed[0] == "Enter"
        assert result.moved is False

    async def test_cancel_stops_advance(self, navigator):
        token = CancelToken()
        token.cancel()
        with pytest.raises(RunCancelledError):
            await navigator.advance(FakePage(), cancel=token)


class TestHasChanged:
    async def test_empty_caption_is_not_a_change(self, navigator):
        state = {"caption": "first"}
        page = FakePage(scripts={SNAPSHOT_JS: lambda _: {"videoSrc": None, "caption": state["caption"]}})
        before = await navigator.snapshot(page)
        state["caption"] = ""

        assert await navigator.has_changed(page, before) is False


class TestOpenFirstVideo:
    async def test_clicks_first_result_link(self, navigator, selectors):
        page = FakePage(url="about:blank")
        link = FakeElement(on_click=lambda: setattr(page, "url", "https://www.tiktok.com/@a/video/7"))
        page.elements[selectors.search_result_links[0]] = link

        url = await navigator.open_first_video(page, "https://www.tiktok.com/search?q=cats")

        assert link.clicks == 1
        assert url == "https://www.tiktok.com/@a/video/7"
        assert page.gotos == ["https://www.tiktok.com/search?q=cats"]

    async def test_falls_back_to_anchor_scan(self, navigator):
        page = FakePage(url="about:blank", scripts={FIND_ANCHOR_HREF_JS: "/@a/video/8"})

        url = await navigator.open_first_video(page, "https://www.tiktok.com/search?q=cats")

        assert url == "https://www.tiktok.com/@a/video/8"

    async def test_no_results_is_a_setup_error(self, navigator):
        with pytest.raises(ScrapeSetupError):
            await navigator.open_first_video(FakePage(url="about:blank"), "https://www.tiktok.com/search?q=cats")

    async def test_rejects_non_http_url(self, navigator):
        with pytest.raises(InvalidSearchError):
            await navigator.open_first_video(FakePage(), "javascript:alert(1)")
