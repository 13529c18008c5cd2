"""Tests for per-video field extraction and precedence."""

from unittest.mock import AsyncMock, Mock

import pytest

from conftest import FakePage

from tiktok_scraper.errors import RunCancelledError
from tiktok_scraper.extractor import DOM_FIELDS_JS, PageExtractor, merge_fields
from tiktok_scraper.models import Comment

VIDEO_URL = "https://www.tiktok.com/@alice/video/1"


class TestMergeFields:
    def test_oembed_wins(self):
        record = merge_fields(
            current_url=VIDEO_URL + "?is_from_webapp=1",
            oembed={"title": "oembed caption", "author_name": "@Alice", "author_url": "https://www.tiktok.com/@Alice"},
            dom={"caption": "dom caption", "username": "dom_user", "ogTitle": "OG", "videoSrc": "blob:x"},
            comments=[],
        )

        assert record.url == VIDEO_URL
        assert record.caption == "oembed caption"
        assert record.description == "oembed caption"
        assert record.username == "Alice"
        assert record.author_url == "https://www.tiktok.com/@Alice"
        assert record.title == "OG"
        assert record.video_src == "blob:x"

    def test_dom_and_url_fallbacks(self):
        record = merge_fields(
            current_url=VIDEO_URL,
            oembed=None,
            dom={"caption": "  ", "metaDesc": "meta text", "username": "dom_user"},
            comments=[],
        )

        assert record.caption == "meta text"
        assert record.username == "alice"
        assert record.author_url == "https://www.tiktok.com/@alice"
        assert record.title == "meta text"

    def test_dom_username_when_url_has_no_handle(self):
        record = merge_fields(
            current_url="https://www.tiktok.com/foryou",
            oembed={},
            dom={"username": "@carol", "authorHref": "/@carol", "url": "https://www.tiktok.com/foryou"},
            comments=[],
        )

        assert record.username == "carol"
        assert record.author_url == "https://www.tiktok.com/@carol"
        assert record.url == "https://www.tiktok.com/foryou"
        assert record.title == "https://www.tiktok.com/foryou"

    def test_nothing_found_degrades_to_url_only(self):
        record = merge_fields(current_url="https://www.tiktok.com/foryou", oembed=None, dom={}, comments=[])

        assert record.url == "https://www.tiktok.com/foryou"
        assert record.caption is None
        assert record.username is None
        assert record.author_url is None
        assert record.comments == []


class TestPageExtractor:
    @pytest.fixture
    def resolver(self):
        mock = Mock()
        mock.resolve = AsyncMock(return_value={"title": "hello", "author_name": "alice"})
        return mock

    @pytest.fixture
    def harvester(self):
        mock = Mock()
        mock.harvest = AsyncMock(return_value=[Comment(username="bob", text="nice")])
        return mock

    async def test_combines_sources(self, selectors, resolver, harvester):
        page = FakePage(url=VIDEO_URL, scripts={DOM_FIELDS_JS: {"videoSrc": "blob:1", "ogTitle": "OG"}})
        extractor = PageExtractor(selectors, resolver, harvester, comment_limit=7, comment_timeout_s=3.0)

        extraction = await extractor.extract(page)

        assert extraction.errors == []
        assert extraction.record.caption == "hello"
        assert [c.text for c in extraction.record.comments] == ["nice"]
        resolver.resolve.assert_awaited_once_with(VIDEO_URL)
        assert harvester.harvest.await_args.kwargs["limit"] == 7
        assert harvester.harvest.await_args.kwargs["hard_timeout_s"] == 3.0

    async def test_partial_failures_are_reported_not_raised(self, selectors, resolver, harvester):
        page = FakePage(url=VIDEO_URL, scripts={DOM_FIELDS_JS: Mock(side_effect=RuntimeError("boom"))})
        harvester.harvest.side_effect = RuntimeError("pane gone")

        extraction = await PageExtractor(selectors, resolver, harvester).extract(page)

        assert extraction.record.url == VIDEO_URL
        assert extraction.record.comments == []
        assert any(e.startswith("dom_fields_failed:") for e in extraction.errors)
        assert any(e.startswith("comments_failed:") for e in extraction.errors)

    async def test_cancellation_is_not_swallowed(self, selectors, resolver, harvester):
        harvester.harvest.side_effect = RunCancelledError("stop")
        with pytest.raises(RunCancelledError):
            await PageExtractor(selectors, resolver, harvester).extract(FakePage(url=VIDEO_URL))
