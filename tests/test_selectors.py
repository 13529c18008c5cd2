"""Tests for selector config loading and probe strategies."""

import json

from conftest import FakeElement, FakePage

from tiktok_scraper.selectors import (
    FIND_ANCHOR_HREF_JS,
    AnchorPatternProbe,
    CssProbe,
    SelectorConfig,
    css_probes,
    first_located,
    load_selectors,
)


class RaisingProbe(CssProbe):
    async def locate(self, page):
        raise RuntimeError("detached")


class TestLoadSelectors:
    def test_defaults_without_file(self):
        assert load_selectors("").video == "video"

    def test_file_overrides_named_lists_only(self, tmp_path):
        path = tmp_path / "selectors.json"
        path.write_text(json.dumps({"next_control": ["button.next"]}), encoding="utf-8")

        config = load_selectors(str(path))

        assert config.next_control == ["button.next"]
        assert config.caption == SelectorConfig().caption


class TestProbes:
    async def test_css_probe_returns_element(self):
        element = FakeElement()
        page = FakePage(elements={"a.video": element})

        found = await CssProbe("a.video").locate(page)

        assert found.element is element
        assert found.source == "a.video"

    async def test_anchor_probe_returns_href(self):
        page = FakePage(scripts={FIND_ANCHOR_HREF_JS: lambda pattern: "/@a/video/9" if pattern == "/video/" else None})

        found = await AnchorPatternProbe("/video/").locate(page)

        assert found.href == "/@a/video/9"
        assert found.element is None

    async def test_first_located_skips_failing_and_missing_probes(self):
        element = FakeElement()
        page = FakePage(elements={"b": element})

        found = await first_located(page, [RaisingProbe("x"), *css_probes(["a", "b"])])

        assert found.source == "b"

    async def test_first_located_none_when_nothing_matches(self):
        assert await first_located(FakePage(), css_probes(["a"])) is None
