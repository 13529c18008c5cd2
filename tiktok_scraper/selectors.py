"""Selector candidates and probe strategies for the target page templates.

Every list is ordered: earlier entries win. The whole set can be replaced from a
JSON file (`SCRAPER_SELECTORS_FILE`) so layout drift is a config change.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, Field

from tiktok_scraper.config import settings


class SelectorConfig(BaseModel):
    search_result_links: List[str] = Field(default_factory=lambda: [
        'a[href*="/video/"]',
        '[data-e2e="search-video-item"] a[href*="/video/"]',
        'div[data-e2e="search-card"] a[href*="/video/"]',
    ])
    video_href_pattern: str = r"/video/"
    video: str = "video"
    caption_signal: str = '[data-e2e="video-desc"]'
    focus_after_open: List[str] = Field(default_factory=lambda: ["video", "main", "body"])
    focus_before_advance: List[str] = Field(default_factory=lambda: [
        "video", '[data-e2e="video-desc"]', "main", "body",
    ])
    next_control: List[str] = Field(default_factory=lambda: [
        'button[aria-label="Next"]', ".tiktok-xgplayer-next-btn", ".next-button",
    ])
    caption: List[str] = Field(default_factory=lambda: [
        '[data-e2e="video-desc"]',
        ".video-desc",
        'h1[class*="share-title"]',
        'div[data-testid="desc"]',
        ".tt-video-meta__desc",
    ])
    author_links: List[str] = Field(default_factory=lambda: [
        'a[href^="/@"]',
        '[data-e2e="browse-username"]',
        '[data-e2e="user-title"] a',
        ".video-owner a",
        ".share-title-container a",
    ])
    captcha: List[str] = Field(default_factory=lambda: [
        'iframe[src*="challenge"]',
        'iframe[title*="captcha"]',
        'div:has(> iframe[title*="captcha"])',
    ])
    comment_open: List[str] = Field(default_factory=lambda: [
        '[data-e2e="browse-comment-icon"]',
        '[data-e2e="comment-icon"]',
        '[data-e2e="comment-tab"]',
        'button[aria-label*="comment" i]',
        'button:has(svg[aria-label*="comment" i])',
        'button:has(path[d*="comment"])',
    ])
    comment_nodes: List[str] = Field(default_factory=lambda: [
        '[data-e2e="comment-level-1"]',
        '[data-e2e="comment-text"]',
    ])
    comment_containers: List[str] = Field(default_factory=lambda: [
        '[data-e2e="comment-list"]',
        '[data-e2e="browse-comment-viewport"]',
        'div[class*="CommentList"]',
        'div[class*="commentList"]',
    ])
    comment_content_containers: List[str] = Field(default_factory=lambda: [
        'div[class*="CommentContentContainer"]',
        'div[class*="DivCommentContentContainer"]',
        'div[class*="ContentContainer"]',
    ])
    comment_item_wrappers: List[str] = Field(default_factory=lambda: [
        'div[id][class*="CommentItemContainer"]',
        '[data-e2e="comment-item"]',
    ])
    comment_profile_links: List[str] = Field(default_factory=lambda: [
        'a[href^="/@"]',
        'a[href*="tiktok.com/@"]',
    ])
    comment_time: str = '[data-e2e^="comment-time"]'
    comment_likes: str = '[data-e2e="comment-like-count"]'


def load_selectors(path: str = "") -> SelectorConfig:
    source = path or settings.scraper_selectors_file
    if not source:
        return SelectorConfig()
    return SelectorConfig.model_validate_json(Path(source).read_text(encoding="utf-8"))


@dataclass
class Located:
    source: str
    element: Any = None
    href: Optional[str] = None


class ElementProbe(ABC):
    @abstractmethod
    async def locate(self, page: Any) -> Optional[Located]:
        raise NotImplementedError


class CssProbe(ElementProbe):
    def __init__(self, selector: str) -> None:
        self.selector = selector

    async def locate(self, page: Any) -> Optional[Located]:
        element = await page.query_selector(self.selector)
        if element is None:
            return None
        return Located(source=self.selector, element=element)


FIND_ANCHOR_HREF_JS = """
(pattern) => {
  const re = new RegExp(pattern);
  const anchors = Array.from(document.querySelectorAll('a'));
  const hit = anchors.find(a => re.test(a.getAttribute('href') || ''));
  return hit ? hit.getAttribute('href') : null;
}
"""


class AnchorPatternProbe(ElementProbe):
    """Scans every anchor for an href matching `pattern`; yields the href, not an element."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern

    async def locate(self, page: Any) -> Optional[Located]:
        href = await page.evaluate(FIND_ANCHOR_HREF_JS, self.pattern)
        if not href:
            return None
        return Located(source=f"anchor-scan:{self.pattern}", href=str(href))


def css_probes(selectors: Iterable[str]) -> List[ElementProbe]:
    return [CssProbe(s) for s in selectors]


async def first_located(page: Any, probes: Iterable[ElementProbe]) -> Optional[Located]:
    for probe in probes:
        try:
            found = await probe.locate(page)
        except Exception:  # noqa: BLE001
            continue
        if found is not None:
            return found
    return None
