from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tiktok_scraper.comments import CommentHarvester
from tiktok_scraper.errors import RunCancelledError
from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.models import Comment, VideoRecord
from tiktok_scraper.oembed import MetadataResolver
from tiktok_scraper.selectors import SelectorConfig
from tiktok_scraper.urls import absolute_url, base_url, normalize_video_url, username_from_url
from tiktok_scraper.waits import CancelToken


logger = get_logger("extractor")

DOM_FIELDS_JS = """
({ captionSelectors, authorSelectors, videoSelector }) => {
  let caption = null;
  for (const s of captionSelectors) {
    const el = document.querySelector(s);
    if (el) {
      caption = (el.textContent || '').trim();
      if (caption) break;
    }
  }
  let username = null;
  let authorHref = null;
  for (const s of authorSelectors) {
    const el = document.querySelector(s);
    if (el) {
      const txt = (el.textContent || '').trim();
      if (txt && !/^profile$/i.test(txt)) username = txt;
      authorHref = (el.getAttribute && el.getAttribute('href')) || null;
      break;
    }
  }
  const video = document.querySelector(videoSelector);
  const ogTitle = document.querySelector('meta[property="og:title"]')?.getAttribute('content') || document.title || null;
  const metaDesc = document.querySelector('meta[property="og:description"]')?.getAttribute('content')
    || document.querySelector('meta[name="description"]')?.getAttribute('content') || null;
  return {
    caption,
    username,
    authorHref,
    videoSrc: (video && video.currentSrc) || null,
    ogTitle,
    metaDesc,
    url: location.href,
  };
}
"""


@dataclass
class Extraction:
    record: VideoRecord
    errors: List[str] = field(default_factory=list)


def _clean(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


def _strip_at(value: Any) -> Optional[str]:
    text = _clean(value)
    if text is None:
        return None
    return text.lstrip("@") or None


def merge_fields(
    *,
    current_url: str,
    oembed: Optional[Dict[str, Any]],
    dom: Dict[str, Any],
    comments: List[Comment],
) -> VideoRecord:
    """Resolve each field by precedence: oEmbed, then in-page DOM, then URL-derived fallback."""
    oembed = oembed or {}
    normalized = normalize_video_url(current_url)

    caption = _clean(oembed.get("title")) or _clean(dom.get("caption")) or _clean(dom.get("metaDesc"))
    username = (
        _strip_at(oembed.get("author_name"))
        or username_from_url(current_url)
        or _strip_at(dom.get("username"))
    )
    dom_author_href = _clean(dom.get("authorHref"))
    author_url = (
        _clean(oembed.get("author_url"))
        or (f"{base_url()}/@{username}" if username else None)
        or (absolute_url(dom_author_href) if dom_author_href else None)
    )
    title = _clean(dom.get("ogTitle")) or caption or (normalized or current_url)

    return VideoRecord(
        url=normalized or _clean(dom.get("url")) or current_url,
        title=title,
        description=caption,
        caption=caption,
        username=username,
        author_url=author_url,
        video_src=_clean(dom.get("videoSrc")),
        comments=comments,
    )


class PageExtractor:
    def __init__(
        self,
        selectors: SelectorConfig,
        resolver: MetadataResolver,
        harvester: CommentHarvester,
        *,
        comment_limit: int = 20,
        comment_timeout_s: float = 12.0,
    ) -> None:
        self.selectors = selectors
        self.resolver = resolver
        self.harvester = harvester
        self.comment_limit = comment_limit
        self.comment_timeout_s = comment_timeout_s

    async def extract(self, page: Any, cancel: Optional[CancelToken] = None) -> Extraction:
        errors: List[str] = []
        current_url = str(page.url)
        normalized = normalize_video_url(current_url)

        oembed = await self.resolver.resolve(normalized or current_url)

        dom: Dict[str, Any] = {}
        try:
            dom = dict(
                await page.evaluate(
                    DOM_FIELDS_JS,
                    {
                        "captionSelectors": self.selectors.caption,
                        "authorSelectors": self.selectors.author_links,
                        "videoSelector": self.selectors.video,
                    },
                )
                or {}
            )
        except Exception as exc:  # noqa: BLE001
            errors.append(f"dom_fields_failed:{str(exc)[:160]}")

        comments: List[Comment] = []
        try:
            comments = await self.harvester.harvest(
                page,
                limit=self.comment_limit,
                hard_timeout_s=self.comment_timeout_s,
                cancel=cancel,
            )
        except RunCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            errors.append(f"comments_failed:{str(exc)[:160]}")

        record = merge_fields(current_url=current_url, oembed=oembed, dom=dom, comments=comments)
        if errors:
            log_event(logger, logging.WARNING, "extraction_degraded", url=record.url, errors=errors)
        return Extraction(record=record, errors=errors)
