from __future__ import annotations

from typing import Iterable, List

from tiktok_scraper.models import VideoRecord
from tiktok_scraper.text_match import matches


def keyword_mentioned(item: VideoRecord, keyword: str) -> bool:
    if matches(item.description, keyword):
        return True
    return any(matches(c.text, keyword) for c in item.comments)


def annotate(items: Iterable[VideoRecord], keyword: str) -> List[VideoRecord]:
    """Return shallow copies flagged with `keyword_mentioned`; the inputs are left untouched."""
    return [item.model_copy(update={"keyword_mentioned": keyword_mentioned(item, keyword)}) for item in items]


def filter_matches(items: Iterable[VideoRecord], only_matches: bool) -> List[VideoRecord]:
    if not only_matches:
        return list(items)
    return [item for item in items if item.keyword_mentioned]
