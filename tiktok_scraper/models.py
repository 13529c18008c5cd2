from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


RunMode = Literal["search", "sequence"]
RunState = Literal["running", "suspended", "cancelling"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Comment(CamelModel):
    username: str = "unknown"
    text: str
    time: Optional[str] = None
    likes: Optional[int] = None


class VideoRecord(CamelModel):
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    caption: Optional[str] = None
    username: Optional[str] = None
    author_url: Optional[str] = None
    video_src: Optional[str] = None
    comments: List[Comment] = Field(default_factory=list)
    # Only set on annotated copies, never on cached records.
    keyword_mentioned: Optional[bool] = None


class PerVideoMetrics(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    index: int
    url_before: Optional[str] = None
    url_after: Optional[str] = None
    started_at: str
    ended_at: str
    duration_ms: int = 0
    extraction_ms: int = 0
    moved_to_next_ms: Optional[int] = None
    comments_count: int = 0
    nav_attempts: int = 0
    nav_succeeded: bool = False
    errors: List[str] = Field(default_factory=list)


class ScrapeRunMetrics(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    run_id: str
    mode: RunMode
    query_or_start_url: str
    headless: bool
    started_at: str
    ended_at: str
    duration_ms: int = 0
    videos_targeted: int = 0
    videos_scraped: int = 0
    nav_failures: int = 0
    captchas: int = 0
    total_comments: int = 0
    per_video: List[PerVideoMetrics] = Field(default_factory=list)


class ScrapeResult(CamelModel):
    items: List[VideoRecord] = Field(default_factory=list)
    metrics: ScrapeRunMetrics


class CacheEntry(CamelModel):
    items: List[VideoRecord] = Field(default_factory=list)
    metrics: ScrapeRunMetrics
    created_at: int = 0


class NextVideoResult(BaseModel):
    moved: bool
    attempts: int = 0
    took_ms: int = 0


class ScrapeRequest(CamelModel):
    search: str = Field(min_length=1)
    keyword: str = Field(min_length=1)
    max_count: int = Field(default=10, ge=1)
    show_video_only_with_match_keyword: bool = False
    force_refresh: bool = False


class ScrapeResponseData(CamelModel):
    keyword: str
    query: str
    from_cache: bool
    metrics: Optional[ScrapeRunMetrics] = None
    items: List[VideoRecord] = Field(default_factory=list)


class ScrapeResponse(CamelModel):
    message: str = "OK"
    data: ScrapeResponseData


class ActiveRun(CamelModel):
    run_id: str
    mode: RunMode
    query_or_start_url: str
    state: RunState
    started_at: str
