from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qs, quote, urlparse

from tiktok_scraper.config import settings
from tiktok_scraper.errors import InvalidSearchError


VIDEO_PATH_RE = re.compile(r"/@([^/]+)/video/(\d+)")
HANDLE_IN_URL_RE = re.compile(r"tiktok\.com/@([^/?#]+)")
TARGET_HOST = "tiktok.com"


def base_url() -> str:
    return settings.scraper_base_url.rstrip("/")


def normalize_video_url(raw: str) -> Optional[str]:
    """Return the canonical `<base>/@user/video/<id>` form, or None when `raw` is not a video URL."""
    try:
        parsed = urlparse(str(raw or ""))
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    match = VIDEO_PATH_RE.search(parsed.path)
    if not match:
        return None
    return f"{base_url()}/@{match.group(1)}/video/{match.group(2)}"


def is_target_host(hostname: Optional[str]) -> bool:
    host = str(hostname or "").lower().rstrip(".")
    return host == TARGET_HOST or host.endswith("." + TARGET_HOST)


def is_video_url(url: str) -> bool:
    return "/video/" in str(url or "")


def username_from_url(url: str) -> Optional[str]:
    match = HANDLE_IN_URL_RE.search(str(url or ""))
    if match:
        return match.group(1)
    return None


def absolute_url(href: str) -> str:
    href = str(href or "").strip()
    if href.startswith("http"):
        return href
    return f"{base_url()}{href if href.startswith('/') else '/' + href}"


def build_search_url(raw: str) -> str:
    """Turn a phrase or a target-site URL into a results-page URL.

    Raises InvalidSearchError for empty input and for URLs from other sites.
    """
    text = str(raw or "").strip()
    if not text:
        raise InvalidSearchError("Empty search query")
    if re.match(r"^https?://", text, flags=re.IGNORECASE):
        parsed = urlparse(text)
        if not is_target_host(parsed.hostname):
            raise InvalidSearchError(f"Not a TikTok URL: {text}")
        phrase = str((parse_qs(parsed.query).get("q") or [""])[0] or "")
        if not phrase:
            phrase = parsed.path.replace("/", " ").strip()
        if not phrase:
            raise InvalidSearchError(f"No search phrase in URL: {text}")
        return f"{base_url()}/search?q={quote(phrase, safe='')}"
    return f"{base_url()}/search?q={quote(text, safe='')}"
