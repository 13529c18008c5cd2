from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from tiktok_scraper.config import settings
from tiktok_scraper.logs import get_logger, log_event


logger = get_logger("oembed")

OEMBED_FIELDS = ("title", "author_name", "author_url", "thumbnail_url")


class MetadataResolver:
    """Fetches canonical title/author for a video URL from the oEmbed endpoint.

    Network errors, non-2xx responses and unparseable bodies all resolve to None.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client

    async def resolve(self, video_url: str) -> Optional[Dict[str, Any]]:
        if not video_url:
            return None
        try:
            if self._client is not None:
                return self._parse(await self._fetch(self._client, video_url))
            timeout = httpx.Timeout(settings.scraper_http_timeout_s)
            async with httpx.AsyncClient(timeout=timeout) as client:
                return self._parse(await self._fetch(client, video_url))
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.DEBUG, "oembed_failed", url=video_url, error=str(exc)[:200])
            return None

    @staticmethod
    async def _fetch(client: httpx.AsyncClient, video_url: str) -> Optional[httpx.Response]:
        response = await client.get(
            settings.scraper_oembed_url,
            params={"url": video_url},
            headers={"User-Agent": "Mozilla/5.0"},
        )
        if response.status_code < 200 or response.status_code >= 300:
            return None
        return response

    @staticmethod
    def _parse(response: Optional[httpx.Response]) -> Optional[Dict[str, Any]]:
        if response is None:
            return None
        body = response.json()
        if not isinstance(body, dict):
            return None
        return {key: body.get(key) for key in OEMBED_FIELDS if body.get(key)}
