from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Iterable, Optional

from tiktok_scraper.models import CacheEntry, ScrapeRunMetrics, VideoRecord


def cache_key(search: str, max_count: int) -> str:
    return f"{str(search or '').strip().lower()}+{max_count}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ResultCache:
    """LRU of raw (unannotated) scrape results with an optional TTL.

    Recency order lives in an OrderedDict: the first key is the least recently used.
    `ttl_ms=0` disables expiry.
    """

    def __init__(self, max_entries: int = 200, ttl_ms: int = 0, clock: Optional[Callable[[], int]] = None) -> None:
        self.max_entries = int(max_entries)
        self.ttl_ms = int(ttl_ms)
        self._clock = clock or _now_ms
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            if self.ttl_ms > 0 and (self._clock() - hit.created_at) > self.ttl_ms:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return hit

    def set(self, key: str, items: Iterable[VideoRecord], metrics: ScrapeRunMetrics) -> CacheEntry:
        entry = CacheEntry(items=list(items), metrics=metrics, created_at=self._clock())
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            return removed

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries.keys())
