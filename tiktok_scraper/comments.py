from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.models import Comment
from tiktok_scraper.selectors import SelectorConfig
from tiktok_scraper.waits import CancelToken, Deadline, sleep_within


logger = get_logger("comments")

UNKNOWN_AUTHOR = "unknown"
OPEN_CLICK_TIMEOUT_S = 2.0

FIND_SCROLL_CONTAINER_JS = """
({ nodes, containers }) => {
  const selectorFor = (el) => {
    if (el.dataset && el.dataset.e2e) return `[data-e2e="${el.dataset.e2e}"]`;
    const cls = el.getAttribute('class');
    if (cls) return `div.${cls.trim().split(/\\s+/).join('.')}`;
    return 'div';
  };
  const isScrollable = (el) => {
    const s = getComputedStyle(el);
    return (s.overflowY === 'auto' || s.overflowY === 'scroll') && el.scrollHeight > el.clientHeight;
  };
  let first = null;
  for (const sel of nodes) {
    first = document.querySelector(sel);
    if (first) break;
  }
  if (first) {
    let cur = first.parentElement;
    for (let i = 0; cur && i < 8 && cur !== document.body; i++) {
      if (isScrollable(cur)) return selectorFor(cur);
      cur = cur.parentElement;
    }
  }
  for (const sel of containers) {
    const known = document.querySelector(sel);
    if (known) return selectorFor(known);
  }
  return null;
}
"""

SCROLL_CONTAINER_STEP_JS = """
(sel) => {
  const el = document.querySelector(sel);
  if (!el) return false;
  el.scrollTop += el.clientHeight || 800;
  return true;
}
"""

SCROLL_CONTAINER_END_JS = """
(sel) => {
  const el = document.querySelector(sel);
  if (!el) return false;
  el.scrollTop = el.scrollHeight;
  return true;
}
"""

COUNT_COMMENT_NODES_JS = """
(sel) => document.querySelectorAll(sel).length
"""

EXTRACT_COMMENTS_JS = """
({ max, nodes, contentContainers, itemWrappers, profileLinks, timeSel, likesSel }) => {
  const handleRe = /\\/@([^/?#]+)/;
  const closestAny = (el, sels) => {
    for (const sel of sels) {
      const hit = el.closest(sel);
      if (hit) return hit;
    }
    return null;
  };
  const handleIn = (root) => {
    if (!root) return null;
    for (const sel of profileLinks) {
      for (const a of Array.from(root.querySelectorAll(sel))) {
        const m = (a.getAttribute('href') || '').match(handleRe);
        if (m && m[1]) return m[1];
      }
    }
    return null;
  };
  const findHandle = (el) => {
    const container = closestAny(el, contentContainers) || el.parentElement;
    const direct = handleIn(container);
    if (direct) return direct;
    let cur = container;
    for (let i = 0; cur && i < 5; i++) {
      const found = handleIn(cur);
      if (found) return found;
      cur = cur.parentElement;
    }
    return null;
  };
  const rows = [];
  for (const t of Array.from(document.querySelectorAll(nodes))) {
    const text = (t.textContent || '').replace(/\\s+/g, ' ').trim();
    if (!text) continue;
    const wrapper = closestAny(t, itemWrappers) || t.parentElement;
    rows.push({
      username: findHandle(t),
      text,
      time: ((wrapper && wrapper.querySelector(timeSel)) ? wrapper.querySelector(timeSel).textContent : '') || '',
      likes: ((wrapper && wrapper.querySelector(likesSel)) ? wrapper.querySelector(likesSel).textContent : '') || '',
    });
    if (rows.length >= max) break;
  }
  return rows;
}
"""


def parse_likes(raw: Any) -> Optional[int]:
    digits = re.sub(r"[^\d]", "", str(raw or ""))
    if not digits:
        return None
    return int(digits)


def comment_from_row(row: Dict[str, Any]) -> Optional[Comment]:
    text = re.sub(r"\s+", " ", str((row or {}).get("text") or "")).strip()
    if not text:
        return None
    time_text = str(row.get("time") or "").strip()
    return Comment(
        username=str(row.get("username") or "").strip() or UNKNOWN_AUTHOR,
        text=text,
        time=time_text or None,
        likes=parse_likes(row.get("likes")),
    )


class CommentHarvester:
    """Reveals the lazily-loaded comment pane by scrolling until `limit` nodes exist or time runs out."""

    def __init__(
        self,
        selectors: SelectorConfig,
        *,
        settle_ms: int = 350,
        stagnation_settle_ms: int = 300,
        pane_wait_ms: int = 3500,
        wheel_px: int = 1200,
        stagnation_escape: bool = True,
    ) -> None:
        self.selectors = selectors
        self.settle_s = settle_ms / 1000
        self.stagnation_settle_s = stagnation_settle_ms / 1000
        self.pane_wait_ms = pane_wait_ms
        self.wheel_px = wheel_px
        self.stagnation_escape = stagnation_escape

    @property
    def _node_selector(self) -> str:
        return ", ".join(self.selectors.comment_nodes)

    async def harvest(
        self,
        page: Any,
        limit: int = 20,
        hard_timeout_s: float = 12.0,
        cancel: Optional[CancelToken] = None,
    ) -> List[Comment]:
        if limit <= 0:
            return []
        deadline = Deadline(hard_timeout_s)
        await self._open_pane(page, deadline, cancel)
        await self._wait_for_nodes(page, deadline)
        container = await self._find_container(page)
        log_event(logger, logging.DEBUG, "comment_container", selector=container)

        last_count = 0
        rounds = 0
        while not deadline.expired:
            if cancel is not None:
                cancel.raise_if_cancelled()
            rounds += 1
            await self._scroll_step(page, container)
            await sleep_within(deadline, self.settle_s, cancel)
            count = await self._count(page, last_count)
            if count >= limit:
                break
            if self.stagnation_escape and container and count > 0 and count == last_count:
                await self._scroll_to_end(page, container)
                await sleep_within(deadline, self.stagnation_settle_s, cancel)
            last_count = count

        rows = await page.evaluate(
            EXTRACT_COMMENTS_JS,
            {
                "max": int(limit),
                "nodes": self._node_selector,
                "contentContainers": self.selectors.comment_content_containers,
                "itemWrappers": self.selectors.comment_item_wrappers,
                "profileLinks": self.selectors.comment_profile_links,
                "timeSel": self.selectors.comment_time,
                "likesSel": self.selectors.comment_likes,
            },
        )
        comments: List[Comment] = []
        for row in list(rows or []):
            comment = comment_from_row(row)
            if comment is None:
                continue
            comments.append(comment)
            if len(comments) >= limit:
                break
        log_event(logger, logging.DEBUG, "comments_harvested", count=len(comments), rounds=rounds)
        return comments

    async def _open_pane(self, page: Any, deadline: Deadline, cancel: Optional[CancelToken]) -> None:
        try:
            await page.keyboard.press("c")
        except Exception:  # noqa: BLE001
            pass
        await sleep_within(deadline, 0.3, cancel)
        for selector in self.selectors.comment_open:
            try:
                button = await page.query_selector(selector)
            except Exception:  # noqa: BLE001
                continue
            if button is None:
                continue
            if deadline.expired:
                break
            try:
                await button.click(timeout=max(1, int(deadline.clamp(OPEN_CLICK_TIMEOUT_S) * 1000)))
            except Exception:  # noqa: BLE001
                pass
            await sleep_within(deadline, 0.4, cancel)
            break

    async def _wait_for_nodes(self, page: Any, deadline: Deadline) -> None:
        timeout_ms = int(deadline.clamp(self.pane_wait_ms / 1000) * 1000)
        if timeout_ms <= 0:
            return
        try:
            await page.wait_for_selector(self._node_selector, state="attached", timeout=timeout_ms)
        except Exception:  # noqa: BLE001
            pass

    async def _find_container(self, page: Any) -> Optional[str]:
        try:
            found = await page.evaluate(
                FIND_SCROLL_CONTAINER_JS,
                {"nodes": self.selectors.comment_nodes, "containers": self.selectors.comment_containers},
            )
        except Exception:  # noqa: BLE001
            return None
        return str(found) if found else None

    async def _scroll_step(self, page: Any, container: Optional[str]) -> None:
        try:
            if container:
                await page.evaluate(SCROLL_CONTAINER_STEP_JS, container)
            else:
                await page.mouse.wheel(0, self.wheel_px)
        except Exception:  # noqa: BLE001
            pass

    async def _scroll_to_end(self, page: Any, container: str) -> None:
        try:
            await page.evaluate(SCROLL_CONTAINER_END_JS, container)
        except Exception:  # noqa: BLE001
            pass

    async def _count(self, page: Any, fallback: int) -> int:
        try:
            return int(await page.evaluate(COUNT_COMMENT_NODES_JS, self._node_selector) or 0)
        except Exception:  # noqa: BLE001
            return fallback
