from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from tiktok_scraper.config import settings


LOGGER_NAME = "tiktok-scraper"


def get_logger(component: str = "") -> logging.Logger:
    if not component:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def log_event(logger: logging.Logger, level: int, message: str, **meta: Any) -> None:
    """Log `message` with `meta` appended as JSON; optionally mirror it as one JSON line."""
    if meta:
        logger.log(level, "%s %s", message, json.dumps(meta, ensure_ascii=False, default=str))
    else:
        logger.log(level, "%s", message)
    if settings.scraper_log_json:
        record = {"ts": now_iso(), "svc": LOGGER_NAME, "level": logging.getLevelName(level).lower(), "message": message}
        record.update(meta)
        print(json.dumps(record, ensure_ascii=False, default=str), flush=True)
