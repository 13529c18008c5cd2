#!/usr/bin/env python3
"""Operator script: run one scrape in a visible browser and print the run summary as JSON.

Captchas are handled on this console (solve in the browser window, then press Enter).
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict

from tiktok_scraper.annotate import annotate, filter_matches
from tiktok_scraper.config import Settings, settings
from tiktok_scraper.errors import CheckpointError, InvalidSearchError, ScrapeSetupError
from tiktok_scraper.processor import build_service


def _summary(items: list, metrics: Any) -> Dict[str, Any]:
    return {
        "run_id": metrics.run_id,
        "mode": metrics.mode,
        "videos_targeted": metrics.videos_targeted,
        "videos_scraped": metrics.videos_scraped,
        "nav_failures": metrics.nav_failures,
        "captchas": metrics.captchas,
        "total_comments": metrics.total_comments,
        "duration_ms": metrics.duration_ms,
        "matched": sum(1 for item in items if item.keyword_mentioned),
    }


def _run_settings(args: argparse.Namespace) -> Settings:
    update: Dict[str, Any] = {"scraper_captcha_mode": "console"}
    if args.headless:
        update["scraper_headless"] = True
    return settings.model_copy(update=update)


async def _run(args: argparse.Namespace) -> int:
    service = build_service(_run_settings(args))
    try:
        if args.start_url:
            result = await service.runner.scrape_sequence(args.start_url, args.max_count)
        else:
            result = await service.runner.scrape_from_search(args.search, args.max_count)
    except (InvalidSearchError, ScrapeSetupError, CheckpointError) as exc:
        print(json.dumps({"ok": False, "error": type(exc).__name__, "detail": str(exc)}, ensure_ascii=False, indent=2))
        return 1
    finally:
        await service.shutdown()

    items = filter_matches(annotate(result.items, args.keyword), args.only_matches) if args.keyword else result.items
    print(json.dumps({"ok": True, "summary": _summary(items, result.metrics)}, ensure_ascii=False, indent=2))

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "items": [item.model_dump(mode="json", by_alias=True) for item in items],
            "metrics": result.metrics.model_dump(mode="json", by_alias=True),
        }
        out.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        print(json.dumps({"step": "written", "path": str(out)}, ensure_ascii=False))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Scrape probe (visible browser, console captcha handling)")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--search", help="search phrase or TikTok search URL")
    source.add_argument("--start-url", help="video URL to start a sequence run from")
    parser.add_argument("--keyword", default="", help="annotate items mentioning this keyword")
    parser.add_argument("--only-matches", action="store_true")
    parser.add_argument("--max-count", type=int, default=3)
    parser.add_argument("--headless", action="store_true")
    parser.add_argument("--output", default="", help="write items + metrics JSON here")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
