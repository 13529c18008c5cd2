import logging

import uvicorn

from tiktok_scraper.config import settings


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, settings.scraper_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("tiktok_scraper.main:app", host="0.0.0.0", port=8000, log_config=None)
