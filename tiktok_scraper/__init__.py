"""Browser-driven scraper for short-video metadata and comment threads."""

__version__ = "0.1.0"
