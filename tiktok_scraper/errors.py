from __future__ import annotations


class ScrapeError(RuntimeError):
    retryable = False


class InvalidSearchError(ValueError):
    """Empty search input or a URL outside the target site."""


class ScrapeSetupError(ScrapeError):
    """The run could not reach its first video (results page or link missing)."""


class RunCancelledError(ScrapeError):
    pass


class CheckpointError(ScrapeError):
    retryable = True


class CaptchaRequiredError(CheckpointError):
    """Raised in fail-fast mode as soon as a challenge overlay is seen."""


class CaptchaTimeoutError(CheckpointError):
    """Raised when nobody cleared the challenge within the configured wait."""
