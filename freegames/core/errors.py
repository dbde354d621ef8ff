# ===== ERRORS =====
from typing import List, Optional


class FreeGamesError(Exception):
    """Base class for errors raised by the scraping pipeline."""


class ParseError(FreeGamesError, ValueError):
    """Date or countdown text could not be parsed."""


class RenderTimeoutError(FreeGamesError):
    """A required page section never appeared within its deadline."""

    def __init__(self, selector: str, timeout: float, url: Optional[str] = None):
        self.selector = selector
        self.timeout = timeout
        self.url = url
        where = f" on {url}" if url else ""
        super().__init__(f"'{selector}' did not render within {timeout:.0f}s{where}")


class SelectorMismatchError(FreeGamesError):
    """Every selector in a required field's cascade came up empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"No selector matched required field '{field}'")


class EnrichmentFailure(FreeGamesError):
    """The network step of category inference failed."""


class PlatformScrapeFailure(FreeGamesError):
    """A whole platform's scrape failed and produced nothing usable."""

    def __init__(self, platform: str, reason: str, failed_sub_scrapes: Optional[List[str]] = None):
        self.platform = platform
        self.failed_sub_scrapes = failed_sub_scrapes or []
        super().__init__(f"{platform}: {reason}")
