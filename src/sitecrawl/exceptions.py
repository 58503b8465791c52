"""Exception hierarchy for the site crawler.

Fatal errors (``InvalidSeedUrlError``, ``BrowserContextError``) propagate out of
``SiteCrawler.crawl``. ``PageFetchError`` and its subclasses only ever describe
a single page and are recorded in ``CrawlResult.errors``.
"""
from typing import Optional


class CrawlerError(Exception):
    """Base class for all crawler errors."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)


class InvalidSeedUrlError(CrawlerError):
    """Raised when the seed URL cannot be normalized."""

    def __init__(self, url: str):
        super().__init__(f"Invalid start URL: {url}", url=url)


class BrowserContextError(CrawlerError):
    """Raised when a browser context cannot be acquired."""


class PageFetchError(CrawlerError):
    """A single page could not be fetched or extracted."""


class NavigationError(PageFetchError):
    """Every load strategy failed for a page."""


class ChallengeDetectedError(PageFetchError):
    """The page was replaced by a CAPTCHA or bot challenge."""

    def __init__(self, message: str, url: Optional[str] = None, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message, url=url)


class ExtractionError(PageFetchError):
    """The DOM returned something that could not be turned into page content."""
