"""Stealth browser site crawler producing text content for RAG ingestion."""

__version__ = "0.1.0"

from sitecrawl.site_crawler import SiteCrawler, crawl_site, crawl_sync
from sitecrawl.page_fetcher import PageFetcher
from sitecrawl.crawl_policy import CrawlPolicy, DEFAULT_POLICY, FAST_POLICY
from sitecrawl.browser_config import BrowserConfig
from sitecrawl.models import (
    CrawledPage,
    CrawlError,
    CrawlResult,
    CrawlState,
    FetchedPage,
)
from sitecrawl.exceptions import (
    CrawlerError,
    InvalidSeedUrlError,
    BrowserContextError,
    PageFetchError,
    NavigationError,
    ChallengeDetectedError,
    ExtractionError,
)
from sitecrawl.urls import normalize_url
from sitecrawl.links import should_crawl
from sitecrawl.html_storage import HtmlStorage
from sitecrawl.config import settings

from sitecrawl.infrastructure import (
    AntiDetection,
    BrowserSession,
    TimingEvasion,
)

__all__ = [
    "SiteCrawler",
    "crawl_site",
    "crawl_sync",
    "PageFetcher",
    "CrawlPolicy",
    "DEFAULT_POLICY",
    "FAST_POLICY",
    "BrowserConfig",
    "CrawledPage",
    "CrawlError",
    "CrawlResult",
    "CrawlState",
    "FetchedPage",
    "CrawlerError",
    "InvalidSeedUrlError",
    "BrowserContextError",
    "PageFetchError",
    "NavigationError",
    "ChallengeDetectedError",
    "ExtractionError",
    "normalize_url",
    "should_crawl",
    "HtmlStorage",
    "settings",
    "AntiDetection",
    "BrowserSession",
    "TimingEvasion",
]
