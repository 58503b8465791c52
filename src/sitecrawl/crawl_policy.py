"""
Crawl policy for a single site crawl.

This module provides a validated Pydantic model describing how far and how wide
one crawl may go, plus pre-configured instances for common use cases.
"""
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field


# Option names accepted from upstream callers that speak camelCase
_CAMEL_CASE_OPTIONS = {
    "maxDepth": "max_depth",
    "maxPages": "max_pages",
    "timeout": "navigation_timeout",
    "navigationTimeout": "navigation_timeout",
    "waitForContent": "content_settle_delay",
    "contentSettleDelay": "content_settle_delay",
    "contentSelector": "content_selector",
    "sameDomainOnly": "same_domain_only",
    "excludePatterns": "exclude_patterns",
    "includePatterns": "include_patterns",
    "saveHtml": "save_html",
    "crawlTimeout": "crawl_timeout",
}


class CrawlPolicy(BaseModel):
    """
    Policy for one ``SiteCrawler.crawl`` invocation.

    Immutable once created; every field is validated by Pydantic.
    """

    max_depth: int = Field(
        default=2,
        description="Maximum link distance from the seed URL (seed is depth 0)",
        ge=0,
    )

    max_pages: int = Field(
        default=50,
        description="Maximum number of pages with content in the result",
        ge=1,
    )

    navigation_timeout: int = Field(
        default=60000,
        description="Timeout for each navigation attempt in milliseconds",
        ge=1000,
        le=300000,
    )

    content_settle_delay: int = Field(
        default=3000,
        description="Milliseconds to wait for client-side rendering after load",
        ge=0,
        le=60000,
    )

    content_selector: str = Field(
        default="body",
        description="CSS selector whose visible text becomes the page content",
        min_length=1,
    )

    same_domain_only: bool = Field(
        default=True,
        description="Only follow links on the seed's host (www-insensitive)",
    )

    exclude_patterns: List[str] = Field(
        default_factory=list,
        description="Substrings; URLs containing any of them are never crawled",
    )

    include_patterns: List[str] = Field(
        default_factory=list,
        description="Substrings; when set, URLs must contain at least one",
    )

    save_html: bool = Field(
        default=False,
        description="Archive the raw HTML of each fetched page to disk",
    )

    crawl_timeout: Optional[float] = Field(
        default=None,
        description="Crawl-wide deadline in seconds. None disables it.",
        gt=0,
    )

    class Config:
        """Pydantic model configuration."""
        frozen = True
        extra = "forbid"

    @property
    def fallback_timeout(self) -> int:
        """Timeout for the shortened retry after the main load cascade."""
        return min(self.navigation_timeout, 10000)

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "CrawlPolicy":
        """Build a policy from a partial options mapping.

        Accepts snake_case field names or the camelCase names used by the
        upload endpoint (``maxDepth``, ``waitForContent``...). Missing keys
        keep their defaults; ``None`` values are ignored.
        """
        if not options:
            return cls()

        values = {}
        for key, value in options.items():
            if value is None:
                continue
            values[_CAMEL_CASE_OPTIONS.get(key, key)] = value
        return cls(**values)


# --- Pre-configured Instances for Common Use Cases ---

DEFAULT_POLICY = CrawlPolicy()

FAST_POLICY = CrawlPolicy(
    max_depth=1,
    max_pages=10,
    navigation_timeout=15000,
    content_settle_delay=1000,
)
"""
Fast policy for previews: shallow, small and quick to give up on slow pages.
"""
