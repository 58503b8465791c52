"""Data models for crawl results."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CrawledPage:
    """A page whose text content was extracted successfully."""

    url: str
    title: str
    content: str
    fetched_at: datetime = field(default_factory=datetime.now)
    html_file_path: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "timestamp": self.fetched_at.isoformat(),
        }
        if self.html_file_path:
            data["htmlFilePath"] = self.html_file_path
        return data


@dataclass(frozen=True)
class CrawlError:
    """A page that failed somewhere in its fetch/extract pipeline."""

    url: str
    message: str
    occurred_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "error": self.message,
            "timestamp": self.occurred_at.isoformat(),
        }


@dataclass
class FetchedPage:
    """Everything the page fetcher pulled out of one browser page."""

    url: str
    title: str
    content: str
    final_url: Optional[str] = None
    links: list[str] = field(default_factory=list)
    html_file_path: Optional[str] = None

    @property
    def has_content(self) -> bool:
        return bool(self.content and self.content.strip())


@dataclass
class CrawlState:
    """Mutable frontier state for a single crawl invocation.

    ``visited`` only grows; a URL is reserved before it is fetched so that it
    can never be scheduled twice.
    """

    visited: set[str] = field(default_factory=set)
    pages: list[CrawledPage] = field(default_factory=list)
    errors: list[CrawlError] = field(default_factory=list)

    def reserve(self, url: str) -> bool:
        """Mark ``url`` as visited. Returns False if it already was."""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True

    def add_page(self, page: CrawledPage) -> None:
        self.pages.append(page)

    def add_error(self, url: str, message: str) -> CrawlError:
        error = CrawlError(url=url, message=message)
        self.errors.append(error)
        return error

    def budget_reached(self, max_pages: int) -> bool:
        return len(self.pages) >= max_pages


@dataclass
class CrawlResult:
    """Terminal artifact of a crawl, handed to the content-processing step."""

    pages: list[CrawledPage] = field(default_factory=list)
    total_pages: int = 0
    errors: list[CrawlError] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: CrawlState) -> "CrawlResult":
        return cls(
            pages=list(state.pages),
            total_pages=len(state.pages),
            errors=list(state.errors),
        )

    def to_dict(self) -> dict:
        """Convert to the ``{pages, totalPages, errors}`` wire shape."""
        return {
            "pages": [page.to_dict() for page in self.pages],
            "totalPages": self.total_pages,
            "errors": [error.to_dict() for error in self.errors],
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
