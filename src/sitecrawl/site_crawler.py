"""
Depth-first site crawler.

Walks a site from a seed URL inside one isolated browser context, fetching
pages one at a time and collecting their text for the content-processing
step. Traversal is bounded by the policy's depth and page budgets, scoped
by domain and include/exclude patterns, and paced with randomized delays
between sibling requests.
"""

import asyncio
import logging
import time
from typing import Any, List, Mapping, Optional, Tuple

from .browser_config import BrowserConfig, config_from_settings
from .crawl_policy import CrawlPolicy
from .exceptions import InvalidSeedUrlError
from .infrastructure.browser_session import BrowserSession
from .infrastructure.timing_evasion import TimingEvasion
from .links import should_crawl
from .models import CrawledPage, CrawlResult, CrawlState
from .page_fetcher import PageFetcher
from .urls import host_of, normalize_url, strip_www

logger = logging.getLogger(__name__)

# (url, depth, paced) where paced marks a child that waits before its visit
_WorkItem = Tuple[str, int, bool]


class SiteCrawler:
    """
    Crawls one site per ``crawl`` call using a shared browser session.

    Usage:
        async with BrowserSession() as session:
            crawler = SiteCrawler(session)
            result = await crawler.crawl("https://example.com", CrawlPolicy(max_pages=20))
    """

    def __init__(
        self,
        session: BrowserSession,
        fetcher: Optional[PageFetcher] = None,
        timing: Optional[TimingEvasion] = None,
    ):
        """
        Initialize the crawler.

        Args:
            session: Started browser session providing contexts
            fetcher: Page fetcher; a default one is created if omitted
            timing: Pacing between sibling requests; shares the fetcher's
                if omitted
        """
        self.session = session
        self.fetcher = fetcher or PageFetcher()
        self.timing = timing or self.fetcher.timing

    async def crawl(
        self,
        seed_url: str,
        policy: Optional[CrawlPolicy] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CrawlResult:
        """
        Crawl a site starting from ``seed_url``.

        Args:
            seed_url: Absolute http(s) URL to start from
            policy: Crawl policy; defaults are used if omitted
            cancel_event: When set, no further pages are scheduled and the
                partial result is returned

        Returns:
            CrawlResult with pages in depth-first fetch order and per-page errors

        Raises:
            InvalidSeedUrlError: If the seed URL cannot be normalized
            BrowserContextError: If no browser context could be acquired
        """
        policy = policy or CrawlPolicy()

        seed = normalize_url(seed_url)
        if seed is None:
            raise InvalidSeedUrlError(seed_url)

        base_domain = strip_www(host_of(seed))
        state = CrawlState()
        deadline = None
        if policy.crawl_timeout is not None:
            deadline = time.monotonic() + policy.crawl_timeout

        logger.info(
            f"Starting crawl of {seed} "
            f"(max_depth={policy.max_depth}, max_pages={policy.max_pages})"
        )
        self.timing.reset_session()

        context = await self.session.new_context()
        try:
            await self._traverse(context, seed, base_domain, policy, state, cancel_event, deadline)
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Failed to close browser context: {e}")

        result = CrawlResult.from_state(state)
        logger.info(
            f"Crawl of {seed} finished: {result.total_pages} pages, {len(result.errors)} errors"
        )
        logger.debug(f"Pacing stats: {self.timing.get_stats()}")
        return result

    async def _traverse(
        self,
        context,
        seed: str,
        base_domain: str,
        policy: CrawlPolicy,
        state: CrawlState,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> None:
        """
        Visit pages depth-first with an explicit stack.

        Children are pushed in reverse so they pop in extraction order, which
        gives the same visiting order as a recursive walk.
        """
        stack: List[_WorkItem] = [(seed, 0, False)]

        while stack:
            if self._should_stop(cancel_event, deadline):
                break

            url, depth, paced = stack.pop()

            normalized = self._admit(url, depth, base_domain, policy, state)
            if normalized is None:
                continue

            # Only links that will actually be fetched are paced
            if paced:
                await self.timing.wait_between_pages()

            children = await self._visit(context, normalized, depth, base_domain, policy, state)
            for link in reversed(children):
                stack.append((link, depth + 1, True))

    def _admit(
        self,
        url: str,
        depth: int,
        base_domain: str,
        policy: CrawlPolicy,
        state: CrawlState,
    ) -> Optional[str]:
        """Return the normalized URL if it should be fetched, else None."""
        if depth > policy.max_depth or state.budget_reached(policy.max_pages):
            return None

        normalized = normalize_url(url, base_domain)
        if normalized is None:
            logger.debug(f"Skipping unparseable URL: {url}")
            return None

        if normalized in state.visited:
            return None

        if not should_crawl(normalized, base_domain, policy):
            logger.debug(f"Skipping filtered URL: {normalized}")
            return None

        return normalized

    async def _visit(
        self,
        context,
        normalized: str,
        depth: int,
        base_domain: str,
        policy: CrawlPolicy,
        state: CrawlState,
    ) -> List[str]:
        """Fetch one admitted page and return the links to schedule below it."""
        state.reserve(normalized)
        logger.info(f"Crawling: {normalized} (depth: {depth})")

        try:
            fetched = await self.fetcher.fetch(
                context,
                normalized,
                policy,
                base_domain,
                collect_links=depth < policy.max_depth,
            )
        except Exception as e:
            error = state.add_error(normalized, str(e) or e.__class__.__name__)
            logger.warning(f"Error crawling {normalized}: {error.message}")
            return []

        if fetched.has_content:
            state.add_page(CrawledPage(
                url=normalized,
                title=fetched.title,
                content=fetched.content,
                html_file_path=fetched.html_file_path,
            ))
        else:
            logger.debug(f"No content extracted from {normalized}")

        if depth < policy.max_depth and not state.budget_reached(policy.max_pages):
            logger.debug(f"Scheduling {len(fetched.links)} links from {normalized}")
            return fetched.links
        return []

    def _should_stop(self, cancel_event: Optional[asyncio.Event], deadline: Optional[float]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Crawl cancelled, returning partial result")
            return True
        if deadline is not None and time.monotonic() >= deadline:
            logger.info("Crawl timeout reached, returning partial result")
            return True
        return False


async def crawl_site(
    url: str,
    options: Optional[Mapping[str, Any]] = None,
    browser_config: Optional[BrowserConfig] = None,
) -> CrawlResult:
    """
    Crawl one site in a browser session of its own.

    Args:
        url: Seed URL
        options: Policy options (snake_case or camelCase keys)
        browser_config: Browser settings; environment settings if omitted

    Returns:
        CrawlResult
    """
    policy = CrawlPolicy.from_options(options)
    async with BrowserSession(browser_config or config_from_settings()) as session:
        return await SiteCrawler(session).crawl(url, policy)


def crawl_sync(
    url: str,
    options: Optional[Mapping[str, Any]] = None,
    browser_config: Optional[BrowserConfig] = None,
) -> CrawlResult:
    """Synchronous wrapper around ``crawl_site``."""
    return asyncio.run(crawl_site(url, options, browser_config))
