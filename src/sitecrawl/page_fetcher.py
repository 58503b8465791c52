"""
Single-page fetch pipeline.

``PageFetcher.fetch`` owns one Playwright page from creation to close:
anti-detection, navigation through a cascade of load strategies, challenge
detection, human-like reading, content and link extraction, and optional HTML
archival.

Every failure that makes the page's result meaningless is raised as a
``PageFetchError`` subclass; the caller records it and moves on.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from .crawl_policy import CrawlPolicy
from .exceptions import ChallengeDetectedError, ExtractionError, NavigationError
from .html_storage import HtmlStorage
from .infrastructure.anti_detection import AntiDetection
from .infrastructure.timing_evasion import TimingEvasion
from .links import extract_links
from .models import FetchedPage
from .utils.challenge_handler import check_challenge, match_captcha_url
from .utils.human_simulator import HumanSimulator

logger = logging.getLogger(__name__)

# Tried in order; the first that succeeds wins
LOAD_STRATEGIES = ("domcontentloaded", "load", "networkidle")

# Timeout (ms) for the bare navigation and body wait of the last resort
LAST_RESORT_TIMEOUT = 5000

LINK_POLL_ATTEMPTS = 3

STRIPPED_TAGS = "script, style, noscript, iframe"

_CONTENT_SCRIPT = """
([selector, stripped]) => {
    let root = null;
    try {
        root = document.querySelector(selector);
    } catch (e) {}
    root = root || document.body;
    if (!root) {
        return { title: document.title || '', content: '' };
    }
    const clone = root.cloneNode(true);
    clone.querySelectorAll(stripped).forEach((el) => el.remove());
    return {
        title: document.title || '',
        content: clone.innerText || clone.textContent || ''
    };
}
"""

_LINK_COUNT_SCRIPT = "() => document.querySelectorAll('a[href]').length"


@dataclass(frozen=True)
class PageSnapshot:
    """Title and text as returned by the content script."""
    title: str
    content: str

    @classmethod
    def from_raw(cls, raw: Any) -> "PageSnapshot":
        """
        Validate the object returned by ``page.evaluate``.

        Raises:
            ExtractionError: If the shape is not ``{title: str, content: str}``
        """
        if not isinstance(raw, dict):
            raise ExtractionError(f"Unexpected content snapshot type: {type(raw).__name__}")
        title = raw.get("title", "")
        content = raw.get("content", "")
        if not isinstance(title, str) or not isinstance(content, str):
            raise ExtractionError("Content snapshot fields must be strings")
        return cls(title=title.strip(), content=content.strip())


class PageFetcher:
    """
    Fetches and extracts one page at a time from a shared browser context.

    Usage:
        fetcher = PageFetcher()
        fetched = await fetcher.fetch(context, url, policy, base_domain)
    """

    def __init__(
        self,
        anti_detection: Optional[AntiDetection] = None,
        simulator: Optional[HumanSimulator] = None,
        timing: Optional[TimingEvasion] = None,
        html_storage: Optional[HtmlStorage] = None,
    ):
        self.anti_detection = anti_detection or AntiDetection()
        self.simulator = simulator or HumanSimulator()
        self.timing = timing or TimingEvasion()
        self.html_storage = html_storage
        self._rng = random.Random()

    async def fetch(
        self,
        context,
        url: str,
        policy: CrawlPolicy,
        base_domain: str,
        collect_links: bool = True,
    ) -> FetchedPage:
        """
        Fetch ``url`` in a new page of ``context`` and extract its content.

        Args:
            context: Playwright BrowserContext owned by the current crawl
            url: Normalized URL to fetch
            policy: Crawl policy
            base_domain: Seed host without ``www.``, for link scoping
            collect_links: Skip link extraction when the caller won't follow them

        Returns:
            FetchedPage with title, text content and candidate links

        Raises:
            NavigationError: Every load strategy failed
            ChallengeDetectedError: The page is a CAPTCHA or bot challenge
            ExtractionError: Content could not be read from the DOM
        """
        page = await context.new_page()
        try:
            await self.anti_detection.apply_protections(page)
            await self.timing.wait_before_navigation()

            response = await self._load(page, url, policy)

            final_url = response.url if response is not None else page.url
            keyword = match_captcha_url(final_url)
            if keyword:
                logger.warning(f"Redirected to captcha page: {final_url}")
                raise ChallengeDetectedError("Redirected to captcha", url=url, reason=f"url:{keyword}")

            reason = await check_challenge(page)
            if reason:
                logger.warning(f"Captcha detected on {url}, skipping page")
                raise ChallengeDetectedError("Captcha detected", url=url, reason=reason)

            await self.simulator.emulate_reading(page)
            await page.wait_for_timeout(policy.content_settle_delay)
            await self._wait_for_links(page)

            snapshot = await self._extract_content(page, policy.content_selector)

            html_file_path = None
            if policy.save_html:
                html_file_path = await self._archive_html(page, url, base_domain)

            links = []
            if collect_links:
                links = await extract_links(page, base_domain, policy, url)

            return FetchedPage(
                url=url,
                final_url=final_url,
                title=snapshot.title or url,
                content=snapshot.content,
                links=links,
                html_file_path=html_file_path,
            )
        finally:
            await self._close(page)

    async def _load(self, page, url: str, policy: CrawlPolicy):
        """Navigate with each load strategy in turn, then two fallbacks."""
        for strategy in LOAD_STRATEGIES:
            try:
                await self.simulator.wiggle_mouse(page)
                await self.timing.wait_for_mouse()
                response = await page.goto(
                    url,
                    wait_until=strategy,
                    timeout=policy.navigation_timeout,
                )
                logger.debug(f"Page loaded using {strategy} strategy")
                return response
            except PlaywrightError as e:
                logger.debug(f"Failed to load {url} with {strategy}: {e}")
                if strategy != LOAD_STRATEGIES[-1]:
                    await self.timing.wait_after_failed_load()

        try:
            logger.debug("Trying to load page with minimal wait...")
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=policy.fallback_timeout,
            )
            logger.debug("Page loaded with minimal wait (fallback)")
            return response
        except PlaywrightError as e:
            logger.debug(f"Minimal-wait fallback failed for {url}: {e}")

        try:
            logger.debug("Waiting for body element to appear...")
            response = await page.goto(url, timeout=LAST_RESORT_TIMEOUT)
            await page.wait_for_selector("body", timeout=LAST_RESORT_TIMEOUT)
            logger.debug("Page body appeared (last resort)")
            return response
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load page: {e}", url=url) from e

    async def _wait_for_links(self, page) -> bool:
        """Give client-rendered pages a few chances to produce links."""
        for attempt in range(LINK_POLL_ATTEMPTS):
            try:
                await self.simulator.nudge_scroll(page)
                await page.wait_for_timeout(500 * (attempt + 1) + self._rng.uniform(0, 500))

                link_count = await page.evaluate(_LINK_COUNT_SCRIPT)
                if isinstance(link_count, int) and link_count > 0:
                    logger.debug(f"Found {link_count} links after attempt {attempt + 1}")
                    return True
            except PlaywrightError as e:
                logger.debug(f"Link poll attempt {attempt + 1} failed: {e}")

        logger.debug("No links found after waiting, trying to extract anyway")
        return False

    async def _extract_content(self, page, selector: str) -> PageSnapshot:
        try:
            raw = await page.evaluate(_CONTENT_SCRIPT, [selector, STRIPPED_TAGS])
        except PlaywrightError as e:
            raise ExtractionError(f"Failed to extract content: {e}", url=page.url) from e
        return PageSnapshot.from_raw(raw)

    async def _archive_html(self, page, url: str, base_domain: str) -> Optional[str]:
        """Save raw HTML; failures are logged, never raised."""
        storage = self.html_storage or HtmlStorage()
        try:
            html = await page.content()
            if not html:
                return None
            loop = asyncio.get_running_loop()
            saved = await loop.run_in_executor(None, storage.save_html, html, url, base_domain)
            logger.debug(f"Saved HTML file for {url}: {saved.file_path}")
            return saved.file_path
        except Exception as e:
            logger.warning(f"Failed to save HTML file for {url}: {e}")
            return None

    async def _close(self, page) -> None:
        try:
            await page.close()
        except Exception as e:
            logger.debug(f"Failed to close page: {e}")
