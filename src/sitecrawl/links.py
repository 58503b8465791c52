"""Outbound link extraction and crawl filtering.

DOM access is limited to reading raw ``href`` attributes; resolution,
scheme filtering and domain scoping all happen in Python.
"""
import logging
from typing import Any, Iterable, List
from urllib.parse import urldefrag, urljoin, urlsplit

from .crawl_policy import CrawlPolicy
from .exceptions import ExtractionError
from .urls import host_of, same_site

logger = logging.getLogger(__name__)

SKIPPED_SCHEMES = ("javascript:", "mailto:", "tel:", "data:", "file:")

_HREFS_SCRIPT = """
() => Array.from(document.querySelectorAll('a[href]'))
    .map((anchor) => anchor.getAttribute('href'))
    .filter((href) => href !== null)
"""


def validate_hrefs(raw: Any) -> List[str]:
    """
    Validate the result of the href collection script.

    Raises:
        ExtractionError: If the result is not a list of strings
    """
    if not isinstance(raw, list):
        raise ExtractionError(f"Unexpected href list type: {type(raw).__name__}")
    hrefs = [href for href in raw if isinstance(href, str)]
    if len(hrefs) != len(raw):
        logger.debug(f"Dropped {len(raw) - len(hrefs)} non-string href values")
    return hrefs


async def collect_hrefs(page) -> List[str]:
    """Collect every raw ``href`` attribute value on the page."""
    return validate_hrefs(await page.evaluate(_HREFS_SCRIPT))


def filter_links(
    hrefs: Iterable[str],
    base_domain: str,
    policy: CrawlPolicy,
    current_url: str,
) -> List[str]:
    """
    Turn raw hrefs into unique, absolute, crawlable candidate URLs.

    Args:
        hrefs: Raw href attribute values, in document order
        base_domain: Seed host without ``www.``
        policy: Crawl policy (only ``same_domain_only`` is consulted)
        current_url: URL of the page the hrefs came from

    Returns:
        Candidate URLs in first-seen order
    """
    try:
        current = urlsplit(current_url)
        origin_root = f"{current.scheme}://{current.netloc}/"
    except ValueError:
        origin_root = ""

    links: dict[str, None] = {}
    skipped = 0
    domain_mismatch = 0
    invalid = 0

    for href in hrefs:
        href = href.strip()
        if not href:
            skipped += 1
            continue

        try:
            absolute = urljoin(current_url, href)
        except ValueError:
            invalid += 1
            continue

        lowered = absolute.lower()
        if lowered.startswith(SKIPPED_SCHEMES):
            skipped += 1
            continue
        if not (lowered.startswith("http://") or lowered.startswith("https://")):
            skipped += 1
            continue

        if policy.same_domain_only and not same_site(host_of(absolute), base_domain):
            domain_mismatch += 1
            continue

        without_fragment = urldefrag(absolute).url
        if not without_fragment or without_fragment in (origin_root, current_url):
            skipped += 1
            continue

        links[without_fragment] = None

    logger.debug(
        f"Link extraction stats: valid={len(links)}, skipped={skipped}, "
        f"domainMismatch={domain_mismatch}, invalid={invalid}"
    )
    return list(links)


async def extract_links(page, base_domain: str, policy: CrawlPolicy, current_url: str) -> List[str]:
    """
    Extract candidate outbound links from a loaded page.

    Returns an empty list (and logs) if the DOM cannot be read.
    """
    try:
        hrefs = await collect_hrefs(page)
    except Exception as e:
        logger.warning(f"Failed to extract links: {e}")
        return []

    logger.debug(f"Total <a[href]> elements found: {len(hrefs)}")
    return filter_links(hrefs, base_domain, policy, current_url)


def should_crawl(url: str, base_domain: str, policy: CrawlPolicy) -> bool:
    """
    Decide whether a normalized URL may be scheduled.

    Exclude patterns win over include patterns.
    """
    host = host_of(url)
    if not host:
        return False

    if policy.same_domain_only and not same_site(host, base_domain):
        return False

    if any(pattern in url for pattern in policy.exclude_patterns):
        return False

    if policy.include_patterns and not any(pattern in url for pattern in policy.include_patterns):
        return False

    return True
