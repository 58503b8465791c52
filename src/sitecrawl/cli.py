"""Command-line interface for the site crawler."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from sitecrawl.browser_config import BrowserConfig
from sitecrawl.config import settings
from sitecrawl.crawl_policy import CrawlPolicy
from sitecrawl.exceptions import CrawlerError
from sitecrawl.infrastructure.browser_session import BrowserSession
from sitecrawl.logging_config import setup_logging
from sitecrawl.site_crawler import SiteCrawler


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='sitecrawl',
        description='Crawl a website with a stealth browser and print its text content as JSON',
    )
    parser.add_argument('url', help='Seed URL to start crawling from')
    parser.add_argument('--max-depth', type=int, default=2,
                        help='Maximum link depth from the seed URL (default: 2)')
    parser.add_argument('--max-pages', type=int, default=50,
                        help='Maximum number of pages to collect (default: 50)')
    parser.add_argument('--timeout', type=int, default=60000,
                        help='Navigation timeout per attempt in ms (default: 60000)')
    parser.add_argument('--settle', type=int, default=3000,
                        help='Delay after load for client-side rendering in ms (default: 3000)')
    parser.add_argument('--selector', default='body',
                        help='CSS selector whose text becomes the page content (default: body)')
    parser.add_argument('--all-domains', action='store_true',
                        help='Follow links to other domains')
    parser.add_argument('--include', action='append', default=[], metavar='PATTERN',
                        help='Only crawl URLs containing PATTERN (repeatable)')
    parser.add_argument('--exclude', action='append', default=[], metavar='PATTERN',
                        help='Never crawl URLs containing PATTERN (repeatable)')
    parser.add_argument('--save-html', action='store_true',
                        help=f'Archive raw HTML under {settings.HTML_DIR}')
    parser.add_argument('--headed', action='store_true',
                        help='Show the browser window')
    parser.add_argument('--output', '-o', help='Write JSON to this file instead of stdout')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level (default: SITECRAWL_LOG_LEVEL or INFO)')
    return parser


def policy_from_args(args: argparse.Namespace) -> CrawlPolicy:
    """Build a crawl policy from parsed arguments."""
    return CrawlPolicy(
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        navigation_timeout=args.timeout,
        content_settle_delay=args.settle,
        content_selector=args.selector,
        same_domain_only=not args.all_domains,
        include_patterns=args.include,
        exclude_patterns=args.exclude,
        save_html=args.save_html,
    )


async def _run(url: str, policy: CrawlPolicy, browser_config: BrowserConfig):
    async with BrowserSession(browser_config) as session:
        return await SiteCrawler(session).crawl(url, policy)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the ``sitecrawl`` command."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        policy = policy_from_args(args)
    except ValidationError as e:
        print(f"❌ Invalid options:\n{e}", file=sys.stderr)
        return 2

    browser_config = BrowserConfig(
        headless=settings.HEADLESS and not args.headed,
        browser_type=settings.BROWSER_TYPE,
    )

    try:
        result = asyncio.run(_run(args.url, policy, browser_config))
    except CrawlerError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n⚠️  Crawl interrupted by user.", file=sys.stderr)
        return 130

    output = result.to_json(indent=2)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output, encoding='utf-8')
        print(f"✅ Saved {result.total_pages} pages to {output_path}", file=sys.stderr)
    else:
        print(output)

    if result.errors:
        print(f"⚠️  {len(result.errors)} pages failed", file=sys.stderr)
    return 0


if __name__ == '__main__':
    sys.exit(main())
