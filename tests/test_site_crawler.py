"""Tests for the depth-first SiteCrawler.

Crawls run against an in-memory ``FakeSite`` through the real PageFetcher,
with every pacing delay disabled.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

pytest_plugins = ('pytest_asyncio',)

from fakes import ALWAYS_FAILS, FakePageSpec, FakeSite
from sitecrawl.crawl_policy import CrawlPolicy
from sitecrawl.exceptions import BrowserContextError, InvalidSeedUrlError
from sitecrawl.infrastructure.timing_evasion import create_timing_evasion
from sitecrawl.models import CrawlResult, FetchedPage
from sitecrawl.site_crawler import SiteCrawler, crawl_sync

SEED = "https://example.com/"


def page(title, hrefs=(), content=None, **kwargs):
    return FakePageSpec(
        title=title,
        content=content if content is not None else f"{title} body text",
        hrefs=list(hrefs),
        **kwargs,
    )


def make_crawler(site, fetcher):
    return SiteCrawler(site.session(), fetcher=fetcher)


class TestTraversal:
    """Test cases for traversal order and scoping."""

    @pytest.mark.asyncio
    async def test_seed_only_at_depth_zero(self, fast_fetcher):
        """Test max_depth=0 fetches the seed and follows nothing."""
        site = FakeSite({
            SEED: page("Home", ["/a", "/b"]),
            "https://example.com/a": page("A"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED, CrawlPolicy(max_depth=0))

        assert [p.url for p in result.pages] == [SEED]
        assert result.total_pages == 1
        assert site.visits == [SEED]

    @pytest.mark.asyncio
    async def test_javascript_only_link_discovers_nothing(self, fast_fetcher):
        """Test a javascript: href is never followed."""
        site = FakeSite({SEED: page("Home", ["javascript:void(0)"])})

        result = await make_crawler(site, fast_fetcher).crawl(SEED)

        assert site.visits == [SEED]
        assert result.total_pages == 1
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_depth_first_order(self, fast_fetcher):
        """Test children are visited depth-first in extraction order."""
        site = FakeSite({
            SEED: page("Home", ["/a", "/b"]),
            "https://example.com/a": page("A", ["/a/1"]),
            "https://example.com/a/1": page("A1"),
            "https://example.com/b": page("B"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED)

        expected = [
            SEED,
            "https://example.com/a",
            "https://example.com/a/1",
            "https://example.com/b",
        ]
        assert site.visits == expected
        assert [p.url for p in result.pages] == expected

    @pytest.mark.asyncio
    async def test_depth_limit(self, fast_fetcher):
        """Test no page deeper than max_depth is fetched."""
        site = FakeSite({
            SEED: page("Home", ["/1"]),
            "https://example.com/1": page("One", ["/2"]),
            "https://example.com/2": page("Two", ["/3"]),
            "https://example.com/3": page("Three"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED, CrawlPolicy(max_depth=2))

        assert site.visits == [SEED, "https://example.com/1", "https://example.com/2"]
        assert result.total_pages == 3

    @pytest.mark.asyncio
    async def test_each_url_fetched_once(self, fast_fetcher):
        """Test cycles and repeated links never refetch a URL."""
        site = FakeSite({
            SEED: page("Home", ["/a", "/b"]),
            "https://example.com/a": page("A", ["/b", "/#top"]),
            "https://example.com/b": page("B", ["/a"]),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED, CrawlPolicy(max_depth=3))

        assert site.visits == [SEED, "https://example.com/a", "https://example.com/b"]
        urls = [p.url for p in result.pages]
        assert len(urls) == len(set(urls))

    @pytest.mark.asyncio
    async def test_query_order_variants_fetched_once(self, fast_fetcher):
        """Test links differing only by query order are one page."""
        site = FakeSite({
            SEED: page("Home", ["/p?a=1&b=2", "/p?b=2&a=1"]),
            "https://example.com/p?a=1&b=2": page("P"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED)

        assert site.visits == [SEED, "https://example.com/p?a=1&b=2"]
        assert result.total_pages == 2

    @pytest.mark.asyncio
    async def test_www_links_stay_in_scope(self, fast_fetcher):
        """Test www and bare hosts are one site; other hosts are skipped."""
        site = FakeSite({
            "https://www.example.com/": page("Home", [
                "https://example.com/a",
                "https://other.com/x",
            ]),
            "https://example.com/a": page("A"),
        })

        result = await make_crawler(site, fast_fetcher).crawl("https://www.example.com")

        assert site.visits == ["https://www.example.com/", "https://example.com/a"]
        assert result.total_pages == 2

    @pytest.mark.asyncio
    async def test_exclude_patterns(self, fast_fetcher):
        """Test excluded URLs are never fetched."""
        site = FakeSite({
            SEED: page("Home", ["/admin/users", "/docs"]),
            "https://example.com/docs": page("Docs"),
        })
        policy = CrawlPolicy(exclude_patterns=["/admin"])

        await make_crawler(site, fast_fetcher).crawl(SEED, policy)

        assert site.visits == [SEED, "https://example.com/docs"]


class TestBudget:
    """Test cases for the page budget."""

    @pytest.mark.asyncio
    async def test_single_page_budget(self, fast_fetcher):
        """Test max_pages=1 stops after the seed even with many links."""
        hrefs = [f"/page-{i}" for i in range(10)]
        site = FakeSite({SEED: page("Home", hrefs)})
        site.pages.update({f"https://example.com/page-{i}": page(f"P{i}") for i in range(10)})

        result = await make_crawler(site, fast_fetcher).crawl(SEED, CrawlPolicy(max_pages=1))

        assert result.total_pages == 1
        assert site.visits == [SEED]

    @pytest.mark.asyncio
    async def test_budget_stops_siblings(self, fast_fetcher):
        """Test the budget is never exceeded."""
        hrefs = [f"/page-{i}" for i in range(10)]
        site = FakeSite({SEED: page("Home", hrefs)})
        site.pages.update({f"https://example.com/page-{i}": page(f"P{i}") for i in range(10)})

        result = await make_crawler(site, fast_fetcher).crawl(SEED, CrawlPolicy(max_pages=4))

        assert result.total_pages == 4
        assert len(site.visits) == 4

    @pytest.mark.asyncio
    async def test_empty_pages_do_not_count(self, fast_fetcher):
        """Test pages without text are skipped but their links followed."""
        site = FakeSite({
            SEED: page("Home", ["/a"], content="   "),
            "https://example.com/a": page("A"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED, CrawlPolicy(max_pages=1))

        assert [p.url for p in result.pages] == ["https://example.com/a"]


class TestPageErrors:
    """Test cases for per-page failures."""

    @pytest.mark.asyncio
    async def test_captcha_redirect_recorded(self, fast_fetcher):
        """Test a redirect to a challenge URL records an error for the requested URL."""
        site = FakeSite({
            SEED: page("Home", ["/a"], redirect_to="https://example.com/cdn-cgi/cloudflare-challenge"),
            "https://example.com/a": page("A"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED)

        assert result.pages == []
        assert len(result.errors) == 1
        assert result.errors[0].url == SEED
        assert result.errors[0].message == "Redirected to captcha"
        assert site.visits == [SEED]

    @pytest.mark.asyncio
    async def test_challenge_page_recorded(self, fast_fetcher):
        """Test a page with a challenge widget is an error, not content."""
        site = FakeSite({
            SEED: page("Home", ["/a"]),
            "https://example.com/a": page("A", challenge_selector=".g-recaptcha"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED)

        assert [p.url for p in result.pages] == [SEED]
        assert [(e.url, e.message) for e in result.errors] == [
            ("https://example.com/a", "Captcha detected"),
        ]

    @pytest.mark.asyncio
    async def test_failed_page_does_not_stop_siblings(self, fast_fetcher):
        """Test a page that never loads is recorded and the crawl goes on."""
        site = FakeSite({
            SEED: page("Home", ["/broken", "/b"]),
            "https://example.com/broken": page("Broken", failing_attempts=ALWAYS_FAILS),
            "https://example.com/b": page("B"),
        })

        result = await make_crawler(site, fast_fetcher).crawl(SEED)

        assert [p.url for p in result.pages] == [SEED, "https://example.com/b"]
        assert len(result.errors) == 1
        assert result.errors[0].url == "https://example.com/broken"
        assert result.errors[0].message.startswith("Failed to load page")

    @pytest.mark.asyncio
    async def test_pages_closed_on_every_path(self, fast_fetcher):
        """Test every opened page is closed, including failed ones."""
        site = FakeSite({
            SEED: page("Home", ["/broken", "/captcha"]),
            "https://example.com/broken": page("Broken", failing_attempts=ALWAYS_FAILS),
            "https://example.com/captcha": page("C", challenge_selector="#challenge-form"),
        })

        await make_crawler(site, fast_fetcher).crawl(SEED)

        assert len(site.opened_pages) == 3
        for opened in site.opened_pages:
            opened.close.assert_awaited_once()


class TestFatalErrors:
    """Test cases for errors that abort the crawl."""

    @pytest.mark.asyncio
    async def test_invalid_seed(self, fast_fetcher):
        """Test an unparseable seed raises before any browser work."""
        site = FakeSite({})
        session = site.session()

        with pytest.raises(InvalidSeedUrlError) as exc_info:
            await SiteCrawler(session, fetcher=fast_fetcher).crawl("not a url")

        assert exc_info.value.url == "not a url"
        session.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_failure_propagates(self, fast_fetcher):
        """Test failing to get a browser context is fatal."""
        session = MagicMock()
        session.new_context = AsyncMock(side_effect=BrowserContextError("Browser is not running"))

        with pytest.raises(BrowserContextError):
            await SiteCrawler(session, fetcher=fast_fetcher).crawl(SEED)

    @pytest.mark.asyncio
    async def test_context_closed_on_cancellation(self):
        """Test the context is closed even when the crawl task is cancelled."""
        site = FakeSite({})
        fetcher = MagicMock()
        fetcher.timing = create_timing_evasion(fast_mode=True)
        fetcher.fetch = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await SiteCrawler(site.session(), fetcher=fetcher).crawl(SEED)

        site.context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_closed_after_success(self, fast_fetcher):
        """Test the context is closed after a normal crawl."""
        site = FakeSite({SEED: page("Home")})

        await make_crawler(site, fast_fetcher).crawl(SEED)

        site.context.close.assert_awaited_once()


class TestStopping:
    """Test cases for cooperative cancellation and pacing."""

    @pytest.mark.asyncio
    async def test_cancel_event_returns_partial_result(self):
        """Test setting the cancel event stops scheduling new pages."""
        site = FakeSite({})
        cancel_event = asyncio.Event()

        async def fetch(context, url, policy, base_domain, collect_links=True):
            cancel_event.set()
            return FetchedPage(url=url, title="Home", content="text", links=["https://example.com/a"])

        fetcher = MagicMock()
        fetcher.timing = create_timing_evasion(fast_mode=True)
        fetcher.fetch = AsyncMock(side_effect=fetch)

        result = await SiteCrawler(site.session(), fetcher=fetcher).crawl(
            SEED, cancel_event=cancel_event
        )

        assert result.total_pages == 1
        assert fetcher.fetch.await_count == 1
        site.context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_crawl_timeout_returns_partial_result(self):
        """Test an exceeded crawl deadline stops scheduling new pages."""
        site = FakeSite({})

        async def fetch(context, url, policy, base_domain, collect_links=True):
            await asyncio.sleep(0.2)
            return FetchedPage(url=url, title="Home", content="text", links=["https://example.com/a"])

        fetcher = MagicMock()
        fetcher.timing = create_timing_evasion(fast_mode=True)
        fetcher.fetch = AsyncMock(side_effect=fetch)

        result = await SiteCrawler(site.session(), fetcher=fetcher).crawl(
            SEED, CrawlPolicy(crawl_timeout=0.1)
        )

        assert result.total_pages == 1
        assert fetcher.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_pacing_between_children_only(self, fast_fetcher):
        """Test a pacing delay precedes each child but not the seed."""
        site = FakeSite({
            SEED: page("Home", ["/a", "/b"]),
            "https://example.com/a": page("A"),
            "https://example.com/b": page("B"),
        })
        timing = create_timing_evasion(fast_mode=True)

        await SiteCrawler(site.session(), fetcher=fast_fetcher, timing=timing).crawl(SEED)

        assert timing.request_count == 2

    @pytest.mark.asyncio
    async def test_pacing_stats_logged(self, fast_fetcher, caplog):
        """Test the crawl logs how many paced requests it made."""
        site = FakeSite({
            SEED: page("Home", ["/a"]),
            "https://example.com/a": page("A"),
        })
        timing = create_timing_evasion(fast_mode=True)

        with caplog.at_level("DEBUG", logger="sitecrawl.site_crawler"):
            await SiteCrawler(site.session(), fetcher=fast_fetcher, timing=timing).crawl(SEED)

        assert "'request_count': 1" in caplog.text
        assert "'fast_mode': True" in caplog.text

    @pytest.mark.asyncio
    async def test_no_pacing_for_skipped_links(self, fast_fetcher):
        """Test repeated menu links already visited or excluded are not paced."""
        menu = ["/", "/a", "/b", "/c", "/d", "/admin"]
        site = FakeSite({
            SEED: page("Home", menu),
            "https://example.com/a": page("A", menu),
            "https://example.com/b": page("B", menu),
            "https://example.com/c": page("C", menu),
            "https://example.com/d": page("D", menu),
        })
        timing = create_timing_evasion(fast_mode=True)
        timing.wait_between_pages = AsyncMock()
        policy = CrawlPolicy(max_depth=2, exclude_patterns=["/admin"])

        result = await SiteCrawler(site.session(), fetcher=fast_fetcher, timing=timing).crawl(SEED, policy)

        assert result.total_pages == 5
        assert len(site.visits) == 5
        assert timing.wait_between_pages.await_count == len(site.visits) - 1

    @pytest.mark.asyncio
    async def test_links_not_collected_at_max_depth(self, fast_fetcher):
        """Test leaf pages skip link extraction."""
        fetcher = MagicMock()
        fetcher.timing = create_timing_evasion(fast_mode=True)
        fetcher.fetch = AsyncMock(return_value=FetchedPage(url=SEED, title="Home", content="text"))
        site = FakeSite({})

        await SiteCrawler(site.session(), fetcher=fetcher).crawl(SEED, CrawlPolicy(max_depth=0))

        assert fetcher.fetch.await_args.kwargs["collect_links"] is False


class TestCrawlHelpers:
    """Test cases for the one-shot crawl helpers."""

    def test_crawl_sync_opens_session_and_maps_options(self):
        """Test crawl_sync runs one crawl in its own browser session."""
        session = MagicMock()
        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=session)
        session_cm.__aexit__ = AsyncMock(return_value=False)
        expected = CrawlResult()

        with patch("sitecrawl.site_crawler.BrowserSession", return_value=session_cm) as session_cls, \
                patch("sitecrawl.site_crawler.SiteCrawler") as crawler_cls:
            crawler_cls.return_value.crawl = AsyncMock(return_value=expected)

            result = crawl_sync(SEED, {"maxPages": 3, "waitForContent": 0})

        assert result is expected
        session_cls.assert_called_once()
        crawler_cls.assert_called_once_with(session)
        url, policy = crawler_cls.return_value.crawl.await_args.args
        assert url == SEED
        assert policy.max_pages == 3
        assert policy.content_settle_delay == 0
        session_cm.__aexit__.assert_awaited_once()

    @pytest.mark.integration
    def test_crawl_real_site(self):
        """Test a single-page crawl of a live site in a real browser."""
        result = crawl_sync("https://example.com", {"max_depth": 0, "max_pages": 1})

        assert result.total_pages == 1
        assert result.pages[0].url == "https://example.com/"
        assert "Example Domain" in result.pages[0].title
        assert result.pages[0].content
