"""Unit tests for challenge/CAPTCHA detection."""

import pytest
from unittest.mock import AsyncMock, MagicMock

pytest_plugins = ('pytest_asyncio',)

from sitecrawl.exceptions import ExtractionError
from sitecrawl.utils.challenge_handler import (
    CHALLENGE_SELECTORS,
    ChallengeSnapshot,
    check_challenge,
    classify_snapshot,
    detect_challenge,
    is_blocked,
    is_captcha_url,
    match_captcha_url,
)


PAGE_URL = "https://example.com/"


def snapshot(**kwargs):
    values = {"url": "https://example.com/", "title": "Example", "body_text": "Hello world"}
    values.update(kwargs)
    return ChallengeSnapshot(**values)


def fake_page(raw):
    page = MagicMock()
    page.url = "https://example.com/"
    page.evaluate = AsyncMock(return_value=raw)
    return page


class TestCaptchaUrl:
    """Tests for URL keyword matching."""

    @pytest.mark.parametrize("url", [
        "https://example.com/cdn-cgi/challenge-platform",
        "https://example.com/captcha?next=/",
        "https://example.com/VERIFY",
        "https://ddos-guard.example.com/",
        "https://example.com/checking-browser",
    ])
    def test_challenge_urls(self, url):
        """Verify challenge keywords are found case-insensitively."""
        assert is_captcha_url(url)

    def test_regular_url(self):
        """Verify normal URLs pass."""
        assert not is_captcha_url("https://example.com/docs/intro")
        assert match_captcha_url("https://example.com/docs/intro") is None

    def test_empty_url(self):
        """Verify empty input is not a challenge."""
        assert not is_captcha_url("")

    def test_first_keyword_reported(self):
        """Verify the matching keyword is returned."""
        assert match_captcha_url("https://example.com/hcaptcha") == "captcha"


class TestClassifySnapshot:
    """Tests for the pure classifier."""

    def test_clean_page(self):
        """Verify an ordinary page is not blocked."""
        assert classify_snapshot(snapshot()) is None

    def test_selector_wins(self):
        """Verify a matched selector is reported first."""
        result = classify_snapshot(snapshot(matched_selector=".g-recaptcha", title="Just a moment"))
        assert result == "selector:.g-recaptcha"

    def test_url_keyword(self):
        """Verify the post-redirect URL is checked."""
        assert classify_snapshot(snapshot(url="https://example.com/captcha")) == "url:captcha"

    def test_title_keyword(self):
        """Verify a blocking phrase in the title is enough."""
        assert classify_snapshot(snapshot(title="Checking your browser...")) == "title:checking your browser"

    def test_body_keyword_needs_repetition(self):
        """Verify body text must repeat a phrase more than twice."""
        twice = "Please wait. " * 2
        thrice = "Please wait. " * 3

        assert classify_snapshot(snapshot(body_text=twice)) is None
        assert classify_snapshot(snapshot(body_text=thrice)) == "text:please wait"

    def test_single_mention_in_article(self):
        """Verify an article mentioning captcha once is not blocked."""
        body = "This post explains how captcha systems work and why they matter."
        assert classify_snapshot(snapshot(body_text=body)) is None


class TestChallengeSnapshot:
    """Tests for snapshot validation."""

    def test_from_raw(self):
        """Verify the script's camelCase keys are mapped."""
        result = ChallengeSnapshot.from_raw({
            "matchedSelector": "#cf-wrapper",
            "url": "https://example.com/",
            "title": "T",
            "bodyText": "B",
        })

        assert result == ChallengeSnapshot(
            url="https://example.com/", title="T", body_text="B", matched_selector="#cf-wrapper"
        )

    @pytest.mark.parametrize("raw", [
        None,
        [],
        {"url": 1},
        {"bodyText": None},
        {"matchedSelector": 5},
    ])
    def test_invalid_shapes(self, raw):
        """Verify malformed results raise ExtractionError."""
        with pytest.raises(ExtractionError):
            ChallengeSnapshot.from_raw(raw)


class TestDetectChallenge:
    """Tests for page-level detection."""

    @pytest.mark.asyncio
    async def test_passes_selectors_to_script(self):
        """Verify the selector list is handed to the page script."""
        page = fake_page({"matchedSelector": None, "url": PAGE_URL, "title": "", "bodyText": ""})

        assert await detect_challenge(page) is None
        assert page.evaluate.await_args.args[1] == CHALLENGE_SELECTORS

    @pytest.mark.asyncio
    async def test_blocked_page(self):
        """Verify a challenge widget marks the page blocked."""
        page = fake_page({"matchedSelector": "#challenge-form", "url": PAGE_URL, "title": "", "bodyText": ""})

        assert await check_challenge(page) == "selector:#challenge-form"
        assert await is_blocked(page) is True

    @pytest.mark.asyncio
    async def test_evaluate_failure_is_not_blocked(self):
        """Verify an inaccessible DOM counts as not blocked."""
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=RuntimeError("Target closed"))

        assert await check_challenge(page) is None
        assert await is_blocked(page) is False

    @pytest.mark.asyncio
    async def test_malformed_snapshot_is_not_blocked(self):
        """Verify a bad snapshot shape does not abort the page."""
        assert await check_challenge(fake_page("oops")) is None

    @pytest.mark.asyncio
    async def test_detect_raises_on_malformed_snapshot(self):
        """Verify detect_challenge itself surfaces shape errors."""
        with pytest.raises(ExtractionError):
            await detect_challenge(fake_page(42))
