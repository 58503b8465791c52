"""
Challenge/CAPTCHA detection.

Heuristic classifier run once after navigation settles. A single
``page.evaluate`` call collects a ``ChallengeSnapshot`` from the DOM; the
classification itself is a pure function so it can be tested without a
browser.

Checks, in priority order (first match wins):
1. A known captcha/challenge container selector is present
2. The post-redirect URL contains a challenge keyword
3. The page title contains a blocking keyword
4. A blocking keyword appears more than twice in the visible body text
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from ..exceptions import ExtractionError

logger = logging.getLogger(__name__)


# =============================================================================
# Challenge Detection Selectors
# =============================================================================

CHALLENGE_SELECTORS: List[str] = [
    # reCAPTCHA
    ".g-recaptcha",
    "#recaptcha",
    "[data-sitekey]",
    "iframe[src*='recaptcha']",
    "iframe[src*='google.com/recaptcha']",
    # hCaptcha
    ".h-captcha",
    "iframe[src*='hcaptcha']",
    # Cloudflare
    ".cf-browser-verification",
    "#cf-wrapper",
    "#challenge-form",
    "#cf-challenge-running",
    "iframe[src*='challenges.cloudflare']",
    # Generic indicators
    "[class*='captcha']",
    "[id*='captcha']",
    "[class*='challenge']",
    "[id*='challenge']",
]

# URL substrings that indicate a challenge page
CHALLENGE_URL_PATTERNS: List[str] = [
    "challenge",
    "captcha",
    "verify",
    "recaptcha",
    "hcaptcha",
    "cloudflare",
    "ddos",
    "protection",
    "checking",
]

# Phrases that challenge pages repeat in their UI
BLOCKING_KEYWORDS: List[str] = [
    "captcha",
    "verify you are human",
    "verify you're human",
    "i'm not a robot",
    "challenge",
    "cloudflare",
    "checking your browser",
    "please wait",
    "ddos protection",
]

# An actual challenge page repeats its keyword; a content page mentions it once or twice
KEYWORD_REPEAT_THRESHOLD = 2

_SNAPSHOT_SCRIPT = """
(selectors) => {
    let matched = null;
    for (const selector of selectors) {
        try {
            if (document.querySelector(selector)) {
                matched = selector;
                break;
            }
        } catch (e) {}
    }
    return {
        matchedSelector: matched,
        url: window.location.href,
        title: document.title || '',
        bodyText: (document.body && document.body.innerText) || ''
    };
}
"""


@dataclass(frozen=True)
class ChallengeSnapshot:
    """DOM facts the classifier needs, validated at the browser boundary."""
    url: str = ""
    title: str = ""
    body_text: str = ""
    matched_selector: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "ChallengeSnapshot":
        """
        Validate the object returned by ``page.evaluate``.

        Raises:
            ExtractionError: If the shape is not what the snapshot script returns
        """
        if not isinstance(raw, dict):
            raise ExtractionError(f"Unexpected challenge snapshot type: {type(raw).__name__}")

        matched = raw.get("matchedSelector")
        fields = {
            "url": raw.get("url", ""),
            "title": raw.get("title", ""),
            "body_text": raw.get("bodyText", ""),
        }
        for name, value in fields.items():
            if not isinstance(value, str):
                raise ExtractionError(f"Challenge snapshot field '{name}' is not a string")
        if matched is not None and not isinstance(matched, str):
            raise ExtractionError("Challenge snapshot field 'matchedSelector' is not a string")

        return cls(matched_selector=matched, **fields)


# =============================================================================
# Challenge Detection
# =============================================================================

def is_captcha_url(url: str) -> bool:
    """Check whether a (post-redirect) URL points at a challenge page."""
    return match_captcha_url(url) is not None


def match_captcha_url(url: str) -> Optional[str]:
    """Return the first challenge keyword found in ``url``, if any."""
    url_lower = (url or "").lower()
    for pattern in CHALLENGE_URL_PATTERNS:
        if pattern in url_lower:
            return pattern
    return None


def classify_snapshot(snapshot: ChallengeSnapshot) -> Optional[str]:
    """
    Decide whether a snapshot describes a challenge page.

    Args:
        snapshot: Validated DOM snapshot

    Returns:
        Reason string (``selector:...``, ``url:...``, ``title:...``,
        ``text:...``) or None when the page looks crawlable
    """
    if snapshot.matched_selector:
        return f"selector:{snapshot.matched_selector}"

    url_keyword = match_captcha_url(snapshot.url)
    if url_keyword:
        return f"url:{url_keyword}"

    title = snapshot.title.lower()
    for keyword in BLOCKING_KEYWORDS:
        if keyword in title:
            return f"title:{keyword}"

    body_text = snapshot.body_text.lower()
    for keyword in BLOCKING_KEYWORDS:
        if body_text.count(keyword) > KEYWORD_REPEAT_THRESHOLD:
            return f"text:{keyword}"

    return None


async def detect_challenge(page) -> Optional[str]:
    """
    Detect if the current page is a CAPTCHA or bot challenge.

    Args:
        page: Playwright Page instance

    Returns:
        Reason for the detection, or None if no challenge found
    """
    raw = await page.evaluate(_SNAPSHOT_SCRIPT, CHALLENGE_SELECTORS)
    snapshot = ChallengeSnapshot.from_raw(raw)
    return classify_snapshot(snapshot)


async def check_challenge(page) -> Optional[str]:
    """
    Like ``detect_challenge`` but never raises.

    An inaccessible DOM counts as "not blocked": it is better to try
    extracting a page than to drop it silently.
    """
    try:
        reason = await detect_challenge(page)
    except Exception as e:
        logger.debug(f"Failed to detect captcha: {e}")
        return None

    if reason:
        logger.info(f"Challenge detected ({reason}) on {page.url}")
    return reason


async def is_blocked(page) -> bool:
    """Check if the current page is blocked by a challenge."""
    return await check_challenge(page) is not None
