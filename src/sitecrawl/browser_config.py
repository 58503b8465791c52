"""
Browser configuration for Playwright-based crawling.

This module provides a validated Pydantic configuration model for the browser
session that hands out crawl contexts, and pre-configured instances for common
use cases.
"""
import random
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .config import settings


# User agent pool for rotation
USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]

# Realistic desktop viewport sizes
DESKTOP_VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
]

# Chromium flags that hide the most obvious automation signals
STEALTH_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-infobars",
    "--disable-notifications",
    "--disable-popup-blocking",
    "--lang=en-US,en",
    "--window-size=1920,1080",
]


def get_random_user_agent() -> str:
    """Get a random user agent from the pool."""
    return random.choice(USER_AGENTS)


def get_random_viewport() -> Dict[str, int]:
    """Get a random desktop viewport."""
    return dict(random.choice(DESKTOP_VIEWPORTS))


class BrowserConfig(BaseModel):
    """
    Configuration for the Playwright ``BrowserSession``.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for crawling"
    )

    launch_args: List[str] = Field(
        default_factory=lambda: list(STEALTH_LAUNCH_ARGS),
        description="Additional browser launch arguments"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. If None and rotate_user_agent=True, a random one is used."
    )

    rotate_user_agent: bool = Field(
        default=True,
        description="Rotate user agent on each new context"
    )

    rotate_viewport: bool = Field(
        default=True,
        description="Pick a random realistic viewport for each new context"
    )

    locale: str = Field(
        default="en-US",
        description="Browser locale for new contexts"
    )

    timezone_id: str = Field(
        default="America/New_York",
        description="IANA timezone reported by new contexts"
    )

    extra_http_headers: Dict[str, str] = Field(
        default_factory=lambda: {"Accept-Language": "en-US,en;q=0.9"},
        description="Headers sent with every request of a context"
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def get_user_agent(self) -> str:
        """Get the user agent to use for this config."""
        if self.user_agent:
            return self.user_agent
        if self.rotate_user_agent:
            return get_random_user_agent()
        return USER_AGENTS[0]

    def get_viewport(self) -> Dict[str, int]:
        """Get the viewport to use for a new context."""
        if self.rotate_viewport:
            return get_random_viewport()
        return dict(DESKTOP_VIEWPORTS[0])

    def context_options(self) -> dict:
        """Keyword arguments for ``Browser.new_context``."""
        return {
            "viewport": self.get_viewport(),
            "user_agent": self.get_user_agent(),
            "locale": self.locale,
            "timezone_id": self.timezone_id,
            "java_script_enabled": True,
            "extra_http_headers": dict(self.extra_http_headers),
        }


# --- Pre-configured Instances for Common Use Cases ---

def config_from_settings() -> BrowserConfig:
    """Browser config honoring SITECRAWL_* environment settings."""
    return BrowserConfig(
        headless=settings.HEADLESS,
        browser_type=settings.BROWSER_TYPE,
    )


DEBUG_CONFIG = BrowserConfig(
    headless=False,
    rotate_user_agent=False,
    rotate_viewport=False,
)
"""
Visible browser with a fixed fingerprint, for debugging crawl issues.
"""
