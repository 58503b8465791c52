"""
Long-lived browser process that hands out one isolated context per crawl.

Usage:
    async with BrowserSession(config) as session:
        context = await session.new_context()
        try:
            page = await context.new_page()
            ...
        finally:
            await context.close()
"""

import logging
from typing import Optional

from playwright.async_api import async_playwright

from ..browser_config import BrowserConfig
from ..exceptions import BrowserContextError

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    Manages the Playwright browser lifecycle.

    Each call to ``new_context`` returns a fresh, isolated context configured
    with a rotated user agent and viewport, realistic locale, timezone and
    headers. The caller owns the context and must close it.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        Initialize the browser session.

        Args:
            config: BrowserConfig instance; defaults are used if omitted
        """
        self._config = config or BrowserConfig()
        self._playwright = None
        self._browser = None

    @property
    def config(self) -> BrowserConfig:
        return self._config

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def __aenter__(self) -> "BrowserSession":
        """Enter async context manager, launching browser."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager, closing browser."""
        await self.close()

    async def start(self) -> None:
        """Launch the configured browser engine."""
        if self._browser:
            return

        logger.info(
            f"Launching {self._config.browser_type} browser (headless={self._config.headless})"
        )

        self._playwright = await async_playwright().start()
        browser_launcher = getattr(self._playwright, self._config.browser_type)

        launch_options = {"headless": self._config.headless}
        # Chromium switches are meaningless (and sometimes fatal) for other engines
        if self._config.launch_args and self._config.browser_type == "chromium":
            launch_options["args"] = self._config.launch_args

        try:
            self._browser = await browser_launcher.launch(**launch_options)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise

        logger.info("Browser launched successfully")

    async def new_context(self):
        """
        Create a new, isolated browser context for one crawl.

        Raises:
            BrowserContextError: If the browser is not running or the
                context could not be created
        """
        if not self._browser:
            raise BrowserContextError(
                "Browser is not running. Use BrowserSession as an async context manager: "
                "async with BrowserSession(config) as session:"
            )

        options = self._config.context_options()
        try:
            context = await self._browser.new_context(**options)
        except Exception as e:
            raise BrowserContextError(f"Failed to create browser context: {e}") from e

        logger.debug(
            f"Created browser context (viewport={options['viewport']}, "
            f"user_agent={options['user_agent'][:40]}...)"
        )
        return context

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser:
            logger.info("Closing browser")
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
