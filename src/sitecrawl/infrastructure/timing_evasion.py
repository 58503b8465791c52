"""
Request timing signature evasion.

Automated browsers often have predictable timing patterns that can be detected:
- Perfectly consistent delays between requests
- Navigation immediately after the page is created
- Retries fired back to back

This module provides the randomized pauses the crawler takes between those
steps. ``fast_mode`` turns every pause into a no-op, which tests rely on.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class TimingProfile(str, Enum):
    """Predefined timing profiles."""
    FAST = "fast"  # Quick but still human-like
    NORMAL = "normal"  # Average user speed
    SLOW = "slow"  # Careful/slow user


PROFILE_MODIFIERS = {
    TimingProfile.FAST: 0.5,
    TimingProfile.NORMAL: 1.0,
    TimingProfile.SLOW: 1.8,
}


@dataclass
class TimingConfig:
    """Delay ranges in seconds, as (min, max) pairs."""
    pre_navigation_delay: Tuple[float, float] = (0.5, 1.5)
    retry_delay: Tuple[float, float] = (1.0, 2.0)
    sibling_delay: Tuple[float, float] = (2.0, 5.0)
    mouse_settle_delay: Tuple[float, float] = (0.1, 0.3)

    # Skip all pauses when True
    fast_mode: bool = False


class TimingEvasion:
    """
    Human-like pacing for one crawler.

    Usage:
        timing = TimingEvasion()
        await timing.wait_before_navigation()
        ...
        await timing.wait_between_pages()
    """

    def __init__(self, config: Optional[TimingConfig] = None, profile: TimingProfile = TimingProfile.NORMAL):
        self.config = config or TimingConfig()
        self.profile = profile
        self._rng = random.Random()
        self._request_count = 0

    @property
    def request_count(self) -> int:
        return self._request_count

    def _calculate_delay(self, bounds: Tuple[float, float]) -> float:
        """Pick a delay within ``bounds`` scaled by the profile."""
        if self.config.fast_mode:
            return 0.0
        low, high = bounds
        return self._rng.uniform(low, high) * PROFILE_MODIFIERS[self.profile]

    async def _sleep(self, bounds: Tuple[float, float], reason: str) -> float:
        delay = self._calculate_delay(bounds)
        if delay > 0:
            logger.debug(f"{reason} delay: {delay:.2f}s")
            await asyncio.sleep(delay)
        return delay

    async def wait_before_navigation(self) -> float:
        """Short pause between opening a page and navigating it."""
        return await self._sleep(self.config.pre_navigation_delay, "Pre-navigation")

    async def wait_after_failed_load(self) -> float:
        """Pause before trying the next load strategy."""
        return await self._sleep(self.config.retry_delay, "Retry")

    async def wait_for_mouse(self) -> float:
        """Pause after a mouse movement."""
        return await self._sleep(self.config.mouse_settle_delay, "Mouse")

    async def wait_between_pages(self) -> float:
        """
        Wait between sibling page requests.

        Returns:
            Actual delay in seconds
        """
        self._request_count += 1
        return await self._sleep(self.config.sibling_delay, f"Page (request #{self._request_count})")

    def reset_session(self) -> None:
        """Reset session state for a new crawl."""
        self._request_count = 0

    def get_stats(self) -> dict:
        """Get timing statistics."""
        return {
            "profile": self.profile.value,
            "request_count": self._request_count,
            "fast_mode": self.config.fast_mode,
        }


def create_timing_evasion(
    profile: TimingProfile = TimingProfile.NORMAL,
    fast_mode: bool = False,
) -> TimingEvasion:
    """
    Create a TimingEvasion instance.

    Args:
        profile: Timing profile to use
        fast_mode: Skip all pauses (for testing)

    Returns:
        Configured TimingEvasion instance
    """
    return TimingEvasion(config=TimingConfig(fast_mode=fast_mode), profile=profile)
