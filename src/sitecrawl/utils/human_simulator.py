"""
Human-like interaction simulator for browser automation.

Features:
- Multi-step scrolling to the bottom of the page with reading pauses
- Mouse movement with intermediate steps and random jitter
- Human pause simulation
- Fast mode for skipping all human simulation
"""

import asyncio
import random
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class HumanSimulatorConfig:
    """Configuration for human-like interaction simulation."""

    # Scroll configuration
    min_scroll_steps: int = 3
    max_scroll_steps: int = 5
    min_scroll_pause_ms: int = 300
    max_scroll_pause_ms: int = 1000

    # Pause after returning to the top of the page
    min_return_pause_ms: int = 500
    max_return_pause_ms: int = 1000

    # Mouse movement configuration
    min_mouse_steps: int = 5
    max_mouse_steps: int = 14
    mouse_move_jitter_px: int = 2  # Random jitter added to each step
    mouse_margin_px: int = 100  # Keep the pointer away from the viewport edges

    # Mode flags
    fast_mode: bool = False  # Skip all human simulation when True


class HumanSimulator:
    """
    Simulates human-like interactions for browser automation.

    Usage:
        simulator = HumanSimulator()

        # Wiggle the mouse before navigating
        await simulator.wiggle_mouse(page)

        # Read the page: scroll down in steps, then back to the top
        await simulator.emulate_reading(page)
    """

    def __init__(self, config: Optional[HumanSimulatorConfig] = None):
        """
        Initialize the human simulator.

        Args:
            config: Configuration options. Uses defaults if not provided.
        """
        self.config = config or HumanSimulatorConfig()
        self._rng = random.Random()

    async def _pause_ms(self, low: int, high: int) -> None:
        await asyncio.sleep(self._rng.uniform(low, high) / 1000.0)

    async def wiggle_mouse(self, page) -> None:
        """Small mouse movement near the top-left corner, as before a click."""
        if self.config.fast_mode:
            return
        x = 100 + self._rng.uniform(0, 100)
        y = 100 + self._rng.uniform(0, 100)
        await page.mouse.move(x, y)

    async def emulate_reading(self, page) -> None:
        """
        Scroll to the bottom in a few steps with pauses and mouse movement,
        then return to the top. Also lets lazy-loaded content appear.

        Errors are logged and ignored.
        """
        if self.config.fast_mode:
            return

        try:
            viewport = await page.evaluate(
                "() => ({width: window.innerWidth, height: window.innerHeight,"
                " scrollHeight: document.documentElement.scrollHeight})"
            )
            width = float(viewport["width"])
            height = float(viewport["height"])
            scroll_height = float(viewport["scrollHeight"])

            steps = self._rng.randint(self.config.min_scroll_steps, self.config.max_scroll_steps)
            step_distance = scroll_height / steps

            for i in range(steps):
                position = step_distance * (i + 1)
                await page.evaluate(
                    "(pos) => window.scrollTo({top: pos, behavior: 'smooth'})",
                    position,
                )
                await self._pause_ms(self.config.min_scroll_pause_ms, self.config.max_scroll_pause_ms)
                await self._move_mouse_randomly(page, width, height)

            await page.evaluate("() => window.scrollTo({top: 0, behavior: 'smooth'})")
            await self._pause_ms(self.config.min_return_pause_ms, self.config.max_return_pause_ms)

            logger.debug(f"Emulated reading in {steps} scroll steps")
        except Exception as e:
            logger.debug(f"Failed to emulate human behavior: {e}")

    async def nudge_scroll(self, page, max_offset: int = 500) -> None:
        """Scroll to a random offset near the top of the page."""
        if self.config.fast_mode:
            return
        await page.evaluate("(pos) => window.scrollTo(0, pos)", self._rng.uniform(0, max_offset))

    async def _move_mouse_randomly(self, page, width: float, height: float) -> None:
        margin = self.config.mouse_margin_px
        target_x = margin + self._rng.uniform(0, max(width - 2 * margin, 0))
        target_y = margin + self._rng.uniform(0, max(height - 2 * margin, 0))
        await self._move_mouse_to(page, target_x, target_y, width / 2, height / 2)

    async def _move_mouse_to(
        self,
        page,
        target_x: float,
        target_y: float,
        start_x: float,
        start_y: float,
    ) -> None:
        """
        Move mouse to target position with human-like movement.

        Args:
            page: Playwright page object
            target_x: Target X coordinate
            target_y: Target Y coordinate
            start_x: Assumed starting X coordinate
            start_y: Assumed starting Y coordinate
        """
        steps = self._rng.randint(self.config.min_mouse_steps, self.config.max_mouse_steps)

        for i in range(1, steps + 1):
            progress = i / steps
            x = start_x + (target_x - start_x) * progress
            y = start_y + (target_y - start_y) * progress

            # Less jitter near the end for accuracy
            jitter_factor = 1 - progress
            jitter_x = self._rng.uniform(
                -self.config.mouse_move_jitter_px,
                self.config.mouse_move_jitter_px
            ) * jitter_factor
            jitter_y = self._rng.uniform(
                -self.config.mouse_move_jitter_px,
                self.config.mouse_move_jitter_px
            ) * jitter_factor

            await page.mouse.move(x + jitter_x, y + jitter_y)
            await asyncio.sleep(0.01)


def create_human_simulator(fast_mode: bool = False) -> HumanSimulator:
    """
    Create a configured HumanSimulator instance.

    Args:
        fast_mode: Skip all human simulation (for testing)

    Returns:
        Configured HumanSimulator instance
    """
    return HumanSimulator(HumanSimulatorConfig(fast_mode=fast_mode))
