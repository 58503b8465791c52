"""Shared fixtures for crawler tests."""

import pytest

from sitecrawl.infrastructure.timing_evasion import create_timing_evasion
from sitecrawl.page_fetcher import PageFetcher
from sitecrawl.utils.human_simulator import create_human_simulator


@pytest.fixture
def fast_fetcher():
    """PageFetcher with every human-like pause disabled."""
    return PageFetcher(
        simulator=create_human_simulator(fast_mode=True),
        timing=create_timing_evasion(fast_mode=True),
    )
