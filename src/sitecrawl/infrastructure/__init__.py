"""
Infrastructure Package.

Browser session management, anti-detection patches and request pacing.
"""

from .anti_detection import (
    AntiDetection,
    AntiDetectionReport,
    STEALTH_PATCHES,
    CDP_PATCH,
)
from .browser_session import BrowserSession
from .timing_evasion import (
    TimingConfig,
    TimingEvasion,
    TimingProfile,
    create_timing_evasion,
)

__all__ = [
    # Anti-detection
    "AntiDetection",
    "AntiDetectionReport",
    "STEALTH_PATCHES",
    "CDP_PATCH",
    # Browser
    "BrowserSession",
    # Timing
    "TimingConfig",
    "TimingEvasion",
    "TimingProfile",
    "create_timing_evasion",
]
