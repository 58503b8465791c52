"""
Utilities Package.

Provides CAPTCHA/challenge detection and human-like interaction simulation.
"""

from .challenge_handler import (
    BLOCKING_KEYWORDS,
    CHALLENGE_SELECTORS,
    CHALLENGE_URL_PATTERNS,
    ChallengeSnapshot,
    check_challenge,
    classify_snapshot,
    detect_challenge,
    is_blocked,
    is_captcha_url,
    match_captcha_url,
)

from .human_simulator import (
    HumanSimulator,
    HumanSimulatorConfig,
    create_human_simulator,
)

__all__ = [
    # Challenge handling
    "BLOCKING_KEYWORDS",
    "CHALLENGE_SELECTORS",
    "CHALLENGE_URL_PATTERNS",
    "ChallengeSnapshot",
    "check_challenge",
    "classify_snapshot",
    "detect_challenge",
    "is_blocked",
    "is_captcha_url",
    "match_captcha_url",
    # Human-like simulation
    "HumanSimulator",
    "HumanSimulatorConfig",
    "create_human_simulator",
]
