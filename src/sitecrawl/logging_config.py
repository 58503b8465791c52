"""Logging setup for sitecrawl.

Log records go to stderr so the CLI can print the JSON crawl result on
stdout. Level and log file default to ``SITECRAWL_LOG_LEVEL`` and
``SITECRAWL_LOG_FILE`` from the environment (or ``.env``).
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import settings

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty below WARNING during a crawl
QUIET_LOGGERS = ('asyncio', 'playwright')


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """Configure the root logger for a crawl.

    Args:
        level: Log level name; ``settings.LOG_LEVEL`` when omitted. Unknown
            names fall back to INFO.
        log_file: Also write records to this file; ``settings.LOG_FILE``
            when omitted. Parent directories are created.
        format_string: Record format; ``DEFAULT_FORMAT`` when omitted
    """
    level = level or settings.LOG_LEVEL
    log_file = log_file or settings.LOG_FILE
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handlers = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured at {logging.getLevelName(numeric_level)}"
        + (f", writing to {log_file}" if log_file else "")
    )
