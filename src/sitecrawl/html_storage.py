"""Raw HTML archival for crawled pages.

Files are laid out as ``{base_dir}/{domain}/{YYYY-MM-DD}/{name}.html``. This is
a side artifact for debugging and re-processing; the crawler never fails a
page because archival failed.
"""

import hashlib
import logging
import re
import shutil
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit

from .config import settings

logger = logging.getLogger(__name__)

MAX_FILE_NAME_LENGTH = 200
_UNSAFE_CHARS = re.compile(r'[<>:"|?*\\\x00-\x1f]')
_EXTENSION = re.compile(r"\.[^/.]+$")


@dataclass
class SavedHtmlFile:
    """Where a page's HTML was written."""
    file_path: str
    file_name: str
    url: str
    saved_at: datetime = field(default_factory=datetime.now)


def _short_hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:8]


def generate_file_name(url: str) -> str:
    """
    Derive a filesystem-safe ``.html`` file name from a URL path.

    Args:
        url: Page URL

    Returns:
        File name such as ``index.html`` or ``docs-getting-started.html``
    """
    try:
        path = urlsplit(url).path
    except ValueError:
        return f"page-{_short_hash(url)}.html"

    file_name = path.lstrip("/") or "index"
    file_name = file_name.replace("/", "-")
    file_name = _EXTENSION.sub("", file_name) + ".html"
    file_name = _UNSAFE_CHARS.sub("-", file_name)

    if len(file_name) > MAX_FILE_NAME_LENGTH:
        file_name = f"{file_name[:150]}-{_short_hash(url)}.html"

    if file_name == ".html":
        file_name = f"page-{_short_hash(url)}.html"

    return file_name


class HtmlStorage:
    """Saves raw page HTML grouped by domain and date."""

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            base_dir: Root directory; defaults to ``settings.HTML_DIR``
        """
        self.base_dir = Path(base_dir or settings.HTML_DIR)

    def directory_for(self, base_domain: str, day: Optional[date] = None) -> Path:
        """Get the directory holding a domain's files for one day."""
        day = day or date.today()
        return self.base_dir / base_domain / day.isoformat()

    def save_html(self, html_content: str, url: str, base_domain: str) -> SavedHtmlFile:
        """
        Write HTML for ``url`` to disk.

        Raises:
            OSError: If the file cannot be written
        """
        directory = self.directory_for(base_domain)
        directory.mkdir(parents=True, exist_ok=True)

        file_name = generate_file_name(url)
        file_path = directory / file_name
        file_path.write_text(html_content, encoding="utf-8")

        logger.debug(f"Saved HTML file: {file_path}")
        return SavedHtmlFile(file_path=str(file_path), file_name=file_name, url=url)

    def delete_old_files(self, base_domain: str, days_to_keep: int = 30) -> int:
        """
        Remove a domain's dated directories older than ``days_to_keep``.

        Returns:
            Number of directories deleted
        """
        domain_dir = self.base_dir / base_domain
        if not domain_dir.exists():
            return 0

        cutoff = time.time() - days_to_keep * 24 * 60 * 60
        deleted = 0

        for day_dir in domain_dir.iterdir():
            if not day_dir.is_dir():
                continue
            if day_dir.stat().st_mtime < cutoff:
                shutil.rmtree(day_dir, ignore_errors=True)
                deleted += 1
                logger.info(f"Deleted old directory: {day_dir}")

        return deleted
