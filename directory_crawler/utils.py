"""
Shared utility functions for the crawler.
"""

import json
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit


_PAGE_SUFFIX = re.compile(r'^(.*)-(\d+)$')


def page_index(url: str, first_page_url: Optional[str] = None) -> int:
    """
    Get the page index encoded in a listing URL.

    Args:
        url: Listing page URL (e.g., https://example.com/companies/a-3)
        first_page_url: The tab's own URL; it is always page 1

    Returns:
        Page index, 1 when the URL carries no numeric suffix
    """
    if first_page_url is not None and _same_url(url, first_page_url):
        return 1
    path = urlsplit(url).path.rstrip('/')
    match = _PAGE_SUFFIX.match(path)
    if not match:
        return 1
    return int(match.group(2))


def next_page_url(url: str, first_page_url: Optional[str] = None) -> str:
    """
    Build the URL of the listing page after `url`.

    The first page of a tab has no suffix, so the next one gets ``-2``
    appended. Later pages end in ``-N`` which is incremented.

    Args:
        url: Current listing page URL
        first_page_url: The tab's own URL, treated as page 1 even when it
            happens to end in ``-<digits>``

    Returns:
        Next page URL, query string and trailing slash preserved
    """
    parts = urlsplit(url)
    trailing_slash = parts.path.endswith('/') and len(parts.path) > 1
    path = parts.path.rstrip('/')

    match = _PAGE_SUFFIX.match(path)
    is_first = first_page_url is not None and _same_url(url, first_page_url)
    if match and not is_first:
        path = f"{match.group(1)}-{int(match.group(2)) + 1}"
    else:
        path = f"{path}-2"

    if trailing_slash:
        path += '/'
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def _same_url(a: str, b: str) -> bool:
    return a.rstrip('/') == b.rstrip('/')


def now_iso() -> str:
    return datetime.now().isoformat()


def atomic_write_json(path: Path, data: Any):
    """
    Write JSON to `path` so a crash never leaves a half-written file.

    Writes a sibling temp file, fsyncs it, then renames it over the target.
    """
    path = Path(path)
    temp_file = path.with_name(f"{path.stem}.tmp{path.suffix}")
    try:
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        # os.replace is atomic on POSIX and Windows
        os.replace(temp_file, path)
    except Exception:
        if temp_file.exists():
            try:
                temp_file.unlink()
            except OSError:
                pass
        raise


def backup_corrupted(path: Path) -> Optional[Path]:
    """
    Copy a corrupted state file aside before it gets overwritten.

    Returns:
        Path of the backup, or None if nothing was copied
    """
    path = Path(path)
    if not path.exists():
        return None
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = path.with_name(f"{path.stem}.corrupted.{timestamp}{path.suffix}")
    shutil.copy2(path, backup_path)
    return backup_path
