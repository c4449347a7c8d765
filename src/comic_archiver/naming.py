"""Naming utilities for archive files and entries."""

from __future__ import annotations

import re

ARCHIVE_SUFFIX = ".cbz"


def safe_filename(name: str, fallback: str = "comic") -> str:
    """Replace characters that are invalid in file names on common platforms."""
    sanitized = re.sub(r"[<>:\"/\\|?*\x00-\x1F]", "_", name)
    sanitized = sanitized.strip().strip(".")
    return sanitized or fallback


def archive_filename(book_name: str) -> str:
    """Return the delivered archive name for a book title."""
    return safe_filename(book_name) + ARCHIVE_SUFFIX


def entry_name(page_key: str) -> str:
    """Return the archive entry name of one page."""
    return safe_filename(page_key, fallback="page") + ".jpg"
