"""
Utility functions for file system operations and string sanitization.

This module provides helper functions for:
- Sanitizing user-provided strings for safe use in artifact filenames
- Ensuring directory creation with proper error handling
- Formatting timestamps in a filename-friendly way
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

# Pattern to match a single character that is not safe for filenames
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(value: str) -> str:
    """
    Replace every character outside ``[A-Za-z0-9._-]`` with an underscore.

    Unlike a slug, the length of the string is preserved: each unsafe
    character maps to exactly one ``_``.

    Args:
        value: The original string to sanitize

    Returns:
        A filesystem-safe string of the same length

    Example:
        >>> sanitize_filename("O'Brien_Anne")
        'O_Brien_Anne'
        >>> sanitize_filename("Niccolò")
        'Niccol_'
    """
    return SANITIZE_PATTERN.sub("_", value)


def filename_timestamp(moment: datetime) -> str:
    """
    Render a moment as ISO-8601 UTC with millisecond precision, with colons
    and dots replaced by dashes.

    Example:
        >>> filename_timestamp(datetime(2026, 3, 1, 9, 5, 7, 120000, tzinfo=timezone.utc))
        '2026-03-01T09-05-07-120Z'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    iso = iso.replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    This is a safe idempotent operation that won't fail if the directory
    already exists.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
