"""
Balance - Utility functions.

Created by Balance Terminal contributors
Version: 1.0.0

Provides helpers for timestamps, filenames, snippets and username validation.
"""

import logging
import re
import uuid
from datetime import datetime, timezone

from .constants import CHAT_SNIPPET_LENGTH, CHAT_SNIPPET_SUFFIX, MAX_USERNAME_LENGTH

logger = logging.getLogger(__name__)

_USERNAME_PATTERN = re.compile(r"^\S+$")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    """Generate an opaque record identifier."""
    return uuid.uuid4().hex


def format_timestamp(iso_timestamp: str, format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """
    Format an ISO timestamp to a human-readable string.

    Args:
        iso_timestamp: ISO 8601 timestamp string
        format_str: strftime format string

    Returns:
        Formatted timestamp string, or original if parsing fails
    """
    try:
        dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
        return dt.strftime(format_str)
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Failed to parse timestamp '{iso_timestamp}': {e}")
        return iso_timestamp


def truncate_snippet(
    text: str, max_length: int = CHAT_SNIPPET_LENGTH, suffix: str = CHAT_SNIPPET_SUFFIX
) -> str:
    """
    Cut a message down to a sidebar snippet.

    The first ``max_length`` characters are kept and ``suffix`` is appended
    only when something was cut.

    Args:
        text: Message text
        max_length: Characters to keep
        suffix: Marker appended when truncated

    Returns:
        Snippet string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def normalize_username(username: str) -> str:
    """Usernames are case-insensitive and stored lowercase."""
    return username.strip().lower()


def validate_username(username: str) -> bool:
    """
    Validate a username.

    Args:
        username: Username string (already normalized)

    Returns:
        True if non-empty, within length, and free of whitespace
    """
    if not username or len(username) > MAX_USERNAME_LENGTH:
        return False
    return bool(_USERNAME_PATTERN.match(username))


def has_extension(filename: str, *extensions: str) -> bool:
    """Case-insensitive check that ``filename`` ends with one of ``extensions``."""
    lowered = filename.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


def strip_extension(filename: str) -> str:
    """Remove the last extension, e.g. ``notes.txt`` -> ``notes``."""
    stem, dot, _ = filename.rpartition(".")
    return stem if dot and stem else filename


def replace_extension(filename: str, new_extension: str) -> str:
    """Swap the last extension for ``new_extension`` (which includes the dot)."""
    return strip_extension(filename) + new_extension


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename by removing invalid characters.

    Args:
        filename: Filename to sanitize

    Returns:
        Sanitized filename
    """
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        filename = filename.replace(char, "_")

    filename = filename.strip(". ")

    if not filename:
        filename = "unnamed"

    return filename
