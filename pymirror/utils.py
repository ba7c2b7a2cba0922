"""Utility functions for pymirror."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Name of the manifest file expected in the root of every update source
MANIFEST_FILE_NAME: str = "updates.json"

# Host accepted by the object-tree backend
DEFAULT_DRIVE_HOST: str = "app.drime.cloud"

# Chunk size for streamed downloads (64 KB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Request timeout in seconds
DEFAULT_TIMEOUT: float = 30.0

# Retry configuration for connect and listing
DEFAULT_CONNECT_ATTEMPTS: int = 2
DEFAULT_CONNECT_DELAY: float = 2.0  # seconds
DEFAULT_LIST_ATTEMPTS: int = 2
DEFAULT_LIST_DELAY: float = 1.0  # seconds


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp from an API response.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00.000000Z")

    Returns:
        Timezone-aware UTC datetime or None if parsing fails. Naive
        timestamps are assumed to be UTC.
    """
    if not timestamp_str:
        return None

    # The 'Z' suffix indicates UTC time
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        # Older interpreters reject fractions that are not 3 or 6 digits long
        if "." not in timestamp_str:
            return None
        head, _, tail = timestamp_str.partition(".")
        offset = ""
        for sign in ("+", "-"):
            if sign in tail:
                offset = sign + tail.split(sign, 1)[1]
                break
        try:
            dt = datetime.fromisoformat(head + offset)
        except ValueError:
            return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_mlsd_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an MLSD ``modify``/``create`` fact (``YYYYMMDDHHMMSS[.sss]``).

    Args:
        value: Fact value as sent by the server

    Returns:
        Timezone-aware UTC datetime or None if the value is missing or invalid
    """
    if not value:
        return None

    whole, _, fraction = value.partition(".")
    try:
        dt = datetime.strptime(whole, "%Y%m%d%H%M%S")
    except ValueError:
        return None

    if fraction.isdigit():
        dt = dt.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    return dt.replace(tzinfo=timezone.utc)


def timestamp_to_datetime(timestamp: float) -> datetime:
    """Convert a Unix timestamp (e.g. ``st_mtime``) to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


# =============================================================================
# Path utilities
# =============================================================================


def split_server_path(server_path: str) -> list[str]:
    """Split a server path into its segments.

    Both forward and back slashes separate segments; empty segments are
    dropped, so "/", "" and "a//b/" are all handled.

    Examples:
        >>> split_server_path("/mods/Sideloader/")
        ['mods', 'Sideloader']
        >>> split_server_path("")
        []
    """
    return [part for part in server_path.replace("\\", "/").split("/") if part]


def is_safe_name(name: str) -> bool:
    """Check that a remote entry name maps to exactly one local path segment.

    Examples:
        >>> is_safe_name("data.zip")
        True
        >>> is_safe_name("..")
        False
        >>> is_safe_name("a/b")
        False
    """
    if not name or name in (".", ".."):
        return False
    return "/" not in name and "\\" not in name and "\x00" not in name


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
