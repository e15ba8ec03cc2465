# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Clock helpers used across the application.
# Clocks are plain callables so components can take them as constructor
# arguments and tests can substitute deterministic ones.
# =============================================================================

import time
from datetime import datetime, timezone


# =============================================================================
# Time Utilities
# =============================================================================

def unix_millis() -> int:
    """Current Unix time in milliseconds (used in storage paths)."""
    return time.time_ns() // 1_000_000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Current UTC time as ISO-8601 with millisecond precision and a Z suffix.

    Example:
        "2026-10-19T08:15:02.114Z"
    """
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sortable_timestamp(iso_timestamp: str | None = None) -> str:
    """
    Filename-safe timestamp that still sorts chronologically.

    Replaces ':' and '.' with '-'.

    Example:
        "2026-10-19T08:15:02.114Z" -> "2026-10-19T08-15-02-114Z"
    """
    value = iso_timestamp or utc_now_iso()
    return value.replace(":", "-").replace(".", "-")
