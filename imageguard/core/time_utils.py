"""
Timezone-safe datetime utilities.

All timestamps are handled in UTC. Millisecond epoch values are used inside
image filenames and backup names.
"""
import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC datetime with timezone info attached.

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def now_millis() -> int:
    """Current wall-clock time as integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def from_timestamp(seconds: float) -> datetime:
    """Convert a POSIX timestamp (e.g. st_mtime) to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def backup_stamp(dt: datetime | None = None) -> str:
    """Filesystem-safe ISO timestamp, e.g. 2026-10-19T08-30-12-123456Z."""
    dt = dt or utc_now()
    return dt.strftime("%Y-%m-%dT%H-%M-%S-%fZ")
