"""
Wall-clock helpers for execution time accounting.

The engine never runs timers. Elapsed time is derived by comparing stored
timestamps with the clock at the moment a request is handled, so every
helper here takes the current time explicitly.
"""

import math
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """
    Normalize a timestamp to UTC.

    Naive datetimes are assumed to already be in UTC (this is how SQLite
    round-trips values written without an offset).
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime, whole_minutes: bool = True) -> float:
    """
    Minutes elapsed from start to end, never negative.

    Args:
        start: Earlier timestamp
        end: Later timestamp
        whole_minutes: Floor to whole minutes (partial minutes are not counted)

    Returns:
        Elapsed minutes, clamped at zero for out-of-order timestamps
    """
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    if seconds <= 0:
        return 0
    minutes = seconds / 60.0
    if whole_minutes:
        return math.floor(minutes)
    return minutes


def latest(*timestamps: Optional[datetime]) -> Optional[datetime]:
    """Most recent of the given timestamps, ignoring missing values."""
    present = [ensure_utc(ts) for ts in timestamps if ts is not None]
    if not present:
        return None
    return max(present)


def format_timestamp(ts: Optional[datetime]) -> Optional[str]:
    """ISO8601 representation used in status views and events."""
    if ts is None:
        return None
    return ensure_utc(ts).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Inverse of format_timestamp."""
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))
