"""
Time helpers.

All services take an injectable ``Clock`` returning epoch milliseconds so that
cooldowns, expiries and rollups can be driven deterministically in tests.
"""

from datetime import datetime, time as dt_time, timezone
from typing import Callable, Optional

from ..errors import MalformedDataError

Clock = Callable[[], int]

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def format_timestamp(timestamp_ms: int) -> str:
    """Format epoch milliseconds as ISO8601 for plan notes and logs."""
    return ms_to_datetime(timestamp_ms).isoformat()


def parse_hhmm(value: str) -> dt_time:
    """
    Parse a ``HH:MM`` string.

    Raises:
        MalformedDataError: If the string is not a valid 24h time
    """
    try:
        hours, minutes = value.split(":")
        return dt_time(int(hours), int(minutes))
    except (ValueError, AttributeError) as e:
        raise MalformedDataError(
            f"Invalid time of day: {value!r}",
            raw_data=str(value),
            expected_format="HH:MM",
        ) from e


def within_time_window(timestamp_ms: int, start: str, end: str,
                       tz: Optional[timezone] = None) -> bool:
    """
    Check whether ``timestamp_ms`` falls inside the ``start``-``end`` window.

    Windows that wrap midnight (start later than end) are supported.
    """
    current = ms_to_datetime(timestamp_ms).astimezone(tz or timezone.utc).time()
    start_t = parse_hhmm(start)
    end_t = parse_hhmm(end)
    if start_t <= end_t:
        return start_t <= current <= end_t
    return current >= start_t or current <= end_t


def elapsed_ms(start_ms: int, end_ms: int) -> int:
    """Elapsed milliseconds, never negative."""
    return max(0, end_ms - start_ms)
