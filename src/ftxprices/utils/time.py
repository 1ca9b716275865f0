from datetime import datetime, timezone, tzinfo
from typing import Any

from loguru import logger

# If a numeric timestamp (in seconds) is greater than this, it's in milliseconds.
# This corresponds to a date in the year 2286.
MILLISECONDS_THRESHOLD = 10**10
# If a numeric timestamp is greater than this, it's in microseconds.
MICROSECONDS_THRESHOLD = 10**13

LOCAL_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_api_timestamp(timestamp: Any) -> datetime:  # noqa: C901
    """Parses a timestamp from the exchange into an aware UTC datetime.

    This function can handle:
    - int, float, Decimal: Unix timestamps in seconds, milliseconds or
                           microseconds. The unit is guessed from the magnitude.
    - str: ISO 8601, with either a UTC offset or a 'Z' suffix.
    - datetime: Naive datetimes are assumed to be UTC.

    Args:
        timestamp: The timestamp to parse.

    Returns:
        A timezone-aware datetime in UTC.

    Raises:
        ValueError: If the timestamp format is unrecognized or invalid.
    """
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    if isinstance(timestamp, bool):
        err_msg = f"Unsupported timestamp type: {type(timestamp).__name__}"
        raise ValueError(err_msg)

    if isinstance(timestamp, str):
        try:
            if timestamp.endswith("Z"):
                timestamp = timestamp[:-1] + "+00:00"
            dt_obj = datetime.fromisoformat(timestamp)
        except ValueError as e:
            logger.warning(f"Could not parse timestamp string '{timestamp}': {e}")
            err_msg = f"Invalid or unrecognized timestamp string format: {timestamp}"
            raise ValueError(err_msg) from e
        if dt_obj.tzinfo is None:
            return dt_obj.replace(tzinfo=timezone.utc)
        return dt_obj.astimezone(timezone.utc)

    try:
        value = float(timestamp)
    except (TypeError, ValueError) as e:
        err_msg = f"Unsupported timestamp type: {type(timestamp).__name__}"
        raise ValueError(err_msg) from e

    if value > MICROSECONDS_THRESHOLD:
        value /= 1_000_000
    elif value > MILLISECONDS_THRESHOLD:
        value /= 1_000
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        err_msg = f"Numeric timestamp '{timestamp}' is out of range."
        raise ValueError(err_msg) from e


def to_epoch_seconds(dt: datetime) -> int:
    """Converts an aware datetime to whole seconds since the Unix epoch."""
    return int(dt.timestamp())


def format_local(dt: datetime, tz: tzinfo | None = None) -> str:
    """Formats an aware datetime as `YYYY-MM-DD HH:MM:SS` in the given zone.

    With `tz` left as None, the system's local time zone is used.
    """
    return dt.astimezone(tz).strftime(LOCAL_DATETIME_FORMAT)
