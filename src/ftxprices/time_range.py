"""Resolution of user-supplied calendar dates into a UTC download window."""

import re
from datetime import datetime, time, timezone, tzinfo

from loguru import logger

from ftxprices.exceptions import DateParseError
from ftxprices.models import TimeWindow

DATE_FORMAT = "%Y-%m-%d"
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 59)


def parse_date(value: str, at: time, tz: tzinfo | None = None) -> datetime:
    """Parses a `YYYY-MM-DD` string into the UTC instant of `at` on that local day.

    Args:
        value: The calendar date.
        at: The local wall-clock time on that day.
        tz: The local time zone. None means the system's local zone.

    Raises:
        DateParseError: If `value` is not a valid date in exactly that format.
    """
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        err_msg = f"Invalid date '{value}': expected the format YYYY-MM-DD."
        raise DateParseError(err_msg)
    try:
        day = datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as e:
        err_msg = f"Invalid date '{value}': {e}"
        raise DateParseError(err_msg) from e

    local = datetime.combine(day, at)
    # A naive datetime's astimezone() treats it as system local time.
    local = local.replace(tzinfo=tz) if tz is not None else local.astimezone()
    return local.astimezone(timezone.utc)


def resolve(
    start_date: str,
    end_date: str | None = None,
    *,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> TimeWindow:
    """Converts a calendar date range into an absolute UTC TimeWindow.

    The start is local midnight of `start_date`. The end is local 23:59:59 of
    `end_date`, or the current time when no end date is given.

    Args:
        start_date: First day of the range, `YYYY-MM-DD`.
        end_date: Last day of the range, `YYYY-MM-DD`, or None for "now".
        tz: The local time zone. None means the system's local zone.
        now: Overrides the current time (must be timezone-aware).

    Returns:
        The resolved window, with `start <= end`.

    Raises:
        DateParseError: If a date is malformed or the range ends before it starts.
    """
    start = parse_date(start_date, START_OF_DAY, tz)
    if end_date is not None:
        end = parse_date(end_date, END_OF_DAY, tz)
    else:
        end = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    if start > end:
        err_msg = (
            f"Start date {start_date} is after the end of the range "
            f"({end_date or 'now'})."
        )
        raise DateParseError(err_msg)

    logger.debug(f"Resolved date range to {start.isoformat()} .. {end.isoformat()}")
    return TimeWindow(start=start, end=end)
