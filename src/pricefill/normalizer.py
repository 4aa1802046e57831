"""Time normalization: local calendar input + timezone abbreviation -> UTC epoch ms.

Timezone handling is a fixed abbreviation table (see config.TIMEZONE_OFFSETS)
with no DST computation. The caller must pass the abbreviation that was in
effect on the date in question, e.g. CDT for a July date in Chicago and CST
for a December one. Unknown abbreviations resolve to UTC so the function
stays total.
"""

from __future__ import annotations

import calendar
import re
import time
from datetime import datetime
from typing import NamedTuple

from pricefill.config import TIMEZONE_OFFSETS
from pricefill.exceptions import CalendarDateError, DateFormatError, FutureInstantError

_MS_PER_HOUR = 3_600_000

_DATE_PATTERN = re.compile(
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2}) "
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})",
    re.ASCII,
)


class CalendarFields(NamedTuple):
    """Local wall-clock components, interpreted in some timezone."""

    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0


def timezone_offset_hours(label: str | None) -> int:
    """Return the fixed UTC offset for a timezone abbreviation (0 when unknown)."""
    if not label:
        return 0
    return TIMEZONE_OFFSETS.get(label.strip().upper(), 0)


def parse_date_string(value: str) -> CalendarFields:
    """Parse the strict ``YYYY-MM-DD HH:MM:SS`` format.

    Raises:
        DateFormatError: if the text deviates from the pattern in any way.
        CalendarDateError: if the fields are well-formed but not a real date.
    """
    match = _DATE_PATTERN.fullmatch(value.strip())
    if match is None:
        raise DateFormatError(
            f"Expected 'YYYY-MM-DD HH:MM:SS', got {value!r}"
        )
    fields = CalendarFields(**{k: int(v) for k, v in match.groupdict().items()})
    validate_fields(fields)
    return fields


def validate_fields(fields: CalendarFields) -> None:
    """Reject out-of-range or calendar-impossible components."""
    year, month, day, hour, minute, second = fields
    if not 1 <= year <= 9999:
        raise CalendarDateError(f"Year out of range: {year}")
    if not 1 <= month <= 12:
        raise CalendarDateError(f"Month out of range: {month}")
    days_in_month = calendar.monthrange(year, month)[1]
    if not 1 <= day <= days_in_month:
        raise CalendarDateError(
            f"Day {day} does not exist in {year:04d}-{month:02d}"
        )
    if not 0 <= hour <= 23:
        raise CalendarDateError(f"Hour out of range: {hour}")
    if not 0 <= minute <= 59:
        raise CalendarDateError(f"Minute out of range: {minute}")
    if not 0 <= second <= 59:
        raise CalendarDateError(f"Second out of range: {second}")


def _fields_to_utc_ms(fields: CalendarFields, offset_hours: int) -> int:
    local_as_utc_ms = calendar.timegm((*fields, 0, 0, 0)) * 1000
    return local_as_utc_ms - offset_hours * _MS_PER_HOUR


def _to_calendar_fields(date_input: object) -> CalendarFields:
    """Coerce a local date representation to CalendarFields."""
    if isinstance(date_input, datetime):
        return CalendarFields(
            date_input.year,
            date_input.month,
            date_input.day,
            date_input.hour,
            date_input.minute,
            date_input.second,
        )
    if isinstance(date_input, CalendarFields):
        validate_fields(date_input)
        return date_input
    if isinstance(date_input, str):
        return parse_date_string(date_input)
    raise DateFormatError(
        f"Unsupported date input type: {type(date_input).__name__}"
    )


def normalize(
    date_input: str | datetime | CalendarFields,
    timezone_label: str | None,
    *,
    now_ms: int | None = None,
) -> int:
    """Convert a local date representation to an absolute UTC instant in ms.

    Args:
        date_input: ``YYYY-MM-DD HH:MM:SS`` string, CalendarFields, naive
            datetime (local components) or aware datetime (absolute).
        timezone_label: Abbreviation such as "CST"; ignored for aware datetimes.
        now_ms: Current wall-clock time, injectable for tests.

    Raises:
        DateFormatError, CalendarDateError: bad input (both InvalidInputError).
        FutureInstantError: the resulting instant is after now.
    """
    if isinstance(date_input, datetime) and date_input.utcoffset() is not None:
        utc_ms = int(date_input.timestamp() * 1000)
    else:
        fields = _to_calendar_fields(date_input)
        utc_ms = _fields_to_utc_ms(fields, timezone_offset_hours(timezone_label))

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if utc_ms > now_ms:
        raise FutureInstantError(
            f"Requested instant {utc_ms} is after current time {now_ms}"
        )
    return utc_ms


def localize(utc_ms: int, timezone_label: str | None) -> CalendarFields:
    """Inverse of normalize: re-offset a UTC instant into local components."""
    shifted = utc_ms + timezone_offset_hours(timezone_label) * _MS_PER_HOUR
    parts = time.gmtime(shifted // 1000)
    return CalendarFields(
        parts.tm_year, parts.tm_mon, parts.tm_mday,
        parts.tm_hour, parts.tm_min, parts.tm_sec,
    )


def cache_stamp(fields: CalendarFields) -> str:
    """Canonical digits-only form of local components, used in cache keys."""
    return "{:04d}{:02d}{:02d}{:02d}{:02d}{:02d}".format(*fields)
