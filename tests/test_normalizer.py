"""Tests for time normalization.

Verifies:
- Fixed-offset timezone table, unknown labels defaulting to UTC
- Strict YYYY-MM-DD HH:MM:SS parsing (format errors vs calendar errors)
- Round-trip law: localize(normalize(s, tz), tz) recovers the local fields
- Future instants raise FutureInstantError, distinct from InvalidInputError
- Structured inputs: CalendarFields, naive and aware datetimes
"""

import calendar
from datetime import datetime, timedelta, timezone

import pytest

from pricefill.exceptions import (
    CalendarDateError,
    DateFormatError,
    FutureInstantError,
    InvalidInputError,
)
from pricefill.normalizer import (
    CalendarFields,
    cache_stamp,
    localize,
    normalize,
    parse_date_string,
    timezone_offset_hours,
)

NOW_SECONDS = calendar.timegm((2026, 1, 1, 0, 0, 0))
XMR_INSTANT_MS = calendar.timegm((2025, 12, 10, 4, 46, 2)) * 1000

NOW_MS = int(NOW_SECONDS * 1000)


class TestTimezoneOffsets:
    def test_known_labels(self) -> None:
        assert timezone_offset_hours("CDT") == -5
        assert timezone_offset_hours("UTC") == 0
        assert timezone_offset_hours("PST") == -8
        assert timezone_offset_hours("EDT") == -4
        assert timezone_offset_hours("CST") == -6

    def test_case_insensitive(self) -> None:
        assert timezone_offset_hours("cdt") == -5

    def test_unknown_or_empty_defaults_to_utc(self) -> None:
        assert timezone_offset_hours("INVALID") == 0
        assert timezone_offset_hours("") == 0
        assert timezone_offset_hours(None) == 0


class TestNormalize:
    def test_utc_offset_zero(self) -> None:
        result = normalize("2025-12-19 00:17:00", "UTC", now_ms=NOW_MS)
        assert result == calendar.timegm((2025, 12, 19, 0, 17, 0)) * 1000

    def test_negative_offset_cdt(self) -> None:
        result = normalize("2025-12-19 00:17:00", "CDT", now_ms=NOW_MS)
        assert result == calendar.timegm((2025, 12, 19, 5, 17, 0)) * 1000

    def test_cst_scenario_crosses_midnight(self) -> None:
        result = normalize("2025-12-09 22:46:02", "CST", now_ms=NOW_MS)
        assert result == XMR_INSTANT_MS

    def test_unknown_timezone_treated_as_utc(self) -> None:
        assert normalize("2025-06-01 12:00:00", "XYZ", now_ms=NOW_MS) == normalize(
            "2025-06-01 12:00:00", "UTC", now_ms=NOW_MS
        )

    def test_surrounding_whitespace_ignored(self) -> None:
        assert normalize("  2025-06-01 12:00:00 ", "UTC", now_ms=NOW_MS) == normalize(
            "2025-06-01 12:00:00", "UTC", now_ms=NOW_MS
        )

    def test_deterministic(self) -> None:
        first = normalize("2024-02-29 23:59:59", "PDT", now_ms=NOW_MS)
        second = normalize("2024-02-29 23:59:59", "PDT", now_ms=NOW_MS)
        assert first == second

    @pytest.mark.parametrize(
        "value,label",
        [
            ("2025-12-09 22:46:02", "CST"),
            ("2024-02-29 23:59:59", "PDT"),
            ("2025-01-01 00:00:00", "EST"),
            ("2025-03-09 02:30:00", "MST"),
            ("2023-12-31 23:00:00", "GMT"),
        ],
    )
    def test_round_trip_recovers_local_fields(self, value: str, label: str) -> None:
        utc_ms = normalize(value, label, now_ms=NOW_MS)
        assert localize(utc_ms, label) == parse_date_string(value)


class TestFormatErrors:
    @pytest.mark.parametrize(
        "value",
        [
            "",
            "invalid",
            "2025-12-09T22:46:02",
            "2025-12-09 22:46",
            "12/09/2025 22:46:02",
            "2025-1-09 22:46:02",
            "2025-12-09 10:46:02 PM",
            "\u0662\u0660\u0662\u0665-12-09 22:46:02",
            "2025-12-09 22:46:\uff10\uff12",
        ],
    )
    def test_rejects_non_matching_strings(self, value: str) -> None:
        with pytest.raises(DateFormatError):
            normalize(value, "UTC", now_ms=NOW_MS)

    def test_format_error_is_invalid_input(self) -> None:
        with pytest.raises(InvalidInputError):
            normalize("nope", "UTC", now_ms=NOW_MS)

    def test_unsupported_type(self) -> None:
        with pytest.raises(DateFormatError):
            normalize(1765341962000, "UTC", now_ms=NOW_MS)  # type: ignore[arg-type]


class TestCalendarErrors:
    @pytest.mark.parametrize(
        "value",
        [
            "2025-02-30 00:00:00",
            "2023-02-29 00:00:00",
            "2025-04-31 12:00:00",
            "2025-13-01 00:00:00",
            "2025-00-10 00:00:00",
            "2025-01-00 00:00:00",
            "2025-01-01 24:00:00",
            "2025-01-01 12:60:00",
            "2025-01-01 12:00:60",
        ],
    )
    def test_rejects_impossible_dates(self, value: str) -> None:
        with pytest.raises(CalendarDateError):
            normalize(value, "UTC", now_ms=NOW_MS)

    def test_calendar_error_is_not_format_error(self) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            normalize("2025-02-30 00:00:00", "UTC", now_ms=NOW_MS)
        assert not isinstance(exc_info.value, DateFormatError)

    def test_leap_day_accepted(self) -> None:
        result = normalize("2024-02-29 12:00:00", "UTC", now_ms=NOW_MS)
        assert result == calendar.timegm((2024, 2, 29, 12, 0, 0)) * 1000


class TestFutureInstant:
    def test_future_raises_distinct_error(self) -> None:
        with pytest.raises(FutureInstantError) as exc_info:
            normalize("2026-01-01 00:00:01", "UTC", now_ms=NOW_MS)
        assert not isinstance(exc_info.value, InvalidInputError)

    def test_offset_can_push_into_future(self) -> None:
        # 23:00 PST on Dec 31 is 07:00 UTC on Jan 1, after "now"
        with pytest.raises(FutureInstantError):
            normalize("2025-12-31 23:00:00", "PST", now_ms=NOW_MS)

    def test_exactly_now_is_allowed(self) -> None:
        assert normalize("2026-01-01 00:00:00", "UTC", now_ms=NOW_MS) == NOW_MS

    def test_defaults_to_wall_clock(self) -> None:
        tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
        with pytest.raises(FutureInstantError):
            normalize(tomorrow.strftime("%Y-%m-%d %H:%M:%S"), "UTC")


class TestStructuredInputs:
    def test_calendar_fields_are_local(self) -> None:
        fields = CalendarFields(2025, 12, 9, 22, 46, 2)
        assert normalize(fields, "CST", now_ms=NOW_MS) == XMR_INSTANT_MS

    def test_invalid_calendar_fields(self) -> None:
        with pytest.raises(CalendarDateError):
            normalize(CalendarFields(2025, 2, 30), "UTC", now_ms=NOW_MS)

    def test_naive_datetime_uses_label(self) -> None:
        value = datetime(2025, 12, 9, 22, 46, 2)
        assert normalize(value, "CST", now_ms=NOW_MS) == XMR_INSTANT_MS

    def test_aware_datetime_ignores_label(self) -> None:
        value = datetime(2025, 12, 10, 4, 46, 2, tzinfo=timezone.utc)
        assert normalize(value, "PST", now_ms=NOW_MS) == XMR_INSTANT_MS

    def test_aware_datetime_with_offset_is_absolute(self) -> None:
        value = datetime(2025, 12, 9, 22, 46, 2, tzinfo=timezone(timedelta(hours=-6)))
        assert normalize(value, "UTC", now_ms=NOW_MS) == XMR_INSTANT_MS


def test_cache_stamp_digits() -> None:
    assert cache_stamp(CalendarFields(2025, 12, 9, 22, 46, 2)) == "20251209224602"
