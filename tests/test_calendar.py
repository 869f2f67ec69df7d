"""
Unit tests for the calendar provider (no DB, no HTTP).
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from focus_streaks.core.errors import InvalidDateError, InvalidTimezoneError
from focus_streaks.services.calendar import (
    calendar_day_diff,
    civil_date_of,
    end_of_civil_day,
    from_civil,
    get_zone,
    minutes_between,
    parse_civil_date,
    start_of_civil_day,
    to_civil,
)

UTC = timezone.utc


class TestToCivil:
    def test_utc_instant_in_tokyo(self):
        instant = datetime(2025, 1, 10, 23, 30, tzinfo=UTC)
        assert to_civil(instant, "Asia/Tokyo") == datetime(2025, 1, 11, 8, 30)

    def test_returns_naive(self):
        civil = to_civil(datetime(2025, 1, 10, 12, 0, tzinfo=UTC), "Europe/Paris")
        assert civil.tzinfo is None

    def test_civil_date_differs_from_utc_date(self):
        instant = datetime(2025, 1, 11, 3, 0, tzinfo=UTC)
        assert civil_date_of(instant, "America/Los_Angeles") == date(2025, 1, 10)
        assert civil_date_of(instant, "UTC") == date(2025, 1, 11)

    def test_naive_instant_rejected(self):
        with pytest.raises(InvalidDateError):
            to_civil(datetime(2025, 1, 10, 12, 0), "UTC")

    def test_unknown_timezone(self):
        with pytest.raises(InvalidTimezoneError) as exc:
            to_civil(datetime(2025, 1, 10, 12, 0, tzinfo=UTC), "Mars/Olympus_Mons")
        assert exc.value.code == "INVALID_TIMEZONE"


class TestFromCivil:
    def test_round_trip_regular_time(self):
        instant = datetime(2025, 6, 1, 14, 15, tzinfo=UTC)
        assert from_civil(to_civil(instant, "America/New_York"), "America/New_York") == instant

    def test_result_is_utc(self):
        result = from_civil(datetime(2025, 1, 10, 9, 0), "Asia/Kolkata")
        assert result.tzinfo == UTC
        assert result == datetime(2025, 1, 10, 3, 30, tzinfo=UTC)

    def test_nonexistent_time_shifted_forward_by_gap(self):
        # 2025-03-09 02:30 does not exist in New York (clocks jump 02:00 -> 03:00)
        result = from_civil(datetime(2025, 3, 9, 2, 30), "America/New_York")
        assert result == datetime(2025, 3, 9, 7, 30, tzinfo=UTC)
        assert to_civil(result, "America/New_York") == datetime(2025, 3, 9, 3, 30)

    def test_ambiguous_time_resolves_to_earlier_offset(self):
        # 2025-11-02 01:30 happens twice in New York; the first one is EDT (-4)
        result = from_civil(datetime(2025, 11, 2, 1, 30), "America/New_York")
        assert result == datetime(2025, 11, 2, 5, 30, tzinfo=UTC)

    def test_same_input_same_output(self):
        civil = datetime(2025, 11, 2, 1, 30)
        assert from_civil(civil, "America/New_York") == from_civil(civil, "America/New_York")

    def test_aware_civil_rejected(self):
        with pytest.raises(InvalidDateError):
            from_civil(datetime(2025, 1, 10, 9, 0, tzinfo=UTC), "UTC")


class TestDayBoundaries:
    def test_start_of_day(self):
        assert start_of_civil_day(datetime(2025, 1, 10, 15, 42, 7)) == datetime(2025, 1, 10)

    def test_end_of_day_is_next_midnight(self):
        assert end_of_civil_day(datetime(2025, 1, 10, 15, 0)) == datetime(2025, 1, 11)

    def test_end_of_day_at_midnight(self):
        assert end_of_civil_day(datetime(2025, 1, 10)) == datetime(2025, 1, 11)

    def test_year_rollover(self):
        assert end_of_civil_day(datetime(2024, 12, 31, 23, 59)) == datetime(2025, 1, 1)


class TestDifferences:
    @pytest.mark.parametrize("a,b,expected", [
        (date(2025, 1, 11), date(2025, 1, 10), 1),
        (date(2025, 1, 10), date(2025, 1, 10), 0),
        (date(2025, 1, 13), date(2025, 1, 10), 3),
        (date(2025, 1, 12), date(2025, 1, 15), -3),
        (date(2025, 3, 1), date(2024, 2, 28), 367),
    ])
    def test_calendar_day_diff(self, a, b, expected):
        assert calendar_day_diff(a, b) == expected

    def test_calendar_day_diff_accepts_datetimes(self):
        assert calendar_day_diff(datetime(2025, 1, 11, 0, 1), datetime(2025, 1, 10, 23, 59)) == 1

    def test_minutes_between_exact(self):
        start = datetime(2025, 1, 10, 10, 0, tzinfo=UTC)
        assert minutes_between(start, start + timedelta(minutes=30)) == 30

    def test_minutes_between_truncates(self):
        start = datetime(2025, 1, 10, 10, 0, tzinfo=UTC)
        assert minutes_between(start, start + timedelta(seconds=59)) == 0
        assert minutes_between(start, start + timedelta(minutes=29, seconds=59)) == 29

    def test_minutes_between_negative_truncates_toward_zero(self):
        start = datetime(2025, 1, 10, 10, 0, tzinfo=UTC)
        assert minutes_between(start, start - timedelta(seconds=90)) == -1

    def test_minutes_between_across_offsets(self):
        a = datetime(2025, 1, 10, 10, 0, tzinfo=UTC)
        b = datetime(2025, 1, 10, 11, 0, tzinfo=timezone(timedelta(hours=1)))
        assert minutes_between(a, b) == 0


class TestParsing:
    def test_parse_iso(self):
        assert parse_civil_date("2025-01-15") == date(2025, 1, 15)

    def test_parse_date_passthrough(self):
        assert parse_civil_date(date(2025, 1, 15)) == date(2025, 1, 15)

    @pytest.mark.parametrize("value", ["2025-02-30", "15/01/2025", "", "yesterday"])
    def test_malformed(self, value):
        with pytest.raises(InvalidDateError) as exc:
            parse_civil_date(value)
        assert exc.value.code == "INVALID_DATE"


class TestGetZone:
    def test_known_zone(self):
        assert get_zone("Europe/London").key == "Europe/London"

    @pytest.mark.parametrize("tz", ["", "   ", "Not/AZone", "../etc/passwd"])
    def test_unknown_zone(self, tz):
        with pytest.raises(InvalidTimezoneError):
            get_zone(tz)
