"""
Tests for Schedule Calculator
=============================

Due-date and reporting-period arithmetic across week, month and year
boundaries.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from core.exceptions import ConfigurationError
from core.models import ReportingPeriod, ScheduleFrequency
from core.schedule_calculator import (
    compute_next_due,
    compute_reporting_period,
    is_notification_day,
    notification_dates,
    overflow_date,
    parse_due_time,
    sunday_based_weekday,
    validate_due_day,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestParseDueTime:
    """Test HH:MM parsing."""

    def test_valid_times(self):
        assert parse_due_time("09:00") == (9, 0)
        assert parse_due_time("23:59") == (23, 59)
        assert parse_due_time("0:05") == (0, 5)

    @pytest.mark.parametrize("bad", ["9am", "24:00", "12:60", "", "12", "aa:bb", None])
    def test_invalid_times_raise(self, bad):
        with pytest.raises(ConfigurationError):
            parse_due_time(bad)


class TestHelpers:
    def test_sunday_is_zero(self):
        assert sunday_based_weekday(date(2024, 3, 10)) == 0  # Sunday
        assert sunday_based_weekday(date(2024, 3, 11)) == 1  # Monday
        assert sunday_based_weekday(date(2024, 3, 16)) == 6  # Saturday

    def test_overflow_date_rolls_day_into_next_month(self):
        # 31 February 2023 -> 3 March
        assert overflow_date(2023, 1, 31) == date(2023, 3, 3)
        # Leap year: 31 February 2024 -> 2 March
        assert overflow_date(2024, 1, 31) == date(2024, 3, 2)

    def test_overflow_date_rolls_month_into_next_year(self):
        assert overflow_date(2024, 12, 15) == date(2025, 1, 15)
        assert overflow_date(2024, 13, 1) == date(2025, 2, 1)

    def test_validate_due_day(self):
        validate_due_day(ScheduleFrequency.WEEKLY, 0)
        validate_due_day(ScheduleFrequency.MONTHLY, 31)
        validate_due_day(ScheduleFrequency.DAILY, 99)  # ignored

        with pytest.raises(ConfigurationError):
            validate_due_day(ScheduleFrequency.WEEKLY, 7)
        with pytest.raises(ConfigurationError):
            validate_due_day(ScheduleFrequency.MONTHLY, 0)
        with pytest.raises(ConfigurationError):
            validate_due_day(ScheduleFrequency.ANNUAL, 32)


class TestComputeNextDue:
    """Test next due timestamps per frequency."""

    def test_daily_is_tomorrow_at_due_time(self):
        now = utc(2024, 3, 13, 10, 0)
        assert compute_next_due(ScheduleFrequency.DAILY, 0, "09:00", now) == utc(2024, 3, 14, 9, 0)

    def test_daily_across_year_end(self):
        now = utc(2024, 12, 31, 23, 30)
        assert compute_next_due(ScheduleFrequency.DAILY, 0, "06:15", now) == utc(2025, 1, 1, 6, 15)

    def test_weekly_from_wednesday_lands_on_next_monday(self):
        now = utc(2024, 3, 13, 10, 0)  # Wednesday
        assert compute_next_due(ScheduleFrequency.WEEKLY, 1, "09:00", now) == utc(2024, 3, 18, 9, 0)

    def test_weekly_same_day_before_due_time_is_today(self):
        now = utc(2024, 3, 18, 8, 0)  # Monday
        assert compute_next_due(ScheduleFrequency.WEEKLY, 1, "09:00", now) == utc(2024, 3, 18, 9, 0)

    def test_weekly_same_day_after_due_time_is_next_week(self):
        now = utc(2024, 3, 18, 9, 0)  # Monday, exactly at due time
        assert compute_next_due(ScheduleFrequency.WEEKLY, 1, "09:00", now) == utc(2024, 3, 25, 9, 0)

    def test_monthly_is_next_month(self):
        now = utc(2024, 3, 13, 10, 0)
        next_due = compute_next_due(ScheduleFrequency.MONTHLY, 15, "09:00", now)
        assert next_due == utc(2024, 4, 15, 9, 0)
        assert next_due.day == 15
        assert (next_due.hour, next_due.minute) == (9, 0)

    def test_monthly_skips_current_month_even_if_day_not_reached(self):
        now = utc(2024, 3, 1, 0, 0)
        assert compute_next_due(ScheduleFrequency.MONTHLY, 15, "09:00", now) == utc(2024, 4, 15, 9, 0)

    def test_monthly_in_december_rolls_into_january(self):
        now = utc(2024, 12, 5, 12, 0)
        assert compute_next_due(ScheduleFrequency.MONTHLY, 25, "09:00", now) == utc(2025, 1, 25, 9, 0)

    def test_monthly_day_31_overflows_february(self):
        assert compute_next_due(ScheduleFrequency.MONTHLY, 31, "09:00", utc(2023, 1, 10)) == utc(2023, 3, 3, 9, 0)
        assert compute_next_due(ScheduleFrequency.MONTHLY, 31, "09:00", utc(2024, 1, 10)) == utc(2024, 3, 2, 9, 0)

    def test_quarterly_is_first_month_of_next_quarter(self):
        assert compute_next_due(ScheduleFrequency.QUARTERLY, 10, "08:00", utc(2024, 3, 13)) == utc(2024, 4, 10, 8, 0)
        assert compute_next_due(ScheduleFrequency.QUARTERLY, 10, "08:00", utc(2024, 4, 1)) == utc(2024, 7, 10, 8, 0)

    def test_quarterly_in_q4_rolls_into_next_year(self):
        assert compute_next_due(ScheduleFrequency.QUARTERLY, 10, "08:00", utc(2024, 11, 1)) == utc(2025, 1, 10, 8, 0)

    def test_annual_is_january_next_year(self):
        assert compute_next_due(ScheduleFrequency.ANNUAL, 5, "09:30", utc(2024, 3, 13)) == utc(2025, 1, 5, 9, 30)

    def test_timezone_is_preserved(self):
        tz = ZoneInfo("America/New_York")
        now = datetime(2024, 3, 13, 10, 0, tzinfo=tz)
        next_due = compute_next_due(ScheduleFrequency.WEEKLY, 1, "09:00", now)
        assert next_due.tzinfo is tz
        assert next_due == datetime(2024, 3, 18, 9, 0, tzinfo=tz)

    @pytest.mark.parametrize("frequency,due_day", [
        (ScheduleFrequency.DAILY, 0),
        (ScheduleFrequency.WEEKLY, 0),
        (ScheduleFrequency.WEEKLY, 3),
        (ScheduleFrequency.WEEKLY, 6),
        (ScheduleFrequency.MONTHLY, 1),
        (ScheduleFrequency.MONTHLY, 31),
        (ScheduleFrequency.QUARTERLY, 15),
        (ScheduleFrequency.ANNUAL, 1),
    ])
    @pytest.mark.parametrize("now", [
        utc(2024, 1, 31, 23, 59),
        utc(2024, 2, 29, 9, 0),
        utc(2024, 3, 13, 10, 0),
        utc(2024, 12, 31, 12, 0),
        utc(2025, 6, 15, 0, 0),
    ])
    def test_next_due_is_strictly_after_now(self, frequency, due_day, now):
        assert compute_next_due(frequency, due_day, "09:00", now) > now

    def test_invalid_due_time_raises(self):
        with pytest.raises(ConfigurationError):
            compute_next_due(ScheduleFrequency.MONTHLY, 15, "25:00", utc(2024, 3, 13))


class TestComputeReportingPeriod:
    """Test the period covered by a scheduled report."""

    def test_daily_is_yesterday(self):
        period = compute_reporting_period(ScheduleFrequency.DAILY, 0, utc(2024, 3, 1, 10))
        assert period == ReportingPeriod(date(2024, 2, 29), date(2024, 2, 29))

    def test_weekly_window(self):
        # Wednesday: starts weekday + 6 = 9 days ago
        period = compute_reporting_period(ScheduleFrequency.WEEKLY, 1, utc(2024, 3, 13, 10))
        assert period == ReportingPeriod(date(2024, 3, 4), date(2024, 3, 10))

    def test_weekly_window_on_sunday(self):
        period = compute_reporting_period(ScheduleFrequency.WEEKLY, 1, utc(2024, 3, 10, 10))
        assert period == ReportingPeriod(date(2024, 3, 4), date(2024, 3, 10))

    def test_monthly_is_previous_calendar_month(self):
        period = compute_reporting_period(ScheduleFrequency.MONTHLY, 15, utc(2024, 3, 13))
        assert period == ReportingPeriod(date(2024, 2, 1), date(2024, 2, 29))

    def test_monthly_in_january_is_december(self):
        period = compute_reporting_period(ScheduleFrequency.MONTHLY, 15, utc(2024, 1, 5))
        assert period == ReportingPeriod(date(2023, 12, 1), date(2023, 12, 31))

    @pytest.mark.parametrize("frequency", [ScheduleFrequency.QUARTERLY, ScheduleFrequency.ANNUAL])
    def test_other_frequencies_use_trailing_30_days(self, frequency):
        period = compute_reporting_period(frequency, 10, utc(2024, 3, 13))
        assert period == ReportingPeriod(date(2024, 2, 12), date(2024, 3, 13))

    def test_period_rejects_inverted_range(self):
        with pytest.raises(ValueError):
            ReportingPeriod(date(2024, 3, 2), date(2024, 3, 1))


class TestNotificationDays:
    def test_exact_date_match_only(self):
        next_due = utc(2024, 3, 18, 9, 0)
        assert is_notification_day(next_due, 2, utc(2024, 3, 16, 0, 1))
        assert is_notification_day(next_due, 2, utc(2024, 3, 16, 23, 59))
        assert not is_notification_day(next_due, 2, utc(2024, 3, 17, 9, 0))
        assert not is_notification_day(next_due, 2, utc(2024, 3, 15, 9, 0))

    def test_notification_dates(self):
        next_due = utc(2024, 4, 15, 9, 0)
        assert notification_dates(next_due, [7, 3, 1]) == [
            (7, date(2024, 4, 8)),
            (3, date(2024, 4, 12)),
            (1, date(2024, 4, 14)),
        ]
