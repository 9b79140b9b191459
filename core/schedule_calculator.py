"""
Schedule Calculator
===================

Pure date arithmetic for recurring compliance obligations.

- Next due timestamp per frequency (daily/weekly/monthly/quarterly/annual)
- Reporting period covered by a scheduled report
- Pre-due reminder dates

All functions are deterministic given ``now`` and keep its tzinfo.
Weekday convention is 0=Sunday .. 6=Saturday.

Day-of-month overflow rolls forward instead of clamping: a monthly
schedule on day 31 computed in January lands on 3 March (2 March in a
leap year), because February has no 31st.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable

from core.exceptions import ConfigurationError
from core.models import ReportingPeriod, ScheduleFrequency

logger = logging.getLogger(__name__)


def parse_due_time(due_time: str) -> tuple[int, int]:
    """
    Parse an "HH:MM" due time.

    Raises:
        ConfigurationError: If the string is not a valid 24h time
    """
    try:
        hours_str, minutes_str = due_time.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ConfigurationError(f"Invalid due time '{due_time}', expected HH:MM") from None

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ConfigurationError(f"Due time out of range: '{due_time}'")

    return hours, minutes


def sunday_based_weekday(day: date) -> int:
    """Weekday with 0=Sunday, 6=Saturday."""
    return day.isoweekday() % 7


def overflow_date(year: int, month_index: int, day: int) -> date:
    """
    Build a date letting month index and day overflow into later months.

    ``month_index`` is zero-based and may exceed 11 (rolls into the next
    year); ``day`` may exceed the month length (rolls into the next month).
    """
    year += month_index // 12
    month_index %= 12
    return date(year, month_index + 1, 1) + timedelta(days=day - 1)


def validate_due_day(frequency: ScheduleFrequency, due_day: int) -> None:
    """Reject due days that make no sense for the frequency."""
    if frequency == ScheduleFrequency.WEEKLY and not 0 <= due_day <= 6:
        raise ConfigurationError(f"Weekly due day must be 0-6 (0=Sunday), got {due_day}")
    if frequency in (
        ScheduleFrequency.MONTHLY,
        ScheduleFrequency.QUARTERLY,
        ScheduleFrequency.ANNUAL,
    ) and not 1 <= due_day <= 31:
        raise ConfigurationError(f"{frequency.value} due day must be 1-31, got {due_day}")


def compute_next_due(
    frequency: ScheduleFrequency,
    due_day: int,
    due_time: str,
    now: datetime,
) -> datetime:
    """
    Compute the next due timestamp for a schedule.

    Args:
        frequency: Schedule frequency
        due_day: Day of week (weekly) or day of month (monthly/quarterly/annual);
            ignored for daily
        due_time: "HH:MM" applied to the resulting day
        now: Reference time

    Returns:
        Due timestamp in ``now``'s timezone, seconds and microseconds zeroed
    """
    hours, minutes = parse_due_time(due_time)
    today = now.date()

    if frequency == ScheduleFrequency.DAILY:
        due_date = today + timedelta(days=1)

    elif frequency == ScheduleFrequency.WEEKLY:
        days_until_due = (due_day - sunday_based_weekday(today) + 7) % 7
        due_date = today + timedelta(days=days_until_due)

    elif frequency == ScheduleFrequency.MONTHLY:
        # now.month is the zero-based index of next month
        due_date = overflow_date(now.year, now.month, due_day)

    elif frequency == ScheduleFrequency.QUARTERLY:
        current_quarter = (now.month - 1) // 3
        due_date = overflow_date(now.year, (current_quarter + 1) * 3, due_day)

    elif frequency == ScheduleFrequency.ANNUAL:
        due_date = overflow_date(now.year + 1, 0, due_day)

    else:
        raise ConfigurationError(f"Unsupported frequency: {frequency}")

    next_due = datetime(
        due_date.year, due_date.month, due_date.day, hours, minutes,
        tzinfo=now.tzinfo,
    )

    # Same weekday but due time already passed: move to next week
    if frequency == ScheduleFrequency.WEEKLY and next_due <= now:
        due_date += timedelta(days=7)
        next_due = datetime(
            due_date.year, due_date.month, due_date.day, hours, minutes,
            tzinfo=now.tzinfo,
        )

    return next_due


def compute_reporting_period(
    frequency: ScheduleFrequency,
    due_day: int,
    now: datetime,
) -> ReportingPeriod:
    """
    Compute the period a scheduled report covers.

    - daily: yesterday
    - weekly: the 7 days starting ``weekday + 6`` days ago
    - monthly: the previous calendar month
    - quarterly/annual: trailing 30 days ending today

    ``due_day`` is accepted for symmetry with ``compute_next_due`` and does
    not influence the period.
    """
    today = now.date()

    if frequency == ScheduleFrequency.DAILY:
        yesterday = today - timedelta(days=1)
        return ReportingPeriod(start=yesterday, end=yesterday)

    if frequency == ScheduleFrequency.WEEKLY:
        week_start = today - timedelta(days=sunday_based_weekday(today) + 6)
        return ReportingPeriod(start=week_start, end=week_start + timedelta(days=6))

    if frequency == ScheduleFrequency.MONTHLY:
        first_of_month = today.replace(day=1)
        last_of_previous = first_of_month - timedelta(days=1)
        return ReportingPeriod(start=last_of_previous.replace(day=1), end=last_of_previous)

    # Quarterly and annual schedules report on a trailing 30-day window
    return ReportingPeriod(start=today - timedelta(days=30), end=today)


def notification_dates(next_due: datetime, offsets: Iterable[int]) -> list[tuple[int, date]]:
    """Pair each days-before-due offset with the calendar date it falls on."""
    return [(offset, (next_due - timedelta(days=offset)).date()) for offset in offsets]


def is_notification_day(next_due: datetime, offset: int, now: datetime) -> bool:
    """True when ``now`` falls on the exact calendar day ``offset`` days before due."""
    return now.date() == (next_due - timedelta(days=offset)).date()
