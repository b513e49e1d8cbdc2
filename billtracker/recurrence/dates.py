"""
Calendar arithmetic for bill recurrence.

DESIGN DECISION: All functions are pure and take the application timezone
explicitly. Results are aware datetimes at local midnight, so only the
calendar day carries meaning.

Accepted inputs:
- date: taken as that calendar day in the application timezone
- naive datetime: interpreted as UTC (the storage convention)
- aware datetime: converted into the application timezone

Month overflow policy: a day-of-month that does not exist in the target
month (31 in April, 30 in February) is clamped to that month's last day.
The clamp never moves the result into another month.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Union
from zoneinfo import ZoneInfo

DateLike = Union[date, datetime]

MIN_DAY_OF_MONTH = 1
MAX_DAY_OF_MONTH = 31


# =============================================================================
# HELPERS
# =============================================================================

def to_app_timezone(value: DateLike, tz: ZoneInfo) -> datetime:
    """
    Normalize a date or datetime into an aware datetime in tz.

    Args:
        value: date, naive datetime (UTC) or aware datetime
        tz: Application timezone

    Returns:
        Aware datetime in tz
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(tz)
    return datetime.combine(value, time.min, tzinfo=tz)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_to_month(year: int, month: int, day: int) -> date:
    """The given day in year/month, or the month's last day if it is shorter."""
    return date(year, month, min(day, days_in_month(year, month)))


def _midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def _check_day(day: int) -> None:
    if not MIN_DAY_OF_MONTH <= day <= MAX_DAY_OF_MONTH:
        raise ValueError(f"day of month must be between 1 and 31, got {day}")


def _check_interval(interval_days: int) -> None:
    if interval_days < 1:
        raise ValueError(f"interval must be at least 1 day, got {interval_days}")


# =============================================================================
# FIXED-DATE RECURRENCE
# =============================================================================

def next_fixed_date(day: int, reference: DateLike, tz: ZoneInfo) -> datetime:
    """
    Earliest occurrence of `day` on or after the reference's calendar day.

    The occurrence is looked up in the reference month first, then in the
    following month. Both candidates are clamped to their month's length,
    so day=31 evaluated on February 10th yields the last day of February.

    Args:
        day: Day of month (1..31)
        reference: Creation or start date of the bill
        tz: Application timezone

    Returns:
        Local midnight of the due day

    Raises:
        ValueError: If day is outside 1..31
    """
    _check_day(day)
    ref_day = to_app_timezone(reference, tz).date()

    candidate = clamp_to_month(ref_day.year, ref_day.month, day)
    if candidate < ref_day:
        year, month = _next_month(ref_day.year, ref_day.month)
        candidate = clamp_to_month(year, month, day)

    return _midnight(candidate, tz)


def next_fixed_date_after_payment(day: int, payment_date: DateLike, tz: ZoneInfo) -> datetime:
    """
    Occurrence of `day` in the month following the payment's month.

    Never advances more than one calendar month: day=31 paid in January
    yields the last day of February. December rolls into January.

    Raises:
        ValueError: If day is outside 1..31
    """
    _check_day(day)
    paid_on = to_app_timezone(payment_date, tz).date()
    year, month = _next_month(paid_on.year, paid_on.month)
    return _midnight(clamp_to_month(year, month, day), tz)


# =============================================================================
# INTERVAL RECURRENCE
# =============================================================================

def next_interval_date(interval_days: int, reference: DateLike, tz: ZoneInfo) -> datetime:
    """
    Reference's local calendar day plus interval_days, at local midnight.

    The time-of-day of the reference is discarded before adding, so the
    result does not depend on it.

    Raises:
        ValueError: If interval_days < 1
    """
    _check_interval(interval_days)
    ref_day = to_app_timezone(reference, tz).date()
    return _midnight(ref_day + timedelta(days=interval_days), tz)


def next_interval_date_after_payment(interval_days: int, payment_date: DateLike, tz: ZoneInfo) -> datetime:
    """Same arithmetic as next_interval_date, anchored on the payment date."""
    return next_interval_date(interval_days, payment_date, tz)
