"""Tests for calendar arithmetic."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from billtracker.recurrence.dates import (
    clamp_to_month,
    days_in_month,
    next_fixed_date,
    next_fixed_date_after_payment,
    next_interval_date,
    next_interval_date_after_payment,
    to_app_timezone,
)

UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")
TOKYO = ZoneInfo("Asia/Tokyo")


def local(y, m, d, tz=UTC) -> datetime:
    return datetime(y, m, d, tzinfo=tz)


def _reference_days():
    """Every day of a leap year plus the first days of the next one."""
    day = date(2024, 1, 1)
    while day < date(2025, 1, 10):
        yield day
        day += timedelta(days=1)


class TestHelpers:

    def test_days_in_month(self):
        assert days_in_month(2024, 2) == 29
        assert days_in_month(2023, 2) == 28
        assert days_in_month(2024, 4) == 30
        assert days_in_month(2024, 12) == 31

    def test_clamp_to_month(self):
        assert clamp_to_month(2024, 2, 31) == date(2024, 2, 29)
        assert clamp_to_month(2024, 4, 31) == date(2024, 4, 30)
        assert clamp_to_month(2024, 5, 31) == date(2024, 5, 31)
        assert clamp_to_month(2024, 5, 1) == date(2024, 5, 1)

    def test_naive_datetime_is_utc(self):
        converted = to_app_timezone(datetime(2024, 1, 31, 23, 30), TOKYO)
        assert converted.date() == date(2024, 2, 1)
        assert converted.utcoffset() == timedelta(hours=9)

    def test_aware_datetime_is_converted(self):
        converted = to_app_timezone(datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc), NEW_YORK)
        assert converted.date() == date(2024, 1, 31)
        assert converted.hour == 18

    def test_date_is_local_midnight(self):
        converted = to_app_timezone(date(2024, 7, 4), NEW_YORK)
        assert converted == datetime(2024, 7, 4, tzinfo=NEW_YORK)


class TestNextFixedDate:

    def test_same_month_when_day_not_passed(self):
        assert next_fixed_date(15, date(2024, 3, 1), UTC) == local(2024, 3, 15)

    def test_reference_on_due_day(self):
        assert next_fixed_date(15, datetime(2024, 3, 15, 18, 0), UTC) == local(2024, 3, 15)

    def test_created_after_due_day_rolls_to_next_month(self):
        assert next_fixed_date(15, date(2024, 3, 20), UTC) == local(2024, 4, 15)

    def test_day_31_in_february_is_last_day_of_february(self):
        assert next_fixed_date(31, date(2024, 2, 10), UTC) == local(2024, 2, 29)
        assert next_fixed_date(31, date(2023, 2, 10), UTC) == local(2023, 2, 28)

    def test_day_31_rolling_into_short_month(self):
        assert next_fixed_date(31, date(2024, 1, 31), UTC) == local(2024, 1, 31)
        assert next_fixed_date(30, date(2024, 1, 31), UTC) == local(2024, 2, 29)

    def test_december_rolls_into_january(self):
        assert next_fixed_date(5, date(2024, 12, 20), UTC) == local(2025, 1, 5)

    @pytest.mark.parametrize("day", range(1, 32))
    def test_result_matches_day_and_never_precedes_reference(self, day):
        for ref in _reference_days():
            due = next_fixed_date(day, ref, UTC)
            due_day = due.date()
            assert due_day >= ref
            assert due_day.day == min(day, days_in_month(due_day.year, due_day.month))
            assert due.time() == time(0, 0)
            assert due.tzinfo is UTC

    def test_reference_converted_into_app_timezone(self):
        # 23:30 UTC on Jan 31st is already Feb 1st in Tokyo
        ref = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
        assert next_fixed_date(1, ref, TOKYO) == local(2024, 2, 1, TOKYO)
        assert next_fixed_date(1, ref, UTC) == local(2024, 2, 1)
        assert next_fixed_date(31, ref, UTC) == local(2024, 1, 31)

    @pytest.mark.parametrize("day", [0, 32, -1])
    def test_invalid_day(self, day):
        with pytest.raises(ValueError):
            next_fixed_date(day, date(2024, 1, 1), UTC)


class TestNextFixedDateAfterPayment:

    def test_next_month(self):
        assert next_fixed_date_after_payment(15, date(2024, 3, 2), UTC) == local(2024, 4, 15)

    def test_day_31_paid_in_january(self):
        assert next_fixed_date_after_payment(31, date(2024, 1, 31), UTC) == local(2024, 2, 29)

    def test_december_rolls_into_next_year(self):
        assert next_fixed_date_after_payment(10, date(2024, 12, 28), UTC) == local(2025, 1, 10)

    @pytest.mark.parametrize("day", range(1, 32))
    def test_never_more_than_one_month_ahead(self, day):
        for paid_on in _reference_days():
            due = next_fixed_date_after_payment(day, paid_on, UTC).date()
            months_ahead = (due.year - paid_on.year) * 12 + due.month - paid_on.month
            assert months_ahead == 1
            assert due.day == min(day, days_in_month(due.year, due.month))

    def test_invalid_day(self):
        with pytest.raises(ValueError):
            next_fixed_date_after_payment(32, date(2024, 1, 1), UTC)


class TestIntervalDates:

    def test_fourteen_days_after_payment(self):
        assert next_interval_date_after_payment(14, date(2024, 1, 1), UTC) == local(2024, 1, 15)

    def test_independent_of_time_of_day(self):
        early = next_interval_date(7, datetime(2024, 1, 1, 0, 0), UTC)
        late = next_interval_date(7, datetime(2024, 1, 1, 23, 59, 59), UTC)
        assert early == late == local(2024, 1, 8)

    def test_crosses_month_and_year(self):
        assert next_interval_date(30, date(2024, 12, 15), UTC) == local(2025, 1, 14)

    def test_uses_local_calendar_day(self):
        ref = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
        assert next_interval_date(1, ref, NEW_YORK) == local(2024, 2, 1, NEW_YORK)
        assert next_interval_date(1, ref, TOKYO) == local(2024, 2, 2, TOKYO)

    def test_across_daylight_saving_change(self):
        due = next_interval_date(1, date(2024, 3, 9), NEW_YORK)
        assert due == local(2024, 3, 10, NEW_YORK)
        assert due.hour == 0

    @pytest.mark.parametrize("interval", [0, -3])
    def test_invalid_interval(self, interval):
        with pytest.raises(ValueError):
            next_interval_date(interval, date(2024, 1, 1), UTC)
        with pytest.raises(ValueError):
            next_interval_date_after_payment(interval, date(2024, 1, 1), UTC)
