"""
Recurrence policy evaluator.

Maps a bill, its latest payment and the application timezone to the next
due date and the last-paid timestamp. Pure: storage access happens before
this is called.
"""

from datetime import datetime, timezone
from typing import Iterable, NamedTuple, Optional
from zoneinfo import ZoneInfo

from billtracker.models.bill import Bill, Payment, RecurrenceType
from billtracker.recurrence.dates import (
    next_fixed_date,
    next_fixed_date_after_payment,
    next_interval_date,
    next_interval_date_after_payment,
    to_app_timezone,
)


class Schedule(NamedTuple):
    """Derived schedule of one bill."""
    next_due_date: Optional[datetime]
    last_paid_date: Optional[datetime]


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def payment_order_key(payment: Payment) -> tuple[datetime, datetime]:
    """Sort key: payment date first, recording time breaks ties."""
    return _utc(payment.payment_date), _utc(payment.created_at)


def pick_latest_payment(payments: Iterable[Payment]) -> Optional[Payment]:
    """The payment with the greatest payment_date, or None."""
    return max(payments, key=payment_order_key, default=None)


def evaluate_schedule(
    bill: Bill,
    latest_payment: Optional[Payment],
    tz: ZoneInfo,
) -> Schedule:
    """
    Compute the next due date of a bill.

    Policies:
        none:       the start date, if any
        fixed_date: the day after the latest payment's month, or the first
                    occurrence on or after start_date / created_at
        interval:   N days after the latest payment, or after
                    start_date / created_at

    last_paid_date is the latest payment's recording time (created_at),
    not its payment_date, for every policy.

    Raises:
        ValueError: On an unknown recurrence policy
    """
    last_paid = to_app_timezone(latest_payment.created_at, tz) if latest_payment else None
    anchor = bill.start_date or bill.created_at

    if bill.recurrence_type == RecurrenceType.NONE:
        next_due = to_app_timezone(bill.start_date, tz) if bill.start_date else None

    elif bill.recurrence_type == RecurrenceType.FIXED_DATE:
        if latest_payment:
            next_due = next_fixed_date_after_payment(
                bill.recurrence_days, latest_payment.payment_date, tz
            )
        else:
            next_due = next_fixed_date(bill.recurrence_days, anchor, tz)

    elif bill.recurrence_type == RecurrenceType.INTERVAL:
        if latest_payment:
            next_due = next_interval_date_after_payment(
                bill.recurrence_days, latest_payment.payment_date, tz
            )
        else:
            next_due = next_interval_date(bill.recurrence_days, anchor, tz)

    else:
        raise ValueError(f"Unknown recurrence type: {bill.recurrence_type!r}")

    return Schedule(next_due_date=next_due, last_paid_date=last_paid)
