"""
Payment-status classifier.

A recurring bill counts as paid while its next due date is at least the
grace period away. A one-time bill is paid once any payment exists and
stays paid.
"""

from datetime import datetime, timedelta
from typing import Optional

from billtracker.models.bill import DueState, RecurrenceType


def is_bill_paid(
    recurrence_type: RecurrenceType,
    next_due_date: Optional[datetime],
    has_payment: bool,
    now: datetime,
    grace_days: int,
) -> bool:
    """
    Decide whether a bill is currently paid.

    Args:
        recurrence_type: The bill's policy
        next_due_date: Result of evaluate_schedule
        has_payment: Whether at least one payment is recorded
        now: Current instant (aware)
        grace_days: Configured grace period in days

    Returns:
        True if the bill is paid
    """
    if not recurrence_type.is_recurring:
        return has_payment
    if next_due_date is None:
        return False
    return next_due_date - now >= timedelta(days=grace_days)


def classify_due_state(
    is_paid: bool,
    next_due_date: Optional[datetime],
    now: datetime,
) -> DueState:
    """
    Status badge for a bill.

    Unpaid bills are compared by calendar day in the timezone of `now`:
    before today is overdue, today is due today, anything later (or no
    due date at all) is upcoming.
    """
    if is_paid:
        return DueState.PAID
    if next_due_date is None:
        return DueState.UPCOMING

    due_day = next_due_date.astimezone(now.tzinfo).date()
    today = now.date()
    if due_day < today:
        return DueState.OVERDUE
    if due_day == today:
        return DueState.DUE_TODAY
    return DueState.UPCOMING
