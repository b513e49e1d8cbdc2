"""
Bill enrichment pipeline.

Turns persisted bills into BillViews. Enrichment is a pure function of
(bill, latest payment, now, timezone, grace period): the same snapshot
enriched at the same instant always produces the same view.
"""

from datetime import datetime
from typing import Iterable, Optional

from billtracker.models.bill import Bill, BillStats, BillView, DueState, Payment
from billtracker.recurrence.clock import AppClock
from billtracker.recurrence.evaluator import evaluate_schedule
from billtracker.recurrence.status import classify_due_state, is_bill_paid


def enrich_bill(
    bill: Bill,
    latest_payment: Optional[Payment],
    clock: AppClock,
    grace_days: int,
    now: Optional[datetime] = None,
) -> BillView:
    """
    Derive the read-time status of one bill.

    Args:
        bill: Persisted bill
        latest_payment: Latest payment of the bill, if any
        clock: Application clock (supplies the timezone)
        grace_days: Grace period in days
        now: Instant to evaluate at; read from the clock when omitted

    Returns:
        A frozen BillView
    """
    tz = clock.tz
    now = (now or clock.now()).astimezone(tz)

    schedule = evaluate_schedule(bill, latest_payment, tz)
    paid = is_bill_paid(
        bill.recurrence_type,
        schedule.next_due_date,
        latest_payment is not None,
        now,
        grace_days,
    )

    return BillView(
        **bill.model_dump(),
        is_paid=paid,
        next_due_date=schedule.next_due_date,
        last_paid_date=schedule.last_paid_date,
        due_state=classify_due_state(paid, schedule.next_due_date, now),
    )


def summarize(views: Iterable[BillView]) -> BillStats:
    """
    Aggregate figures over enriched bills.

    Bills paid ahead of time count as paid.
    """
    stats = BillStats()
    for view in views:
        stats.total_bills += 1
        stats.total_amount += view.amount
        if view.is_paid:
            stats.paid_bills += 1
            continue
        stats.unpaid_bills += 1
        stats.due_amount += view.amount
        if view.due_state in (DueState.DUE_TODAY, DueState.UPCOMING) and view.next_due_date is not None:
            stats.upcoming_bills += 1
    return stats
