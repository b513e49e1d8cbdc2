"""Recurrence and payment-status derivation."""

from billtracker.recurrence.clock import AppClock, FixedClock
from billtracker.recurrence.dates import (
    clamp_to_month,
    days_in_month,
    next_fixed_date,
    next_fixed_date_after_payment,
    next_interval_date,
    next_interval_date_after_payment,
    to_app_timezone,
)
from billtracker.recurrence.enrichment import enrich_bill, summarize
from billtracker.recurrence.evaluator import (
    Schedule,
    evaluate_schedule,
    payment_order_key,
    pick_latest_payment,
)
from billtracker.recurrence.status import classify_due_state, is_bill_paid

__all__ = [
    "AppClock",
    "FixedClock",
    "clamp_to_month",
    "days_in_month",
    "next_fixed_date",
    "next_fixed_date_after_payment",
    "next_interval_date",
    "next_interval_date_after_payment",
    "to_app_timezone",
    "enrich_bill",
    "summarize",
    "Schedule",
    "evaluate_schedule",
    "payment_order_key",
    "pick_latest_payment",
    "classify_due_state",
    "is_bill_paid",
]
