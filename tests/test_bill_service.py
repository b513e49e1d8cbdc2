"""Integration tests for BillService: validation, enrichment and scoping."""

from datetime import datetime, timedelta, timezone

import pytest

from billtracker.models import DueState, PaymentDraft, RecurrenceType
from billtracker.recurrence import FixedClock
from billtracker.services.bills import BillService
from billtracker.services.storage import NotFoundError
from billtracker.validation import BillValidationError

UTC = timezone.utc
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)


def fixed(day: int, start: datetime, **extra) -> dict:
    return {
        "name": extra.pop("name", f"Due on {day}"),
        "amount": extra.pop("amount", 100.0),
        "recurrence_type": "fixed_date",
        "recurrence_days": day,
        "start_date": start.isoformat(),
        **extra,
    }


def interval(days: int, start: datetime, **extra) -> dict:
    return {
        "name": extra.pop("name", f"Every {days} days"),
        "amount": extra.pop("amount", 100.0),
        "recurrence_type": "interval",
        "recurrence_days": days,
        "start_date": start.isoformat(),
        **extra,
    }


class TestCreateAndRead:

    async def test_create_returns_enriched_view(self, components, alice):
        view = await components.bills.create_bill(alice, fixed(15, datetime(2024, 3, 1, tzinfo=UTC)))
        assert view.recurrence_type == RecurrenceType.FIXED_DATE
        assert view.next_due_date == datetime(2024, 3, 15, tzinfo=UTC)
        assert not view.is_paid
        assert view.due_state == DueState.UPCOMING
        assert view.last_paid_date is None

    async def test_day_31_in_february(self, components, alice):
        view = await components.bills.create_bill(alice, fixed(31, datetime(2024, 2, 10, tzinfo=UTC)))
        assert view.next_due_date == datetime(2024, 2, 29, tzinfo=UTC)
        assert view.due_state == DueState.OVERDUE

    async def test_client_cannot_choose_owner(self, components, alice, bob):
        view = await components.bills.create_bill(
            alice,
            {"name": "Rent", "amount": 900, "user_id": bob.user_id, "is_paid": True},
        )
        assert view.user_id == alice.user_id
        assert not view.is_paid
        assert await components.bills.list_bills(bob) == []

    async def test_invalid_bill_is_not_written(self, components, alice):
        with pytest.raises(BillValidationError):
            await components.bills.create_bill(alice, fixed(32, NOW))
        with pytest.raises(BillValidationError):
            await components.bills.create_bill(alice, interval(366, NOW))
        with pytest.raises(BillValidationError):
            await components.bills.create_bill(alice, {"name": "", "amount": 10})
        assert await components.bills.list_bills(alice) == []

    async def test_list_bills_is_idempotent(self, components, alice):
        bill = await components.bills.create_bill(alice, interval(30, datetime(2024, 2, 1, tzinfo=UTC)))
        await components.bills.record_payment(
            alice, bill.id, {"amount": 100, "payment_date": "2024-03-01T00:00:00Z"}
        )
        first = await components.bills.list_bills(alice)
        second = await components.bills.list_bills(alice)
        assert first == second
        assert first[0].next_due_date == datetime(2024, 3, 31, tzinfo=UTC)
        assert first[0].is_paid

    async def test_get_bill_of_other_user(self, components, alice, bob):
        bill = await components.bills.create_bill(alice, fixed(1, NOW))
        with pytest.raises(NotFoundError):
            await components.bills.get_bill(bob, bill.id)


class TestPayments:

    async def test_interval_after_payment(self, components, alice):
        bill = await components.bills.create_bill(alice, interval(14, datetime(2023, 12, 1, tzinfo=UTC)))
        await components.bills.record_payment(
            alice, bill.id, PaymentDraft(amount=100, payment_date=datetime(2024, 1, 1, tzinfo=UTC))
        )
        view = await components.bills.get_bill(alice, bill.id)
        assert view.next_due_date == datetime(2024, 1, 15, tzinfo=UTC)
        assert view.due_state == DueState.OVERDUE

    async def test_payment_date_defaults_to_clock(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(20, NOW))
        payment = await components.bills.record_payment(alice, bill.id, {"amount": 100})
        assert payment.payment_date == NOW

        view = await components.bills.get_bill(alice, bill.id)
        assert view.next_due_date == datetime(2024, 4, 20, tzinfo=UTC)
        assert view.is_paid
        assert view.last_paid_date == payment.created_at

    @pytest.mark.parametrize("days,expected_paid", [(5, False), (10, True)])
    async def test_grace_period(self, components, alice, days, expected_paid):
        bill = await components.bills.create_bill(alice, interval(days, NOW - timedelta(days=40)))
        await components.bills.record_payment(alice, bill.id, {"amount": 100})
        view = await components.bills.get_bill(alice, bill.id)
        assert view.is_paid is expected_paid

    async def test_one_time_bill_paid_forever(self, components, settings, alice):
        bill = await components.bills.create_bill(
            alice,
            {"name": "Deposit", "amount": 500, "start_date": "2024-03-01T00:00:00Z"},
        )
        assert not bill.is_paid
        assert bill.due_state == DueState.OVERDUE

        await components.bills.record_payment(alice, bill.id, {"amount": 500})

        for years in (0, 3, 30):
            later = BillService(
                components.storage,
                FixedClock(NOW + timedelta(days=365 * years)),
                settings=settings.bills,
            )
            view = await later.get_bill(alice, bill.id)
            assert view.is_paid
            assert view.due_state == DueState.PAID

    async def test_backdated_payment_does_not_win_over_latest(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(5, datetime(2024, 1, 1, tzinfo=UTC)))
        await components.bills.record_payment(alice, bill.id, {"amount": 100, "payment_date": "2024-03-05T00:00:00Z"})
        await components.bills.record_payment(alice, bill.id, {"amount": 100, "payment_date": "2024-01-05T00:00:00Z"})
        view = await components.bills.get_bill(alice, bill.id)
        assert view.next_due_date == datetime(2024, 4, 5, tzinfo=UTC)

        payments = await components.bills.list_payments(alice, bill.id)
        assert len(payments) == 2

    async def test_delete_payment_reopens_bill(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(15, datetime(2024, 3, 1, tzinfo=UTC)))
        payment = await components.bills.record_payment(alice, bill.id, {"amount": 100})
        assert (await components.bills.get_bill(alice, bill.id)).is_paid

        await components.bills.delete_payment(alice, payment.id)
        view = await components.bills.get_bill(alice, bill.id)
        assert not view.is_paid
        assert view.next_due_date == datetime(2024, 3, 15, tzinfo=UTC)

    async def test_invalid_payment(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(1, NOW))
        with pytest.raises(ValueError):
            await components.bills.record_payment(alice, bill.id, {"amount": -1})

    async def test_payment_on_other_users_bill(self, components, alice, bob):
        bill = await components.bills.create_bill(alice, fixed(1, NOW))
        with pytest.raises(NotFoundError):
            await components.bills.record_payment(bob, bill.id, {"amount": 10})
        with pytest.raises(NotFoundError):
            await components.bills.list_payments(bob, bill.id)


class TestUpdateAndDelete:

    async def test_update(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(15, datetime(2024, 3, 1, tzinfo=UTC)))
        updated = await components.bills.update_bill(
            alice, bill.id, interval(7, datetime(2024, 3, 8, tzinfo=UTC), name="Weekly")
        )
        assert updated.name == "Weekly"
        assert updated.recurrence_type == RecurrenceType.INTERVAL
        assert updated.next_due_date == datetime(2024, 3, 15, tzinfo=UTC)
        assert updated.created_at == bill.created_at

    async def test_invalid_update_is_not_written(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(15, NOW))
        with pytest.raises(BillValidationError):
            await components.bills.update_bill(alice, bill.id, fixed(0, NOW))
        assert (await components.bills.get_bill(alice, bill.id)).recurrence_days == 15

    async def test_other_user_cannot_update_or_delete(self, components, alice, bob):
        bill = await components.bills.create_bill(alice, fixed(15, NOW, name="Mine"))

        with pytest.raises(NotFoundError):
            await components.bills.update_bill(bob, bill.id, fixed(15, NOW, name="Stolen"))
        with pytest.raises(NotFoundError):
            await components.bills.delete_bill(bob, bill.id)

        assert (await components.bills.get_bill(alice, bill.id)).name == "Mine"

    async def test_delete(self, components, alice):
        bill = await components.bills.create_bill(alice, fixed(15, NOW))
        await components.bills.record_payment(alice, bill.id, {"amount": 100})
        await components.bills.delete_bill(alice, bill.id)
        with pytest.raises(NotFoundError):
            await components.bills.get_bill(alice, bill.id)


class TestStats:

    async def test_stats(self, components, alice, bob):
        paid = await components.bills.create_bill(alice, fixed(20, NOW, amount=50))
        await components.bills.record_payment(alice, paid.id, {"amount": 50})
        await components.bills.create_bill(alice, fixed(1, datetime(2024, 3, 1, tzinfo=UTC), amount=30))
        await components.bills.create_bill(alice, fixed(12, NOW, amount=20))
        await components.bills.create_bill(bob, fixed(12, NOW, amount=999))

        stats = await components.bills.get_stats(alice)
        assert stats.total_bills == 3
        assert stats.total_amount == 100
        assert stats.paid_bills == 1
        assert stats.unpaid_bills == 2
        assert stats.due_amount == 50
        assert stats.upcoming_bills == 1
