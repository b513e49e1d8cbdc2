"""
Bill Service

Reads go through the enrichment pipeline: raw bills are fetched from
tenant-scoped storage together with their latest payment and turned into
BillViews. Derived fields are never written back.

Writes go through BillValidator first. An invalid bill raises
BillValidationError and storage is not touched.
"""

from datetime import datetime
from typing import Any, Optional, Union

import structlog

from billtracker.config import BillsSettings, get_settings
from billtracker.models.bill import (
    Bill,
    BillDraft,
    BillStats,
    BillView,
    Payment,
    PaymentDraft,
)
from billtracker.recurrence.clock import AppClock
from billtracker.recurrence.enrichment import enrich_bill, summarize
from billtracker.services.storage.interface import Storage, TenantStorage, UserScope
from billtracker.validation.validator import BillValidator

logger = structlog.get_logger(__name__)


class BillService:
    """Bill and payment use cases for one application instance."""

    def __init__(
        self,
        storage: Storage,
        clock: AppClock,
        validator: Optional[BillValidator] = None,
        settings: Optional[BillsSettings] = None,
    ):
        self._storage = storage
        self._clock = clock
        self._settings = settings or get_settings().bills
        self._validator = validator or BillValidator(self._settings)

    @property
    def grace_days(self) -> int:
        return self._settings.payment_grace_days

    def _tenant(self, scope: UserScope) -> TenantStorage:
        return self._storage.for_user(scope)

    async def _enrich(
        self,
        tenant: TenantStorage,
        bill: Bill,
        now: Optional[datetime] = None,
    ) -> BillView:
        latest = await tenant.get_latest_payment(bill.id)
        return enrich_bill(bill, latest, self._clock, self.grace_days, now=now)

    # =========================================================================
    # READS
    # =========================================================================

    async def list_bills(self, scope: UserScope) -> list[BillView]:
        """
        All bills of the caller with derived status.

        The current instant is read once, so every bill in the list is
        evaluated against the same "now". The first storage error
        propagates; a partial list is never returned.
        """
        tenant = self._tenant(scope)
        bills = await tenant.list_bills()
        now = self._clock.now()

        views = []
        for bill in bills:
            views.append(await self._enrich(tenant, bill, now))
        return views

    async def get_bill(self, scope: UserScope, bill_id: str) -> BillView:
        """
        Raises:
            NotFoundError: If the bill is missing or not the caller's
        """
        tenant = self._tenant(scope)
        return await self._enrich(tenant, await tenant.get_bill(bill_id))

    async def get_stats(self, scope: UserScope) -> BillStats:
        return summarize(await self.list_bills(scope))

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create_bill(self, scope: UserScope, data: Union[BillDraft, dict[str, Any]]) -> BillView:
        """
        Validate and persist a new bill.

        Args:
            scope: Caller identity
            data: Client fields; ownership and timestamps are ignored

        Returns:
            The stored bill with derived status

        Raises:
            BillValidationError: If the bill is invalid
            NotFoundError: If category_id is not one of the caller's categories
        """
        draft = self._validator.validate(data)
        tenant = self._tenant(scope)
        bill = await tenant.create_bill(draft)
        return await self._enrich(tenant, bill)

    async def update_bill(
        self,
        scope: UserScope,
        bill_id: str,
        data: Union[BillDraft, dict[str, Any]],
    ) -> BillView:
        """
        Validate and replace the client fields of a bill.

        Raises:
            BillValidationError: If the bill is invalid
            NotFoundError: If the bill is missing or not the caller's
        """
        draft = self._validator.validate(data)
        tenant = self._tenant(scope)
        bill = await tenant.update_bill(bill_id, draft)
        return await self._enrich(tenant, bill)

    async def delete_bill(self, scope: UserScope, bill_id: str) -> None:
        await self._tenant(scope).delete_bill(bill_id)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def record_payment(
        self,
        scope: UserScope,
        bill_id: str,
        data: Union[PaymentDraft, dict[str, Any]],
    ) -> Payment:
        """
        Record a payment against a bill.

        payment_date defaults to the current instant of the application clock.

        Raises:
            pydantic.ValidationError: If the payment fields are invalid
            NotFoundError: If the bill is missing or not the caller's
        """
        draft = data if isinstance(data, PaymentDraft) else PaymentDraft.model_validate(data)
        if draft.payment_date is None:
            draft = draft.model_copy(update={"payment_date": self._clock.now()})
        return await self._tenant(scope).create_payment(bill_id, draft)

    async def list_payments(self, scope: UserScope, bill_id: str) -> list[Payment]:
        return await self._tenant(scope).list_payments(bill_id)

    async def delete_payment(self, scope: UserScope, payment_id: str) -> None:
        await self._tenant(scope).delete_payment(payment_id)
        logger.info("payment_deleted", user_id=scope.user_id, payment_id=payment_id)
