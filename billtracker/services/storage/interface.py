"""
Abstract Storage Interface

DESIGN DECISION: Business logic never talks to the database directly.
Bill, category and payment access goes through a TenantStorage that is
bound to exactly one verified user. This gives us:
1. Tenant scoping by construction - there is no method that takes a
   user id, so a caller cannot ask for somebody else's data
2. Records owned by another user are indistinguishable from missing ones
   (NotFoundError, never a "forbidden")
3. A place to enforce the caller's deadline on every call

User accounts live outside any tenant and are reached through UserStorage.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from billtracker.models.bill import (
    Bill,
    BillDraft,
    Category,
    CategoryDraft,
    Payment,
    PaymentDraft,
)
from billtracker.models.user import Role, User


class UserScope(BaseModel):
    """Verified identity of the caller plus an optional deadline."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Upper bound for each storage call; None waits for the driver"
    )


class TenantStorage(ABC):
    """
    Data access bound to one user.

    Every statement filters by the bound user (bills, categories) or joins
    through the owning bill (payments).
    """

    @property
    @abstractmethod
    def scope(self) -> UserScope:
        pass

    @property
    def user_id(self) -> str:
        return self.scope.user_id

    # -- bills ---------------------------------------------------------------

    @abstractmethod
    async def create_bill(self, draft: BillDraft) -> Bill:
        """
        Persist a new bill owned by the bound user.

        Args:
            draft: Validated client fields

        Returns:
            The stored bill with server-assigned id and timestamps

        Raises:
            NotFoundError: If draft.category_id is not one of the user's categories
        """
        pass

    @abstractmethod
    async def get_bill(self, bill_id: str) -> Bill:
        """
        Raises:
            NotFoundError: If the bill is missing or owned by someone else
        """
        pass

    @abstractmethod
    async def list_bills(self) -> list[Bill]:
        """All bills of the bound user, oldest first."""
        pass

    @abstractmethod
    async def update_bill(self, bill_id: str, draft: BillDraft) -> Bill:
        """
        Replace the client fields of a bill.

        created_at is preserved and updated_at refreshed.

        Raises:
            NotFoundError: If the bill (or the new category) is not the user's
        """
        pass

    @abstractmethod
    async def delete_bill(self, bill_id: str) -> None:
        """
        Delete a bill and its payments.

        Raises:
            NotFoundError: If the bill is missing or owned by someone else
        """
        pass

    # -- categories ----------------------------------------------------------

    @abstractmethod
    async def create_category(self, draft: CategoryDraft) -> Category:
        pass

    @abstractmethod
    async def get_category(self, category_id: str) -> Category:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> None:
        """Delete a category. Bills using it keep existing without a category."""
        pass

    # -- payments ------------------------------------------------------------

    @abstractmethod
    async def create_payment(self, bill_id: str, draft: PaymentDraft) -> Payment:
        """
        Record a payment against one of the user's bills.

        payment_date defaults to the current instant.

        Raises:
            NotFoundError: If the bill is missing or owned by someone else
        """
        pass

    @abstractmethod
    async def list_payments(self, bill_id: str) -> list[Payment]:
        """
        Payments of a bill, latest payment_date first.

        Raises:
            NotFoundError: If the bill is missing or owned by someone else
        """
        pass

    @abstractmethod
    async def delete_payment(self, payment_id: str) -> None:
        pass

    @abstractmethod
    async def get_latest_payment(self, bill_id: str) -> Optional[Payment]:
        """
        The payment with the greatest payment_date, ties broken by created_at.

        Returns None for bills without payments and for bills that are not
        the user's.
        """
        pass


class UserStorage(ABC):
    """Access to user accounts."""

    @abstractmethod
    async def count_users(self) -> int:
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> User:
        """
        Raises:
            NotFoundError: If no such user exists
        """
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """
        Insert a user with the roles it carries.

        Raises:
            DuplicateError: If the username or email is taken
        """
        pass

    @abstractmethod
    async def create_first_user(self, user: User, roles: list[Role]) -> User:
        """
        Insert the very first user with elevated roles.

        Runs in one transaction holding an exclusive lock on the users
        table: the user count is re-checked under the lock and the insert
        only happens if it is still zero.

        Raises:
            FirstUserRaceError: If another user exists by the time the lock
                is held
        """
        pass


class Storage(ABC):
    """Root storage handle. Create once per process."""

    @abstractmethod
    async def init(self) -> None:
        """Verify the connection and create missing tables."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @property
    @abstractmethod
    def users(self) -> UserStorage:
        pass

    @abstractmethod
    def for_user(self, scope: UserScope) -> TenantStorage:
        """Bind data access to one verified user."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage, or not owned by the caller."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageTimeoutError(StorageError):
    """The caller's deadline passed before storage answered."""
    pass


class FirstUserRaceError(StorageError):
    """Another registration became the first user while we waited for the lock."""
    pass
