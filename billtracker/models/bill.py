"""
Core Data Models for Bill Tracker

These models define the schemas for all bill data flowing through the system.

Three families of models exist for each entity:
1. Drafts (BillDraft, PaymentDraft, CategoryDraft) - what a client may send.
   They carry no identity, owner or server timestamps.
2. Persisted entities (Bill, Payment, Category) - what storage returns.
3. Views (BillView) - persisted data plus fields derived at read time.
   Storage never accepts a view.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecurrenceType(str, Enum):
    """
    How a bill repeats.

    NONE:       one-time bill, due on its start date (if any)
    FIXED_DATE: due on the same day of every month
    INTERVAL:   due every N days
    """
    NONE = "none"
    FIXED_DATE = "fixed_date"
    INTERVAL = "interval"

    @property
    def is_recurring(self) -> bool:
        return self is not RecurrenceType.NONE


class DueState(str, Enum):
    """Display status of a bill relative to today."""
    PAID = "paid"
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"


# =============================================================================
# BILLS
# =============================================================================

class BillDraft(BaseModel):
    """
    Client-supplied bill fields.

    Unknown keys (user_id, created_at, ...) are ignored, so ownership and
    timestamps can only ever be assigned by the server.
    Recurrence rules that depend on configuration are checked by
    BillValidator, not here.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Bill name"
    )
    amount: float = Field(
        ...,
        gt=0,
        description="Amount due per occurrence"
    )
    recurrence_type: RecurrenceType = Field(
        default=RecurrenceType.NONE,
        description="Recurrence policy"
    )
    recurrence_days: int = Field(
        default=1,
        description="Day of month (fixed_date) or number of days (interval)"
    )
    category_id: Optional[str] = Field(
        default=None,
        description="Optional category reference"
    )
    start_date: Optional[datetime] = Field(
        default=None,
        description="Due date of one-time bills; anchor of recurring ones"
    )
    notes: str = Field(
        default="",
        max_length=1000
    )

    @field_validator('category_id')
    @classmethod
    def empty_category_is_none(cls, v: Optional[str]) -> Optional[str]:
        """An empty category reference means 'no category'."""
        return v or None


class _BillFields(BaseModel):
    """Fields shared by persisted bills and their read-time views."""

    id: str
    user_id: str
    name: str
    amount: float
    recurrence_type: RecurrenceType
    recurrence_days: int
    category_id: Optional[str] = None
    start_date: Optional[datetime] = None
    notes: str = ""
    created_at: datetime
    updated_at: datetime


class Bill(_BillFields):
    """A bill as persisted by storage."""

    id: str = Field(default_factory=new_id)


class BillView(_BillFields):
    """
    A bill enriched with read-time status.

    is_paid, next_due_date, last_paid_date and due_state are recomputed
    from payment history on every read and never written back.
    """
    model_config = ConfigDict(frozen=True)

    is_paid: bool
    next_due_date: Optional[datetime] = None
    last_paid_date: Optional[datetime] = Field(
        default=None,
        description="When the latest payment was recorded (not its payment date)"
    )
    due_state: DueState

    def to_bill(self) -> Bill:
        """Strip derived fields."""
        return Bill.model_validate(self.model_dump(include=set(_BillFields.model_fields)))


class BillStats(BaseModel):
    """Aggregate figures over a user's bills."""

    total_bills: int = 0
    total_amount: float = 0.0
    due_amount: float = Field(
        default=0.0,
        description="Sum of amounts of unpaid bills"
    )
    paid_bills: int = 0
    unpaid_bills: int = 0
    upcoming_bills: int = Field(
        default=0,
        description="Unpaid bills whose due date has not passed yet"
    )


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentDraft(BaseModel):
    """Client-supplied payment fields. The bill comes from the URL, not the body."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    amount: float = Field(
        ...,
        gt=0,
        description="Amount paid"
    )
    payment_date: Optional[datetime] = Field(
        default=None,
        description="The due date being satisfied; defaults to now"
    )
    notes: str = Field(
        default="",
        max_length=1000
    )


class Payment(BaseModel):
    """A recorded payment."""

    id: str = Field(default_factory=new_id)
    bill_id: str
    amount: float
    payment_date: datetime = Field(
        ...,
        description="The due date being satisfied (may be backdated)"
    )
    notes: str = ""
    created_at: datetime = Field(
        ...,
        description="When the payment was recorded"
    )


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryDraft(BaseModel):
    """Client-supplied category fields."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    color: str = Field(
        default="",
        max_length=20,
        description="Display color, e.g. #4F8EF7"
    )


class Category(BaseModel):
    """A user-owned bill category."""

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    color: str = ""
    created_at: datetime


DEFAULT_CATEGORIES = (
    CategoryDraft(name="Utilities", color="#4F8EF7"),
    CategoryDraft(name="Rent", color="#F76E4F"),
    CategoryDraft(name="Internet", color="#4FF7A2"),
    CategoryDraft(name="Entertainment", color="#F7E24F"),
)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'out_of_range', 'invalid_choice')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix for the user"
    )
