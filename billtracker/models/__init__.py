"""Data models for bills, payments, categories and users."""

from billtracker.models.bill import (
    DEFAULT_CATEGORIES,
    Bill,
    BillDraft,
    BillStats,
    BillView,
    Category,
    CategoryDraft,
    DueState,
    Payment,
    PaymentDraft,
    RecurrenceType,
    ValidationIssue,
    new_id,
)
from billtracker.models.user import (
    ADMIN_ROLES,
    DEFAULT_ROLES,
    LoginRequest,
    RegistrationRequest,
    Role,
    User,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "Bill",
    "BillDraft",
    "BillStats",
    "BillView",
    "Category",
    "CategoryDraft",
    "DueState",
    "Payment",
    "PaymentDraft",
    "RecurrenceType",
    "ValidationIssue",
    "new_id",
    "ADMIN_ROLES",
    "DEFAULT_ROLES",
    "LoginRequest",
    "RegistrationRequest",
    "Role",
    "User",
]
