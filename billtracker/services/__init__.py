"""Application services built on top of storage."""

from billtracker.services.auth import (
    AuthenticationError,
    AuthService,
    BcryptPasswordHasher,
    PasswordHasher,
    RegistrationError,
)
from billtracker.services.bills import BillService
from billtracker.services.categories import CategoryService

__all__ = [
    "AuthenticationError",
    "AuthService",
    "BcryptPasswordHasher",
    "PasswordHasher",
    "RegistrationError",
    "BillService",
    "CategoryService",
]
