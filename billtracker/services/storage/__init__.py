"""Storage layer: tenant-scoped data access and user accounts."""

from billtracker.services.storage.admission import LockDialect, LockStatements
from billtracker.services.storage.interface import (
    DuplicateError,
    FirstUserRaceError,
    NotFoundError,
    Storage,
    StorageError,
    StorageTimeoutError,
    TenantStorage,
    UserScope,
    UserStorage,
)
from billtracker.services.storage.sql import (
    SQLStorage,
    SQLTenantStorage,
    SQLUserStorage,
    create_storage_engine,
)

__all__ = [
    "LockDialect",
    "LockStatements",
    "DuplicateError",
    "FirstUserRaceError",
    "NotFoundError",
    "Storage",
    "StorageError",
    "StorageTimeoutError",
    "TenantStorage",
    "UserScope",
    "UserStorage",
    "SQLStorage",
    "SQLTenantStorage",
    "SQLUserStorage",
    "create_storage_engine",
]
