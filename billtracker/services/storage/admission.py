"""
First-user admission control.

Exactly one concurrent registrant may become the first (elevated) user.
The insert runs inside a transaction that holds an exclusive lock on the
users table and re-counts users under that lock.

How the lock is taken depends on the backend:

    POSTGRESQL: LOCK TABLE users IN ACCESS EXCLUSIVE MODE
    MYSQL:      LOCK TABLES users WRITE ... UNLOCK TABLES
    SQLITE:     no lock statement; the transaction opens with
                BEGIN IMMEDIATE, which takes SQLite's single writer lock

The backend is resolved once from the engine's dialect name.
"""

from enum import Enum
from typing import Any, NamedTuple, Optional

import structlog
from sqlalchemy import func, insert, select, text
from sqlalchemy.ext.asyncio import AsyncConnection

from billtracker.services.storage.interface import FirstUserRaceError, StorageError
from billtracker.services.storage.tables import users_table

logger = structlog.get_logger(__name__)


class LockStatements(NamedTuple):
    """SQL issued around the admission transaction."""
    begin: Optional[str]
    lock: Optional[str]
    unlock: Optional[str]


class LockDialect(str, Enum):
    """Database backends that support first-user admission."""
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @classmethod
    def from_dialect_name(cls, name: str) -> "LockDialect":
        """
        Map a SQLAlchemy dialect name to a lock strategy.

        Raises:
            StorageError: If the backend has no admission strategy
        """
        normalized = _ALIASES.get(name.lower(), name.lower())
        try:
            return cls(normalized)
        except ValueError:
            raise StorageError(f"Unsupported database dialect for admission control: {name}")

    @property
    def statements(self) -> LockStatements:
        return _STATEMENTS[self]


_ALIASES = {
    "postgres": "postgresql",
    "mariadb": "mysql",
}

_STATEMENTS = {
    LockDialect.POSTGRESQL: LockStatements(
        begin=None,
        lock="LOCK TABLE users IN ACCESS EXCLUSIVE MODE",
        unlock=None,
    ),
    LockDialect.MYSQL: LockStatements(
        begin=None,
        lock="LOCK TABLES users WRITE",
        unlock="UNLOCK TABLES",
    ),
    LockDialect.SQLITE: LockStatements(
        begin="BEGIN IMMEDIATE",
        lock=None,
        unlock=None,
    ),
}


async def admit_first_user(
    conn: AsyncConnection,
    dialect: LockDialect,
    values: dict[str, Any],
) -> None:
    """
    Insert the first user if, and only if, the users table is empty.

    Args:
        conn: A connection with no open transaction
        dialect: Lock strategy of the connection's backend
        values: Column values of the users row

    Raises:
        FirstUserRaceError: If a user already exists under the lock
    """
    statements = dialect.statements
    if statements.begin:
        await conn.execution_options(sqlite_begin=statements.begin)

    try:
        async with conn.begin():
            if statements.lock:
                await conn.execute(text(statements.lock))
            logger.debug("admission_lock_acquired", dialect=dialect.value)

            count = (await conn.execute(select(func.count()).select_from(users_table))).scalar_one()
            if count > 0:
                logger.info("admission_lost_race", dialect=dialect.value, existing_users=count)
                raise FirstUserRaceError("first user already registered by concurrent process")

            await conn.execute(insert(users_table).values(**values))
    finally:
        if statements.unlock:
            await conn.execute(text(statements.unlock))
            await conn.commit()
