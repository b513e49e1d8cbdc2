"""
SQLAlchemy (asyncio) implementation of the storage interfaces.

Works against SQLite (aiosqlite), PostgreSQL (asyncpg) and MySQL (aiomysql).

Each call runs in its own short transaction and is bounded by the
caller's deadline (UserScope.timeout_seconds). Driver errors are
translated into the StorageError hierarchy; nothing is retried except the
connection check at startup.

SQLite notes: pysqlite's implicit transaction handling is switched off and
BEGIN is emitted from the engine's "begin" event, so a transaction can be
opened with BEGIN IMMEDIATE when it is going to write. Lock waits are
bounded by the driver's busy timeout.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from sqlalchemy import delete, event, func, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billtracker.config import DatabaseSettings, get_settings
from billtracker.models.bill import (
    Bill,
    BillDraft,
    Category,
    CategoryDraft,
    Payment,
    PaymentDraft,
    RecurrenceType,
    new_id,
)
from billtracker.models.user import Role, User
from billtracker.services.storage.admission import LockDialect, admit_first_user
from billtracker.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    Storage,
    StorageError,
    StorageTimeoutError,
    TenantStorage,
    UserScope,
    UserStorage,
)
from billtracker.services.storage.tables import (
    Base,
    BillRow,
    CategoryRow,
    PaymentRow,
    UserRow,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENGINE
# =============================================================================

def create_storage_engine(settings: DatabaseSettings) -> AsyncEngine:
    """
    Create the async engine for the configured database URL.

    Args:
        settings: Database settings

    Returns:
        An AsyncEngine; SQLite engines get explicit transaction control
    """
    url = make_url(settings.url)
    is_sqlite = url.get_backend_name() == "sqlite"

    connect_args = {}
    if is_sqlite:
        connect_args["timeout"] = settings.busy_timeout_seconds

    engine = create_async_engine(url, echo=settings.echo, connect_args=connect_args)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_implicit_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql(conn.get_execution_options().get("sqlite_begin", "BEGIN"))

    return engine


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _row_to_bill(row: BillRow) -> Bill:
    return Bill(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        amount=row.amount,
        recurrence_type=RecurrenceType(row.recurrence_type),
        recurrence_days=row.recurrence_days,
        category_id=row.category_id,
        start_date=_as_utc(row.start_date),
        notes=row.notes or "",
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _row_to_category(row: CategoryRow) -> Category:
    return Category(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        color=row.color or "",
        created_at=_as_utc(row.created_at),
    )


def _row_to_payment(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        bill_id=row.bill_id,
        amount=row.amount,
        payment_date=_as_utc(row.payment_date),
        notes=row.notes or "",
        created_at=_as_utc(row.created_at),
    )


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        roles=[Role(r) for r in row.roles or []],
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _user_values(user: User, roles: list[Role]) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "password_hash": user.password_hash,
        "roles": [Role(r).value for r in roles],
        "created_at": _as_utc(user.created_at),
        "updated_at": _as_utc(user.updated_at),
    }


# =============================================================================
# SHARED ACCESS
# =============================================================================

class _SQLAccess:
    """Session handling, deadlines and error translation."""

    def __init__(
        self,
        sessions: async_sessionmaker,
        dialect: LockDialect,
        timeout_seconds: Optional[float] = None,
    ):
        self._sessions = sessions
        self._dialect = dialect
        self._timeout = timeout_seconds

    async def _guard(self, coro: Awaitable[T], action: str) -> T:
        """Apply the deadline and translate driver errors."""
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("storage_timeout", action=action, timeout_seconds=self._timeout)
            raise StorageTimeoutError(f"Timed out during {action} after {self._timeout}s")
        except IntegrityError as e:
            raise DuplicateError(f"Constraint violated during {action}: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error("storage_failed", action=action, error=str(e))
            raise StorageError(f"Failed during {action}: {e}") from e

    async def _run(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        action: str,
        write: bool = False,
    ) -> T:
        """Run operation(session) inside one transaction."""

        async def _in_transaction() -> T:
            async with self._sessions() as session:
                async with session.begin():
                    if write and self._dialect is LockDialect.SQLITE:
                        await session.connection(
                            execution_options={"sqlite_begin": "BEGIN IMMEDIATE"}
                        )
                    return await operation(session)

        return await self._guard(_in_transaction(), action)


# =============================================================================
# TENANT STORAGE
# =============================================================================

class SQLTenantStorage(_SQLAccess, TenantStorage):
    """Bills, categories and payments of one user."""

    def __init__(self, scope: UserScope, sessions: async_sessionmaker, dialect: LockDialect):
        super().__init__(sessions, dialect, scope.timeout_seconds)
        self._scope = scope

    @property
    def scope(self) -> UserScope:
        return self._scope

    async def _owned_bill(self, session: AsyncSession, bill_id: str) -> BillRow:
        row = (await session.execute(
            select(BillRow).where(BillRow.id == bill_id, BillRow.user_id == self.user_id)
        )).scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Bill not found: {bill_id}")
        return row

    async def _owned_category(self, session: AsyncSession, category_id: str) -> CategoryRow:
        row = (await session.execute(
            select(CategoryRow).where(
                CategoryRow.id == category_id,
                CategoryRow.user_id == self.user_id,
            )
        )).scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return row

    # -- bills ---------------------------------------------------------------

    async def create_bill(self, draft: BillDraft) -> Bill:
        async def op(session: AsyncSession) -> Bill:
            if draft.category_id:
                await self._owned_category(session, draft.category_id)
            now = _utcnow()
            row = BillRow(
                id=new_id(),
                user_id=self.user_id,
                category_id=draft.category_id,
                name=draft.name,
                amount=draft.amount,
                recurrence_type=draft.recurrence_type.value,
                recurrence_days=draft.recurrence_days,
                start_date=_as_utc(draft.start_date),
                notes=draft.notes,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            return _row_to_bill(row)

        bill = await self._run(op, "create bill", write=True)
        logger.info("bill_created", user_id=self.user_id, bill_id=bill.id)
        return bill

    async def get_bill(self, bill_id: str) -> Bill:
        async def op(session: AsyncSession) -> Bill:
            return _row_to_bill(await self._owned_bill(session, bill_id))

        return await self._run(op, "get bill")

    async def list_bills(self) -> list[Bill]:
        async def op(session: AsyncSession) -> list[Bill]:
            rows = (await session.execute(
                select(BillRow)
                .where(BillRow.user_id == self.user_id)
                .order_by(BillRow.created_at, BillRow.id)
            )).scalars().all()
            return [_row_to_bill(r) for r in rows]

        return await self._run(op, "list bills")

    async def update_bill(self, bill_id: str, draft: BillDraft) -> Bill:
        async def op(session: AsyncSession) -> Bill:
            row = await self._owned_bill(session, bill_id)
            if draft.category_id:
                await self._owned_category(session, draft.category_id)
            row.name = draft.name
            row.amount = draft.amount
            row.recurrence_type = draft.recurrence_type.value
            row.recurrence_days = draft.recurrence_days
            row.category_id = draft.category_id
            row.start_date = _as_utc(draft.start_date)
            row.notes = draft.notes
            row.updated_at = _utcnow()
            await session.flush()
            return _row_to_bill(row)

        bill = await self._run(op, "update bill", write=True)
        logger.info("bill_updated", user_id=self.user_id, bill_id=bill_id)
        return bill

    async def delete_bill(self, bill_id: str) -> None:
        async def op(session: AsyncSession) -> None:
            row = await self._owned_bill(session, bill_id)
            await session.execute(delete(PaymentRow).where(PaymentRow.bill_id == row.id))
            await session.delete(row)

        await self._run(op, "delete bill", write=True)
        logger.info("bill_deleted", user_id=self.user_id, bill_id=bill_id)

    # -- categories ----------------------------------------------------------

    async def create_category(self, draft: CategoryDraft) -> Category:
        async def op(session: AsyncSession) -> Category:
            row = CategoryRow(
                id=new_id(),
                user_id=self.user_id,
                name=draft.name,
                color=draft.color,
                created_at=_utcnow(),
            )
            session.add(row)
            await session.flush()
            return _row_to_category(row)

        return await self._run(op, "create category", write=True)

    async def get_category(self, category_id: str) -> Category:
        async def op(session: AsyncSession) -> Category:
            return _row_to_category(await self._owned_category(session, category_id))

        return await self._run(op, "get category")

    async def list_categories(self) -> list[Category]:
        async def op(session: AsyncSession) -> list[Category]:
            rows = (await session.execute(
                select(CategoryRow)
                .where(CategoryRow.user_id == self.user_id)
                .order_by(CategoryRow.name)
            )).scalars().all()
            return [_row_to_category(r) for r in rows]

        return await self._run(op, "list categories")

    async def delete_category(self, category_id: str) -> None:
        async def op(session: AsyncSession) -> None:
            row = await self._owned_category(session, category_id)
            await session.execute(
                update(BillRow)
                .where(BillRow.category_id == row.id, BillRow.user_id == self.user_id)
                .values(category_id=None)
            )
            await session.delete(row)

        await self._run(op, "delete category", write=True)

    # -- payments ------------------------------------------------------------

    async def create_payment(self, bill_id: str, draft: PaymentDraft) -> Payment:
        async def op(session: AsyncSession) -> Payment:
            await self._owned_bill(session, bill_id)
            now = _utcnow()
            row = PaymentRow(
                id=new_id(),
                bill_id=bill_id,
                amount=draft.amount,
                payment_date=_as_utc(draft.payment_date) or now,
                notes=draft.notes,
                created_at=now,
            )
            session.add(row)
            await session.flush()
            return _row_to_payment(row)

        payment = await self._run(op, "create payment", write=True)
        logger.info("payment_recorded", user_id=self.user_id, bill_id=bill_id, payment_id=payment.id)
        return payment

    def _payments_of_user(self):
        return (
            select(PaymentRow)
            .join(BillRow, PaymentRow.bill_id == BillRow.id)
            .where(BillRow.user_id == self.user_id)
        )

    async def list_payments(self, bill_id: str) -> list[Payment]:
        async def op(session: AsyncSession) -> list[Payment]:
            await self._owned_bill(session, bill_id)
            rows = (await session.execute(
                self._payments_of_user()
                .where(PaymentRow.bill_id == bill_id)
                .order_by(PaymentRow.payment_date.desc(), PaymentRow.created_at.desc())
            )).scalars().all()
            return [_row_to_payment(r) for r in rows]

        return await self._run(op, "list payments")

    async def delete_payment(self, payment_id: str) -> None:
        async def op(session: AsyncSession) -> None:
            row = (await session.execute(
                self._payments_of_user().where(PaymentRow.id == payment_id)
            )).scalar_one_or_none()
            if row is None:
                raise NotFoundError(f"Payment not found: {payment_id}")
            await session.delete(row)

        await self._run(op, "delete payment", write=True)

    async def get_latest_payment(self, bill_id: str) -> Optional[Payment]:
        async def op(session: AsyncSession) -> Optional[Payment]:
            row = (await session.execute(
                self._payments_of_user()
                .where(PaymentRow.bill_id == bill_id)
                .order_by(PaymentRow.payment_date.desc(), PaymentRow.created_at.desc())
                .limit(1)
            )).scalar_one_or_none()
            return _row_to_payment(row) if row else None

        return await self._run(op, "get latest payment")


# =============================================================================
# USER STORAGE
# =============================================================================

class SQLUserStorage(_SQLAccess, UserStorage):
    """User accounts and first-user admission."""

    def __init__(self, engine: AsyncEngine, sessions: async_sessionmaker, dialect: LockDialect):
        super().__init__(sessions, dialect)
        self._engine = engine

    async def count_users(self) -> int:
        async def op(session: AsyncSession) -> int:
            return (await session.execute(select(func.count()).select_from(UserRow))).scalar_one()

        return await self._run(op, "count users")

    async def get_user(self, user_id: str) -> User:
        async def op(session: AsyncSession) -> User:
            row = await session.get(UserRow, user_id)
            if row is None:
                raise NotFoundError(f"User not found: {user_id}")
            return _row_to_user(row)

        return await self._run(op, "get user")

    async def _find_user(self, column, value: str, action: str) -> Optional[User]:
        async def op(session: AsyncSession) -> Optional[User]:
            row = (await session.execute(select(UserRow).where(column == value))).scalar_one_or_none()
            return _row_to_user(row) if row else None

        return await self._run(op, action)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._find_user(UserRow.username, username, "get user by username")

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._find_user(UserRow.email, email, "get user by email")

    async def create_user(self, user: User) -> User:
        async def op(session: AsyncSession) -> None:
            session.add(UserRow(**_user_values(user, user.roles)))

        await self._run(op, "create user", write=True)
        return user

    async def create_first_user(self, user: User, roles: list[Role]) -> User:
        async def admit() -> None:
            async with self._engine.connect() as conn:
                await admit_first_user(conn, self._dialect, _user_values(user, roles))

        await self._guard(admit(), "first user admission")
        return user.model_copy(update={"roles": list(roles)})


# =============================================================================
# ROOT
# =============================================================================

class SQLStorage(Storage):
    """
    Root SQL storage.

    Owns the engine and hands out tenant-bound views of it.
    """

    def __init__(self, engine: AsyncEngine, settings: Optional[DatabaseSettings] = None):
        self._engine = engine
        self._settings = settings or get_settings().database
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        self._dialect = LockDialect.from_dialect_name(engine.dialect.name)
        self._users = SQLUserStorage(engine, self._sessions, self._dialect)

    @classmethod
    def from_settings(cls, settings: Optional[DatabaseSettings] = None) -> "SQLStorage":
        settings = settings or get_settings().database
        return cls(create_storage_engine(settings), settings)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect(self) -> LockDialect:
        return self._dialect

    @property
    def users(self) -> SQLUserStorage:
        return self._users

    def for_user(self, scope: UserScope) -> SQLTenantStorage:
        return SQLTenantStorage(scope, self._sessions, self._dialect)

    async def init(self) -> None:
        """
        Create missing tables.

        The connection is retried with exponential backoff, so a database
        that is still starting up does not fail the process.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    async with self._engine.begin() as conn:
                        await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error("storage_init_failed", dialect=self._dialect.value, error=str(e))
            raise StorageError(f"Failed to initialise database: {e}") from e

        logger.info("storage_ready", dialect=self._dialect.value)

    async def close(self) -> None:
        await self._engine.dispose()
