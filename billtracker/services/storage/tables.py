"""
SQLAlchemy table mapping.

Rows are converted to and from the pydantic models in sql.py; nothing
outside the storage package sees these classes.

Datetimes are stored as naive UTC and come back as aware UTC, so every
backend (SQLite included) round-trips the same values.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as naive UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value.replace(tzinfo=timezone.utc)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False)


class BillRow(Base):
    __tablename__ = "bills"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    name = Column(String(200), nullable=False)
    amount = Column(Float, nullable=False)
    recurrence_type = Column(String(20), nullable=False, default="none")
    recurrence_days = Column(Integer, nullable=False, default=1)
    start_date = Column(UTCDateTime, nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)


class PaymentRow(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_bill_date", "bill_id", "payment_date"),
    )

    id = Column(String(36), primary_key=True)
    bill_id = Column(String(36), ForeignKey("bills.id"), nullable=False)
    amount = Column(Float, nullable=False)
    payment_date = Column(UTCDateTime, nullable=False)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False)


users_table = UserRow.__table__
