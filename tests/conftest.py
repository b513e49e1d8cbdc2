"""Shared fixtures: an isolated SQLite database per test and a pinned clock."""

from datetime import datetime, timezone

import pytest

from billtracker.config import (
    AuthSettings,
    BillsSettings,
    DatabaseSettings,
    LoggingSettings,
    Settings,
)
from billtracker.models import User
from billtracker.orchestrator import create_app_components, start_app
from billtracker.recurrence import FixedClock
from billtracker.services.storage import UserScope

# Sunday noon, UTC
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        app_environment="test",
        timezone="UTC",
        database=DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'billtracker.db'}",
            busy_timeout_seconds=10.0,
            connect_attempts=1,
        ),
        bills=BillsSettings(payment_grace_days=7, maximum_billing_interval=365),
        auth=AuthSettings(bcrypt_rounds=4),
        logging=LoggingSettings(level="warning", format="console"),
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
async def components(settings, clock):
    comps = create_app_components(settings, clock=clock)
    await start_app(comps, configure_logs=False)
    yield comps
    await comps.storage.close()


@pytest.fixture
def storage(components):
    return components.storage


async def _add_user(storage, username: str) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash="not-a-real-hash",
        created_at=NOW,
        updated_at=NOW,
    )
    return await storage.users.create_user(user)


@pytest.fixture
async def alice(storage) -> UserScope:
    user = await _add_user(storage, "alice")
    return UserScope(user_id=user.id)


@pytest.fixture
async def bob(storage) -> UserScope:
    user = await _add_user(storage, "bob")
    return UserScope(user_id=user.id)
