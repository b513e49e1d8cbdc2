"""
Application Wiring for Bill Tracker

This module ties together all the components:
1. Settings are loaded and the application clock is built once
2. SQL storage is created from the database settings
3. Services share that storage and clock

DESIGN DECISION: The timezone is resolved here, at startup, into an
immutable AppClock. Nothing downstream looks the timezone up again.

An HTTP layer (out of scope here) would call create_app_components() at
startup, await start_app(), and route requests to the services with a
UserScope built from the verified token.
"""

from typing import NamedTuple, Optional

import structlog

from billtracker.config import Settings, get_settings, validate_all_settings
from billtracker.logconfig import configure_logging
from billtracker.recurrence.clock import AppClock
from billtracker.services.auth import AuthService, PasswordHasher
from billtracker.services.bills import BillService
from billtracker.services.categories import CategoryService
from billtracker.services.storage import SQLStorage
from billtracker.validation import BillValidator

logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    """Everything a request handler needs."""
    settings: Settings
    clock: AppClock
    storage: SQLStorage
    bills: BillService
    categories: CategoryService
    auth: AuthService


def create_app_components(
    settings: Optional[Settings] = None,
    *,
    clock: Optional[AppClock] = None,
    hasher: Optional[PasswordHasher] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Configuration; loaded from the environment when omitted
        clock: Override of the application clock (tests pin "now" with it)
        hasher: Override of the password hasher

    Returns:
        AppComponents. Storage is not initialised yet; await start_app().
    """
    settings = settings or get_settings()
    clock = clock or AppClock.from_name(settings.timezone)

    storage = SQLStorage.from_settings(settings.database)
    categories = CategoryService(storage)
    bills = BillService(
        storage,
        clock,
        validator=BillValidator(settings.bills),
        settings=settings.bills,
    )
    auth = AuthService(
        storage.users,
        categories,
        clock,
        hasher=hasher,
        settings=settings.auth,
    )

    return AppComponents(
        settings=settings,
        clock=clock,
        storage=storage,
        bills=bills,
        categories=categories,
        auth=auth,
    )


async def start_app(components: AppComponents, configure_logs: bool = True) -> None:
    """
    Prepare components for serving.

    Configures logging, checks settings and creates missing tables.

    Raises:
        ValueError: If part of the configuration is unusable
        StorageError: If the database cannot be reached
    """
    settings = components.settings
    if configure_logs:
        configure_logging(settings.logging.level, settings.logging.format)

    checks = validate_all_settings(settings)
    failed = sorted(k for k, ok in checks.items() if ok is False)
    if failed:
        errors = {k: v for k, v in checks.items() if k.endswith("_error")}
        raise ValueError(f"Invalid configuration: {errors}")

    await components.storage.init()
    logger.info(
        "app_started",
        environment=settings.app_environment,
        timezone=settings.timezone,
        dialect=components.storage.dialect.value,
    )
