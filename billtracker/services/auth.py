"""
Authentication Service

Registration, credential checks and first-user admission.

DESIGN DECISION: When first-user elevation is enabled, the very first
registrant receives the admin role. The unlocked user count is only a
hint; the decision is made by UserStorage.create_first_user, which
re-counts under an exclusive lock. A registrant that loses that race is
registered as a standard user instead of failing.

Password hashing (bcrypt) is CPU-bound and runs in a worker thread so it
does not stall the event loop.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

import bcrypt
import structlog

from billtracker.config import AuthSettings, get_settings
from billtracker.models.user import (
    ADMIN_ROLES,
    DEFAULT_ROLES,
    LoginRequest,
    RegistrationRequest,
    User,
)
from billtracker.recurrence.clock import AppClock
from billtracker.services.categories import CategoryService
from billtracker.services.storage.interface import (
    DuplicateError,
    FirstUserRaceError,
    StorageError,
    UserScope,
    UserStorage,
)

logger = structlog.get_logger(__name__)


class RegistrationError(Exception):
    """Username or email already taken."""
    pass


class AuthenticationError(Exception):
    """Credentials did not match. The message never says which part was wrong."""
    pass


# =============================================================================
# PASSWORD HASHING
# =============================================================================

class PasswordHasher(ABC):
    """Hashes and verifies passwords."""

    @abstractmethod
    def hash(self, password: str) -> str:
        pass

    @abstractmethod
    def verify(self, password: str, password_hash: str) -> bool:
        pass


class BcryptPasswordHasher(PasswordHasher):
    """bcrypt with a configurable work factor."""

    def __init__(self, rounds: int = 12):
        self._rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False


# =============================================================================
# SERVICE
# =============================================================================

class AuthService:
    """User registration and login."""

    def __init__(
        self,
        users: UserStorage,
        categories: CategoryService,
        clock: AppClock,
        hasher: Optional[PasswordHasher] = None,
        settings: Optional[AuthSettings] = None,
    ):
        self._users = users
        self._categories = categories
        self._clock = clock
        self._settings = settings or get_settings().auth
        self._hasher = hasher or BcryptPasswordHasher(self._settings.bcrypt_rounds)

    async def register(self, data: Union[RegistrationRequest, dict[str, Any]]) -> User:
        """
        Register a new user.

        Flow:
        1. Reject a taken username or email
        2. Hash the password
        3. First user (elevation enabled, no users yet) -> admission control
        4. Everyone else, and the loser of an admission race -> standard roles
        5. Seed default categories (failures are logged, not raised)

        Raises:
            RegistrationError: If the username or email is taken
            pydantic.ValidationError: If the request fields are invalid
        """
        request = data if isinstance(data, RegistrationRequest) else RegistrationRequest.model_validate(data)

        if await self._users.get_user_by_username(request.username):
            raise RegistrationError("username already exists")
        if await self._users.get_user_by_email(request.email):
            raise RegistrationError("email already exists")

        password_hash = await asyncio.to_thread(self._hasher.hash, request.password)
        now = self._clock.now()
        user = User(
            username=request.username,
            email=request.email,
            password_hash=password_hash,
            roles=list(DEFAULT_ROLES),
            created_at=now,
            updated_at=now,
        )

        if self._settings.first_user_admin and await self._users.count_users() == 0:
            try:
                created = await self._users.create_first_user(user, list(ADMIN_ROLES))
                logger.info("first_user_admitted", user_id=created.id, username=created.username)
            except FirstUserRaceError:
                logger.warning("first_user_race_lost", username=user.username)
                created = await self._create_standard(user)
            except DuplicateError:
                raise RegistrationError("username or email already exists")
        else:
            created = await self._create_standard(user)

        if self._settings.create_default_categories:
            try:
                await self._categories.create_defaults(UserScope(user_id=created.id))
            except StorageError as e:
                logger.warning("default_categories_failed", user_id=created.id, error=str(e))

        return created

    async def _create_standard(self, user: User) -> User:
        try:
            created = await self._users.create_user(user.model_copy(update={"roles": list(DEFAULT_ROLES)}))
        except DuplicateError:
            raise RegistrationError("username or email already exists")
        logger.info("user_registered", user_id=created.id, username=created.username)
        return created

    async def authenticate(self, data: Union[LoginRequest, dict[str, Any]]) -> User:
        """
        Check credentials.

        Raises:
            AuthenticationError: If the user is unknown or the password is wrong
            pydantic.ValidationError: If the request fields are invalid
        """
        request = data if isinstance(data, LoginRequest) else LoginRequest.model_validate(data)

        user = await self._users.get_user_by_username(request.username)
        if user is None:
            raise AuthenticationError("invalid username or password")

        if not await asyncio.to_thread(self._hasher.verify, request.password, user.password_hash):
            logger.info("login_failed", user_id=user.id)
            raise AuthenticationError("invalid username or password")

        return user

    async def get_user(self, user_id: str) -> User:
        """
        Raises:
            NotFoundError: If no such user exists
        """
        return await self._users.get_user(user_id)
