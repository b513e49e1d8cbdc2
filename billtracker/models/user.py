"""
User and Authentication Models

Users own every other entity. The password hash lives on the model so
storage can round-trip it, but it is excluded from serialization.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from billtracker.models.bill import new_id


class Role(str, Enum):
    """Role names granted to users."""
    ADMIN = "admin"
    USER = "user"


# Granted to the first registered user when elevation is enabled
ADMIN_ROLES = [Role.ADMIN, Role.USER]
DEFAULT_ROLES = [Role.USER]


class User(BaseModel):
    """A registered user."""

    id: str = Field(default_factory=new_id)
    username: str
    email: str
    password_hash: str = Field(
        ...,
        exclude=True,
        repr=False
    )
    roles: list[Role] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    created_at: datetime
    updated_at: datetime

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles


class RegistrationRequest(BaseModel):
    """Fields supplied when signing up."""
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(
        ...,
        min_length=3,
        max_length=50
    )
    email: str = Field(
        ...,
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    password: str = Field(
        ...,
        min_length=6,
        max_length=72,
        repr=False,
        description="bcrypt only uses the first 72 bytes"
    )


class LoginRequest(BaseModel):
    """Credentials supplied when logging in."""
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, repr=False)
