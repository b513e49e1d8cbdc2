"""
Application clock.

The application timezone is resolved once at startup and carried in an
AppClock. Date arithmetic receives the zone explicitly from the clock
instead of reading process-wide state.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


class AppClock:
    """Immutable timezone context with a source of the current instant."""

    __slots__ = ("_tz",)

    def __init__(self, tz: ZoneInfo):
        object.__setattr__(self, "_tz", tz)

    def __setattr__(self, name, value):
        raise AttributeError("AppClock is immutable")

    @classmethod
    def from_name(cls, name: str) -> "AppClock":
        """Build a clock for an IANA zone name such as 'Europe/Berlin'."""
        return cls(ZoneInfo(name))

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        """Current instant, aware, in the application timezone."""
        return datetime.now(timezone.utc).astimezone(self._tz)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._tz.key!r})"


class FixedClock(AppClock):
    """A clock frozen at one instant. Used by tests and replays."""

    __slots__ = ("_instant",)

    def __init__(self, instant: datetime, tz: Optional[ZoneInfo] = None):
        tz = tz or ZoneInfo("UTC")
        super().__init__(tz)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        object.__setattr__(self, "_instant", instant.astimezone(tz))

    def now(self) -> datetime:
        return self._instant

    def __repr__(self) -> str:
        return f"FixedClock({self._instant.isoformat()!r}, {self._tz.key!r})"
