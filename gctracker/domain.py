"""Defines the core data structures for GC Tracker."""

from typing import Any, Dict, FrozenSet, NamedTuple, Optional, Sequence
from datetime import datetime, timedelta

import dateutil.parser
from pytz import UTC


def now() -> datetime:
    """Get the current time, timezone-aware."""
    return datetime.now(tz=UTC)


class ResetToken(NamedTuple):
    """An outstanding password reset token."""

    token: str
    issued: datetime
    """When the token was issued (tz-aware)."""

    def is_expired(self, ttl: int, at: Optional[datetime] = None) -> bool:
        """Whether the token is older than ``ttl`` seconds."""
        at = at or now()
        return self.issued + timedelta(seconds=ttl) <= at


class User(NamedTuple):
    """A registered user."""

    username: str
    """Unique; alphanumeric, 2 to 80 characters."""

    email: str

    cases: FrozenSet[str] = frozenset()
    """Receipt numbers of the cases tracked by this user."""

    reset_token: Optional[ResetToken] = None


class Case(NamedTuple):
    """A tracked case, as seen by one of the users tracking it."""

    case_id: str
    """USCIS receipt number: 13 alphanumeric characters."""

    name: str = ''
    """Free-text label given by the user, up to 40 characters."""

    status: str = ''
    """The most recently observed status."""

    old_status: str = ''
    """The status observed before :attr:`status`."""


class Session(NamedTuple):
    """
    Server-side state associated with a session cookie.

    A session exists for authenticated users, and for anonymous visitors who
    followed a password reset link.
    """

    session_id: str
    start_time: datetime
    end_time: datetime
    nonce: str

    username: Optional[str] = None
    authenticated: bool = False
    reset_token: Optional[str] = None
    """Reset token presented by an anonymous visitor."""

    @property
    def is_authenticated(self) -> bool:
        """Authenticated, and as a known username."""
        return bool(self.authenticated and self.username)

    @property
    def expired(self) -> bool:
        """Expired sessions are not valid."""
        return self.end_time <= now()

    def to_dict(self) -> Dict[str, Any]:
        """Generate a JSON-friendly dict."""
        data = self._asdict()
        data['start_time'] = self.start_time.isoformat()
        data['end_time'] = self.end_time.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        """Load a session from the output of :meth:`.to_dict`."""
        data = dict(data)
        data['start_time'] = dateutil.parser.parse(data['start_time'])
        data['end_time'] = dateutil.parser.parse(data['end_time'])
        return cls(**{key: value for key, value in data.items()
                      if key in cls._fields})


class SyncResult(NamedTuple):
    """Outcome of a status synchronization run."""

    checked: int = 0
    changed: Sequence[str] = ()
    failed: Sequence[str] = ()

    @property
    def ok(self) -> bool:
        """No case failed to update."""
        return not self.failed
