"""
Internal service API for the session store.

Used to create, update, load and delete sessions. Session data are kept in
Redis under the session ID, and expire with the session. The browser holds a
signed cookie that carries the session ID and a nonce; the nonce must match
the stored session for the cookie to be accepted.
"""

import uuid
import random
import logging
from datetime import timedelta
from functools import wraps
from typing import Any, Optional

import redis
import fakeredis
import jwt
import dateutil.parser

from ...context import get_application_config, get_application_global
from ...domain import Session, now
from ..exceptions import SessionCreationFailed, SessionDeletionFailed, \
    UnknownSession, InvalidToken

logger = logging.getLogger(__name__)

_fake_server: Optional[fakeredis.FakeServer] = None


def _generate_nonce(length: int = 8) -> str:
    return ''.join([str(random.randint(0, 9)) for i in range(length)])


def _get_fake_server() -> fakeredis.FakeServer:
    global _fake_server
    if _fake_server is None:
        _fake_server = fakeredis.FakeServer()
    return _fake_server


class SessionStore(object):
    """
    Sessions kept in Redis, addressed by signed cookies.

    The Redis client only connects when a command runs, so one store per
    application context is enough.
    """

    def __init__(self, host: str, port: int, db: int, secret: str,
                 duration: int = 86400, token: Optional[str] = None,
                 fake: bool = False) -> None:
        """Set up the Redis client; a fake server is shared in-process."""
        if fake:
            logger.debug('Using fake Redis')
            self.r = fakeredis.FakeStrictRedis(server=_get_fake_server())
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port, db=db,
                                       password=token)
        self._secret = secret
        self._duration = duration

    def create(self, username: Optional[str] = None,
               authenticated: bool = False,
               reset_token: Optional[str] = None) -> Session:
        """
        Create a new session.

        Parameters
        ----------
        username : str
            The user to whom the session belongs, if known.
        authenticated : bool
            Whether the user has proven their identity.
        reset_token : str
            A password reset token presented by an anonymous visitor.

        Returns
        -------
        :class:`.Session`

        """
        start_time = now()
        session = Session(
            session_id=str(uuid.uuid4()),
            start_time=start_time,
            end_time=start_time + timedelta(seconds=self._duration),
            nonce=_generate_nonce(),
            username=username,
            authenticated=authenticated,
            reset_token=reset_token
        )
        try:
            self.r.set(session.session_id, self._encode(session.to_dict()),
                       ex=self._duration)
        except redis.exceptions.ConnectionError as e:
            raise SessionCreationFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        return session

    def save(self, session: Session) -> None:
        """
        Store changes to an existing session.

        The session keeps its original expiry.
        """
        remaining = int((session.end_time - now()).total_seconds())
        if remaining <= 0:
            raise InvalidToken('Session has expired')
        try:
            self.r.set(session.session_id, self._encode(session.to_dict()),
                       ex=remaining)
        except redis.exceptions.ConnectionError as e:
            raise SessionCreationFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionCreationFailed(f'Failed to save: {e}') from e

    def generate_cookie(self, session: Session) -> str:
        """Generate a cookie from a :class:`.Session`."""
        return self._pack_cookie({
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': session.end_time.isoformat()
        })

    def delete(self, cookie: str) -> None:
        """
        Sign a session out, given its cookie.

        Parameters
        ----------
        cookie : str
        """
        try:
            cookie_data = self._unpack_cookie(cookie)
        except InvalidToken as e:
            raise SessionDeletionFailed('Bad session token') from e
        self.delete_by_id(cookie_data['session_id'])

    def delete_by_id(self, session_id: str) -> None:
        """
        Remove a session from Redis, whatever cookie it was issued under.

        Parameters
        ----------
        session_id : str
        """
        try:
            self.r.delete(session_id)
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e

    def load(self, cookie: str) -> Session:
        """
        Load a session using a session cookie.

        Raises
        ------
        :class:`InvalidToken`
            The cookie is malformed, forged, or expired.
        :class:`UnknownSession`
            There is no such session in the store.
        """
        cookie_data = self._unpack_cookie(cookie)
        try:
            expires = dateutil.parser.parse(cookie_data['expires'])
            session_id = cookie_data['session_id']
            nonce = cookie_data['nonce']
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken('Token payload malformed') from e

        if expires <= now():
            raise InvalidToken('Session has expired')

        session = self.load_by_id(session_id)
        if session.expired:
            raise InvalidToken('Session has expired')
        if session.nonce != nonce:
            raise InvalidToken('Invalid token; likely a forgery')
        return session

    def load_by_id(self, session_id: str) -> Session:
        """Load a session by its ID, without checking a cookie."""
        session_jwt = self.r.get(session_id)
        if not session_jwt:
            logger.debug('No such session: %s', session_id)
            raise UnknownSession(f'Failed to find session {session_id}')
        return self._decode(session_jwt)

    def _encode(self, session_data: dict) -> str:
        return jwt.encode(session_data, self._secret, algorithm='HS256')

    def _decode(self, session_jwt: Any) -> Session:
        if isinstance(session_jwt, bytes):
            session_jwt = session_jwt.decode('ascii')
        try:
            data = jwt.decode(session_jwt, self._secret, algorithms=['HS256'])
            return Session.from_dict(data)
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Invalid or corrupted session token') from e
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken('Session data malformed') from e

    def _unpack_cookie(self, cookie: str) -> dict:
        try:
            data = dict(jwt.decode(cookie, self._secret, algorithms=['HS256']))
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Session cookie is malformed') from e
        return data

    def _pack_cookie(self, cookie_data: dict) -> str:
        return jwt.encode(cookie_data, self._secret, algorithm='HS256')


def init_app(app: object = None) -> None:
    """Fill in Redis and session defaults on the app config."""
    config = get_application_config(app)
    config.setdefault('REDIS_HOST', 'localhost')  # type: ignore
    config.setdefault('REDIS_PORT', '6379')  # type: ignore
    config.setdefault('REDIS_DATABASE', '0')  # type: ignore
    config.setdefault('REDIS_TOKEN', None)  # type: ignore
    config.setdefault('REDIS_FAKE', False)  # type: ignore
    config.setdefault('JWT_SECRET', 'foosecret')  # type: ignore
    config.setdefault('SESSION_DURATION', '86400')  # type: ignore


def get_redis_session(app: object = None) -> SessionStore:
    """Get a new session with the session store."""
    config = get_application_config(app)
    host = config.get('REDIS_HOST', 'localhost')
    port = int(config.get('REDIS_PORT', '6379'))
    db = int(config.get('REDIS_DATABASE', '0'))
    token = config.get('REDIS_TOKEN', None)
    fake = str(config.get('REDIS_FAKE', '0')).lower() in ('1', 'true')
    secret = config['JWT_SECRET']
    duration = int(config.get('SESSION_DURATION', '86400'))
    return SessionStore(host, port, db, secret, duration, token=token,
                        fake=fake)


def current_session() -> SessionStore:
    """Get/create :class:`.SessionStore` for this context."""
    g = get_application_global()
    if not g:
        return get_redis_session()
    if 'redis' not in g:
        g.redis = get_redis_session()
    return g.redis      # type: ignore


@wraps(SessionStore.create)
def create(username: Optional[str] = None, authenticated: bool = False,
           reset_token: Optional[str] = None) -> Session:
    """Create a new session."""
    return current_session().create(username, authenticated, reset_token)


@wraps(SessionStore.save)
def save(session: Session) -> None:
    """Store changes to an existing session."""
    return current_session().save(session)


@wraps(SessionStore.load)
def load(cookie: str) -> Session:
    """Load a session by cookie value."""
    return current_session().load(cookie)


@wraps(SessionStore.delete)
def delete(cookie: str) -> None:
    """Delete a session in the key-value store."""
    return current_session().delete(cookie)


@wraps(SessionStore.generate_cookie)
def generate_cookie(session: Session) -> str:
    """Generate a cookie from a :class:`.Session`."""
    return current_session().generate_cookie(session)
