"""
Database integration for users and tracked cases.

Users and the global case registry are linked through
:class:`.models.DBTracking`. A case row is created the first time any user
tracks it and removed when the last user stops tracking it; see
:func:`track_case` and :func:`untrack_cases`.
"""

from typing import Any, Iterable, List, Optional, Tuple
from datetime import datetime
import logging
import uuid

from retry import retry
from sqlalchemy.exc import IntegrityError, OperationalError

from ...context import get_application_config
from ...domain import Case, ResetToken, User, now
from .. import passwords
from ..exceptions import AuthenticationFailed, DatastoreUnavailable, \
    NoSuchToken, NoSuchUser, UserExists
from . import util
from .models import DBCase, DBTracking, DBUser, db

logger = logging.getLogger(__name__)

init_app = util.init_app
create_all = util.create_all
drop_all = util.drop_all
is_available = util.is_available
transaction = util.transaction


def _rounds() -> int:
    return int(get_application_config().get('BCRYPT_ROUNDS', 12))


def _to_user(db_user: DBUser) -> User:
    reset_token: Optional[ResetToken] = None
    if db_user.reset_token and db_user.reset_issued is not None:
        reset_token = ResetToken(token=db_user.reset_token,
                                 issued=util.from_epoch(db_user.reset_issued))
    return User(
        username=db_user.username,
        email=db_user.email,
        cases=frozenset(t.case_id for t in db_user.tracking),
        reset_token=reset_token
    )


def _load_dbuser(username: str) -> DBUser:
    db_user = db.session.get(DBUser, username)
    if db_user is None:
        raise NoSuchUser(f'No such user: {username}')
    return db_user


def is_username_available(username: str) -> bool:
    """Determine whether ``username`` is not yet registered."""
    try:
        return db.session.get(DBUser, username) is None
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e


def create_user(username: str, email: str, password: str) -> User:
    """
    Register a new user.

    Parameters
    ----------
    username : str
    email : str
    password : str
        Plain text; only the bcrypt hash is stored.

    Returns
    -------
    :class:`.User`

    Raises
    ------
    :class:`.UserExists`
        If the username is taken.

    """
    hashed = passwords.hash_password(password, rounds=_rounds())
    try:
        with util.transaction() as session:
            if session.get(DBUser, username) is not None:
                raise UserExists(f'User {username} already exists')
            db_user = DBUser(username=username, email=email, password=hashed)
            session.add(db_user)
            session.flush()
            user = _to_user(db_user)
    except IntegrityError as e:
        raise UserExists(f'User {username} already exists') from e
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    logger.info('Registered user %s', username)
    return user


def get_user(username: str) -> User:
    """Load a :class:`.User` by username."""
    try:
        return _to_user(_load_dbuser(username))
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e


def authenticate(username: str, password: str) -> User:
    """
    Verify a username and password.

    Raises
    ------
    :class:`.AuthenticationFailed`
        If there is no such user, or the password is wrong. Callers should
        not distinguish between the two.

    """
    try:
        db_user = _load_dbuser(username)
    except NoSuchUser as e:
        raise AuthenticationFailed('Invalid username or password') from e
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    passwords.check_password(password, db_user.password)
    return _to_user(db_user)


def set_password(username: str, password: str) -> User:
    """Replace a user's password, and retire any outstanding reset token."""
    hashed = passwords.hash_password(password, rounds=_rounds())
    try:
        with util.transaction() as session:
            db_user = _load_dbuser(username)
            db_user.password = hashed
            db_user.reset_token = None
            db_user.reset_issued = None
            session.add(db_user)
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    return get_user(username)


def set_reset_token(username: str, token: Optional[str] = None,
                    issued: Optional[datetime] = None) -> ResetToken:
    """
    Issue a password reset token for a user.

    A new token replaces any that is outstanding.
    """
    reset_token = ResetToken(token=token or str(uuid.uuid4()),
                             issued=issued or now())
    try:
        with util.transaction() as session:
            db_user = _load_dbuser(username)
            db_user.reset_token = reset_token.token
            db_user.reset_issued = util.epoch(reset_token.issued)
            session.add(db_user)
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    return reset_token


def get_user_by_reset_token(token: str, ttl: int = 3600,
                            at: Optional[datetime] = None) -> User:
    """
    Find the user holding a reset token issued less than ``ttl`` seconds ago.

    Raises
    ------
    :class:`.NoSuchToken`
        If no user holds the token, or it has expired.

    """
    if not token:
        raise NoSuchToken('No token')
    try:
        db_user = db.session.query(DBUser) \
            .filter(DBUser.reset_token == token) \
            .first()
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    if db_user is None:
        raise NoSuchToken('No user holds this token')
    user = _to_user(db_user)
    if user.reset_token is None or user.reset_token.is_expired(ttl, at=at):
        raise NoSuchToken('Token has expired')
    return user


def get_cases(username: str) -> List[Case]:
    """Get the cases tracked by a user, labelled by that user, sorted by ID."""
    try:
        rows = db.session.query(DBTracking, DBCase) \
            .join(DBCase, DBTracking.case_id == DBCase.case_id) \
            .filter(DBTracking.username == username) \
            .order_by(DBCase.case_id) \
            .all()
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    return [Case(case_id=db_case.case_id, name=tracking.name,
                 status=db_case.status, old_status=db_case.old_status)
            for tracking, db_case in rows]


def get_all_cases() -> List[Case]:
    """Get every case in the registry, without user labels."""
    try:
        rows = db.session.query(DBCase).order_by(DBCase.case_id).all()
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    return [Case(case_id=row.case_id, status=row.status,
                 old_status=row.old_status) for row in rows]


def get_case(case_id: str) -> Optional[Case]:
    """Get a case from the registry, or ``None`` if nobody tracks it."""
    try:
        row = db.session.get(DBCase, case_id)
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    if row is None:
        return None
    return Case(case_id=row.case_id, status=row.status,
                old_status=row.old_status)


def case_exists(case_id: str) -> bool:
    """Determine whether anybody tracks ``case_id``."""
    return get_case(case_id) is not None


def get_trackers(case_id: str) -> List[Tuple[User, str]]:
    """Get the users tracking a case, each with their label for it."""
    try:
        rows = db.session.query(DBTracking) \
            .filter(DBTracking.case_id == case_id) \
            .order_by(DBTracking.username) \
            .all()
        return [(_to_user(row.user), row.name) for row in rows]
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e


def _lock_case(session: Any, case_id: str) -> Optional[DBCase]:
    """Read a registry row, and hold it until the transaction ends."""
    return session.query(DBCase) \
        .filter(DBCase.case_id == case_id) \
        .with_for_update() \
        .one_or_none()


# A concurrent add or delete of the same case shows up as an IntegrityError;
# the whole unit of work is rolled back and read again.
@retry(IntegrityError, tries=3, delay=0.1, backoff=2)
def _link(username: str, case_id: str, name: str, status: str) -> Case:
    with util.transaction() as session:
        _load_dbuser(username)
        db_case = _lock_case(session, case_id)
        if db_case is None:
            db_case = DBCase(case_id=case_id, status=status, old_status='')
            session.add(db_case)
            logger.debug('New case in registry: %s', case_id)
        tracking = session.get(DBTracking, (username, case_id))
        if tracking is None:
            tracking = DBTracking(username=username, case_id=case_id,
                                  name=name)
        else:
            tracking.name = name
        session.add(tracking)
        session.flush()
        case = Case(case_id=case_id, name=name, status=db_case.status,
                    old_status=db_case.old_status)
    return case


@retry(IntegrityError, tries=3, delay=0.1, backoff=2)
def _unlink(username: str, case_ids: List[str]) -> List[str]:
    removed: List[str] = []
    with util.transaction() as session:
        for case_id in case_ids:
            tracking = session.get(DBTracking, (username, case_id))
            if tracking is None:
                continue
            db_case = _lock_case(session, case_id)
            session.delete(tracking)
            session.flush()
            removed.append(case_id)
            others = session.query(DBTracking) \
                .filter(DBTracking.case_id == case_id) \
                .count()
            if others == 0 and db_case is not None:
                session.delete(db_case)
                session.flush()
                logger.debug('Removed case from registry: %s', case_id)
    return removed


def track_case(username: str, case_id: str, name: str = '',
               status: str = '') -> Case:
    """
    Link a case to a user, creating the registry entry if needed.

    If the user already tracks the case, only the label is updated. ``status``
    is used only when the case is new to the registry.

    Raises
    ------
    :class:`.NoSuchUser`
    :class:`.DatastoreUnavailable`
        If the database is down, or the case kept changing under us.

    """
    try:
        return _link(username, case_id, name, status)
    except IntegrityError as e:
        raise DatastoreUnavailable(f'Could not track {case_id}') from e
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e


def untrack_cases(username: str, case_ids: Iterable[str]) -> List[str]:
    """
    Unlink cases from a user.

    A case that nobody else tracks is removed from the registry. IDs the user
    does not track are ignored.

    Returns
    -------
    list
        The IDs that were unlinked.

    """
    try:
        return _unlink(username, sorted(set(case_ids)))
    except IntegrityError as e:
        raise DatastoreUnavailable('Could not untrack cases') from e
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e


def update_status(case_id: str, expected: str, status: str) -> bool:
    """
    Set the status of a case, if it is still ``expected``.

    The previous status is kept as ``old_status``.

    Returns
    -------
    bool
        ``True`` if this call made the change; ``False`` if the case is gone
        or its status was changed by somebody else in the meantime.

    """
    try:
        with util.transaction() as session:
            count = session.query(DBCase) \
                .filter(DBCase.case_id == case_id) \
                .filter(DBCase.status == expected) \
                .update({DBCase.old_status: expected,
                         DBCase.status: status},
                        synchronize_session=False)
    except OperationalError as e:
        raise DatastoreUnavailable('Database is unavailable') from e
    return count == 1
