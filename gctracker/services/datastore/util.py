"""Session, schema and time helpers for the datastore."""

from typing import Any, Generator, Optional
from datetime import datetime
from contextlib import contextmanager
import logging
import sqlite3

from pytz import UTC
from sqlalchemy import event, text
from sqlalchemy.engine import Engine

from .models import db

logger = logging.getLogger(__name__)


@event.listens_for(Engine, 'connect')
def _enforce_foreign_keys(dbapi_connection: Any, connection_record: Any) \
        -> None:
    """SQLite ignores foreign keys unless asked, per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def epoch(t: datetime) -> int:
    """Seconds since the epoch, as stored in integer columns."""
    delta = t - datetime.fromtimestamp(0, tz=UTC)
    return int(round((delta).total_seconds()))


def from_epoch(t: int) -> datetime:
    """Aware UTC datetime for a stored epoch value."""
    return datetime.fromtimestamp(t, tz=UTC)


@contextmanager
def transaction() -> Generator:
    """
    Context manager for database transaction.

    Everything done in the block is committed together, including changes
    that the caller has already flushed.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception as e:
        logger.warning('Commit failed, rolling back: %s', str(e))
        db.session.rollback()
        raise


def init_app(app: Optional[Any]) -> None:
    """Default to a local SQLite file, and bind the app to :data:`.db`."""
    config = app.config
    config.setdefault('SQLALCHEMY_DATABASE_URI', 'sqlite:///gctracker.db')
    config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
    db.init_app(app)


def create_all() -> None:
    """Create the user, case and tracking tables."""
    db.create_all()


def drop_all() -> None:
    """Drop the user, case and tracking tables."""
    db.drop_all()


def is_available() -> bool:
    """Whether the database answers a trivial query."""
    try:
        db.session.execute(text('SELECT 1'))
    except Exception as e:
        logger.error('Database is not available: %s', e)
        return False
    return True
