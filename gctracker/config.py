"""Flask configuration."""
import secrets
import os
from typing import Any, List, Mapping, Optional

#################### General config for app ####################
PORT = os.environ.get('PORT', '8080')
"""Port on which the development server listens."""

SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key. Not used for the session cookie."""

LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))

BASE_URL = os.environ.get('BASE_URL', '')
"""Scheme and host used in links sent by e-mail, e.g. `https://gc.example`.

If empty, links are built from the host of the current request."""


#################### Sessions ####################
COOKIE_NAME = os.environ.get('COOKIE_NAME', 'sessionid')
COOKIE_SECURE = bool(int(os.environ.get('COOKIE_SECURE', '0')))

JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Used to sign the session cookie."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '86400')
"""Lifetime of a session in seconds."""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_TOKEN = os.environ.get('REDIS_TOKEN', None)
"""This is the token used in the AUTH procedure."""

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta."""


#################### Database ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URI',
                                         'sqlite:///gctracker.db')
SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', 0)))


#################### Accounts ####################
RESET_TOKEN_TTL = int(os.environ.get('RESET_TOKEN_TTL', '3600'))
"""Seconds during which a password reset token can be used."""

BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', '12'))


#################### Mail ####################
SMTP_HOST = os.environ.get('SMTP_HOST')
SMTP_PORT = os.environ.get('SMTP_PORT', '587')
SMTP_USER = os.environ.get('SMTP_USER')
"""Also used as the sender address."""
SMTP_PASS = os.environ.get('SMTP_PASS')


#################### Case status ####################
STATUS_URL = os.environ.get(
    'STATUS_URL',
    'https://egov.uscis.gov/casestatus/mycasestatus.do'
)
STATUS_TIMEOUT = int(os.environ.get('STATUS_TIMEOUT', '30'))

UPDATE_INTERVAL = int(os.environ.get('UPDATE_INTERVAL', '3600'))
"""Seconds between periodic status synchronizations (Celery beat)."""


REQUIRED = ['SMTP_HOST', 'SMTP_USER', 'SMTP_PASS']


def validate(config: Optional[Mapping[str, Any]] = None) -> List[str]:
    """
    Check that the configuration is usable.

    Parameters
    ----------
    config : mapping or None
        A Flask config; defaults to the values in this module.

    Returns
    -------
    list
        Human-readable problems; empty if there are none.

    """
    if config is None:
        config = globals()
    errors = [f'{key} is required' for key in REQUIRED
              if not config.get(key)]
    if not str(config.get('PORT', '')).isdigit():
        errors.append('PORT must be numeric')
    if not str(config.get('COOKIE_NAME', '')).isalnum():
        errors.append('COOKIE_NAME must be alphanumeric')
    return errors
