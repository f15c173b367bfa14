"""Password hashing."""

import bcrypt

from .exceptions import AuthenticationFailed

MAX_BYTES = 72
"""bcrypt only considers the first 72 bytes of a password."""


def _encode(password: str) -> bytes:
    return password.encode('utf-8')[:MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Generate a salted bcrypt hash of a password."""
    hashed = bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('ascii')


def check_password(password: str, encrypted: str) -> None:
    """
    Check a password against a hash.

    Raises
    ------
    :class:`AuthenticationFailed`
        If the password does not match, or the hash is unusable.
    """
    if not encrypted:
        raise AuthenticationFailed('No password set')
    try:
        matched = bcrypt.checkpw(_encode(password), encrypted.encode('ascii'))
    except ValueError as e:
        raise AuthenticationFailed('Invalid password hash') from e
    if not matched:
        raise AuthenticationFailed('Incorrect password')
