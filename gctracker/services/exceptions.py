"""Provides exceptions occurring with external services."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""


class UnknownSession(RuntimeError):
    """Failed to locate a session in the session store."""


class InvalidToken(ValueError):
    """A session cookie is malformed, forged or expired."""


class DatastoreUnavailable(IOError):
    """The database could not be reached."""


class NoSuchUser(RuntimeError):
    """User does not exist."""


class UserExists(RuntimeError):
    """A user with the requested username already exists."""


class AuthenticationFailed(RuntimeError):
    """Failed to authenticate user with provided credentials."""


class NoSuchToken(RuntimeError):
    """No user holds a current reset token matching the one provided."""


class StatusUnavailable(IOError):
    """The case status page could not be retrieved or parsed."""


class MailDeliveryFailed(IOError):
    """A message could not be handed to the SMTP service."""
