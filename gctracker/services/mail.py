"""Sends notification email over SMTP."""

from typing import Optional
from functools import wraps
import logging
import smtplib

from werkzeug.local import LocalProxy

from ..context import get_application_config, get_application_global
from .exceptions import MailDeliveryFailed

logger = logging.getLogger(__name__)

SUBJECT = 'Notification from GC-Tracker'


def get_headers(sender: str, to: str, subject: str = SUBJECT) -> str:
    """Build the message headers, terminated by a blank line."""
    return 'From: %s\nTo: %s\nSubject: %s\n\n' % (sender, to, subject)


def get_body(message: str) -> str:
    """Wrap a message in the standard greeting and footer."""
    return 'Hello!\n\n%s\n\nThis is automated message. Please do not reply.\n' \
        % message


class MailSession(object):
    """
    Settings for an SMTP service.

    A new connection is opened for each message, so that an instance can be
    shared by long-running workers.
    """

    def __init__(self, host: str = '', port: int = 587, user: str = '',
                 password: str = '', timeout: float = 30) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._timeout = timeout

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(host=self._host, port=self._port,
                            timeout=self._timeout)

    def send(self, to: str, message: str) -> None:
        """
        Send a notification to a single address.

        Raises
        ------
        ValueError
            If the recipient or the message is empty.
        :class:`.MailDeliveryFailed`
            If the SMTP service refused or could not be reached.

        """
        if not to:
            raise ValueError('empty recipients list')
        if not message:
            raise ValueError('empty message')
        content = get_headers(self._user, to) + get_body(message)
        try:
            with self._new_connection() as conn:
                conn.starttls()
                conn.login(self._user, self._password)
                conn.sendmail(self._user, [to], content.encode('utf-8'))
        except (smtplib.SMTPException, OSError) as e:
            logger.warning('Mail to %s failed: %s', to, e)
            raise MailDeliveryFailed(f'cannot send email to {to}') from e
        logger.debug('Sent mail to %s', to)


def init_app(app: Optional[LocalProxy] = None) -> None:
    """Set required configuration defaults for the application."""
    if app is not None:
        app.config.setdefault('SMTP_PORT', '587')


def get_session(app: Optional[LocalProxy] = None) -> MailSession:
    """Create a new :class:`.MailSession` from the configuration."""
    config = get_application_config(app)
    return MailSession(host=config.get('SMTP_HOST', ''),
                       port=int(config.get('SMTP_PORT', '587')),
                       user=config.get('SMTP_USER', ''),
                       password=config.get('SMTP_PASS', ''))


def current_session(app: Optional[LocalProxy] = None) -> MailSession:
    """Get the mail session for this context."""
    g = get_application_global()
    if g:
        if 'mail' not in g:
            g.mail = get_session(app)  # type: ignore
        return g.mail  # type: ignore
    return get_session(app)


@wraps(MailSession.send)
def send(to: str, message: str) -> None:
    """Wrapper for :meth:`MailSession.send`."""
    return current_session().send(to, message)
