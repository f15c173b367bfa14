"""Delivers notifications to users."""

import logging

from retry import retry

from ..domain import User
from ..services import mail
from ..services.exceptions import MailDeliveryFailed

logger = logging.getLogger(__name__)


@retry(MailDeliveryFailed, tries=3, delay=0.5, backoff=2)
def _send(to: str, message: str) -> None:
    mail.send(to, message)


def notify(user: User, message: str) -> bool:
    """
    Send ``message`` to the address registered for ``user``.

    Delivery is retried; a message that still cannot be delivered is logged
    and dropped.

    Returns
    -------
    bool
        Whether the message was delivered.

    """
    try:
        _send(user.email, message)
    except (MailDeliveryFailed, ValueError) as e:
        logger.error('Could not notify %s: %s', user.username, e)
        return False
    logger.info('Notified %s', user.username)
    return True
