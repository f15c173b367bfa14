"""
Route guards based on the session attached by :class:`gctracker.auth.Auth`.

.. code-block:: python

   @blueprint.route('/', methods=['GET'])
   @login_required
   def cases():
       ...

Guarded views redirect rather than raise, since they are all browser-facing.
"""

from typing import Any, Callable
from functools import wraps
from http import HTTPStatus as status
import logging

from flask import make_response, redirect, request, url_for

logger = logging.getLogger(__name__)


def is_authenticated() -> bool:
    """Whether the current request carries an authenticated session."""
    session = getattr(request, 'auth', None)
    return bool(session and session.is_authenticated)


def login_required(func: Callable) -> Callable:
    """Send anonymous visitors to the sign-in page."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if not is_authenticated():
            logger.debug('Anonymous request to %s', request.path)
            return make_response(redirect(url_for('ui.signin'),
                                          code=status.SEE_OTHER))
        return func(*args, **kwargs)
    return wrapper


def anonymous_only(func: Callable) -> Callable:
    """Send logged-in users to their cases."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if is_authenticated():
            return make_response(redirect(url_for('ui.cases'),
                                          code=status.SEE_OTHER))
        return func(*args, **kwargs)
    return wrapper
