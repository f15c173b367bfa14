"""
Controllers for signing in and out.

A successful sign-in creates an authenticated session in the session store,
and hands the route a signed cookie for it. Signing out deletes the session.
"""

from typing import Any, Dict, Optional
from http import HTTPStatus as status
import logging

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError
from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired

from retry import retry

from ..domain import User
from ..services import datastore, session_store
from ..services.exceptions import AuthenticationFailed, \
    DatastoreUnavailable, SessionCreationFailed, SessionDeletionFailed
from .util import ResponseData, session_cookie, strip, unset_session_cookie

logger = logging.getLogger(__name__)

LOGIN_FAILED = 'Invalid username or password.'


class LoginForm(Form):
    """Log in form."""

    username = StringField('Username', validators=[DataRequired()],
                           filters=[strip])
    password = PasswordField('Password', validators=[DataRequired()])


# Broken out to add retry logic.
@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _do_authn(username: str, password: str) -> User:
    return datastore.authenticate(username, password)


def login(method: str, form_data: MultiDict, ip: Optional[str] = None,
          next_page: str = '/',
          session_cookie_value: Optional[str] = None) -> ResponseData:
    """
    Provide the sign-in form, and sign the user in.

    Parameters
    ----------
    method : str
    form_data : MultiDict
        Should include `username` and `password` data.
    ip : str
        IP or hostname of client, for the log.
    next_page : str
        Page to which the user should be redirected upon login.
    session_cookie_value : str
        The visitor's current session cookie, if any. An anonymous session
        (e.g. from a reset link) is replaced.

    Returns
    -------
    dict
        Additional data to add to the response.
    int
        Status code. This should be 303 (See Other) if all goes well.
    dict
        Headers to add to the response.

    """
    if method == 'GET':
        return {'form': LoginForm()}, status.OK, {}

    form = LoginForm(form_data)
    data: Dict[str, Any] = {'form': form}
    if not form.validate():
        logger.debug('Login form is not valid')
        return data, status.BAD_REQUEST, {}

    try:
        user = _do_authn(form.username.data, form.password.data)
    except AuthenticationFailed as e:
        logger.debug('Authentication failed for %s: %s',
                     form.username.data, e)
        data['error'] = LOGIN_FAILED
        return data, status.BAD_REQUEST, {}
    except Exception:
        logger.exception('Error during authentication for %s',
                         form.username.data)
        # To the perspective of the attacker, same as AuthenticationFailed.
        data['error'] = LOGIN_FAILED
        return data, status.BAD_REQUEST, {}

    if session_cookie_value:
        _discard(session_cookie_value)

    try:
        session = session_store.create(user.username, authenticated=True)
        cookie = session_store.generate_cookie(session)
    except SessionCreationFailed as e:
        logger.info('Could not create session: %s', e)
        raise InternalServerError('Cannot log in') from e
    logger.info('User %s signed in from %s', user.username, ip)

    data['cookies'] = session_cookie(cookie, session)
    return data, status.SEE_OTHER, {'Location': next_page}


def logout(session_cookie_value: Optional[str],
           next_page: str = '/signin') -> ResponseData:
    """
    Sign the user out, and redirect to the sign-in page.

    Signing out without a session is not an error.
    """
    if session_cookie_value:
        _discard(session_cookie_value)
    data = {'cookies': unset_session_cookie()}
    return data, status.SEE_OTHER, {'Location': next_page}


def _discard(cookie: str) -> None:
    try:
        session_store.delete(cookie)
    except SessionDeletionFailed as e:
        logger.debug('Could not delete session: %s', e)
