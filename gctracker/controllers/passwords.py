"""
Controllers for resetting and changing passwords.

A forgotten password is reset in three steps:

1. The user asks for a reset link (:func:`reset_password`). A token is issued
   and mailed to their registered address.
2. They follow the link (:func:`accept_reset_token`). The token is kept in an
   anonymous session.
3. They choose a new password (:func:`change_password`). The token must still
   be outstanding and younger than ``RESET_TOKEN_TTL``; it is retired once the
   password has changed.

Signed-in users change their password with step 3 alone.
"""

from typing import Any, Dict, Optional
from http import HTTPStatus as status
import logging

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError
from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired, Length, ValidationError

from retry import retry

from ..domain import ResetToken, Session, User
from ..process import notify
from ..services import datastore, session_store
from ..services.exceptions import DatastoreUnavailable, InvalidToken, \
    NoSuchToken, NoSuchUser, SessionCreationFailed, SessionDeletionFailed
from .util import ResponseData, session_cookie, strip, unset_session_cookie

logger = logging.getLogger(__name__)

RESET_LINK = 'Please follow the link %s/changepwd?a=r&t=%s to reset your ' \
    'password.'
PASSWORD_CHANGED = 'Your password has been changed.'


class ResetPasswordForm(Form):
    """Ask for a password reset link."""

    username = StringField('Username', filters=[strip])


class ChangePasswordForm(Form):
    """Choose a new password."""

    password = PasswordField(
        'New password',
        validators=[DataRequired(), Length(min=8, max=80)],
        description='Between 8 and 80 characters.'
    )
    password2 = PasswordField('Re-enter password',
                              validators=[DataRequired()])

    def validate_password(self, field: PasswordField) -> None:
        """Verify that the password is the same in both fields."""
        if self.password.data != self.password2.data:
            raise ValidationError('Passwords must match')


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _get_user(username: str) -> User:
    return datastore.get_user(username)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _issue_token(username: str) -> ResetToken:
    return datastore.set_reset_token(username)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _get_user_by_token(token: str, ttl: int) -> User:
    return datastore.get_user_by_reset_token(token, ttl)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _set_password(username: str, password: str) -> User:
    return datastore.set_password(username, password)


def reset_password(method: str, form_data: MultiDict,
                   base_url: str) -> ResponseData:
    """
    Send a password reset link to a user.

    Parameters
    ----------
    method : str
    form_data : MultiDict
        Should include `username`.
    base_url : str
        Root URL of the site, used to build the link.

    """
    if method == 'GET':
        return {'form': ResetPasswordForm()}, status.OK, {}

    form = ResetPasswordForm(form_data)
    data: Dict[str, Any] = {'form': form}
    username = form.username.data
    if not username:
        data['error'] = 'username is not specified'
        return data, status.BAD_REQUEST, {}
    try:
        user = _get_user(username)
    except NoSuchUser:
        logger.debug('Reset requested for unknown user %s', username)
        data['error'] = 'user not found'
        return data, status.BAD_REQUEST, {}

    token = _issue_token(user.username)
    logger.info('Issued reset token for %s', user.username)
    notify.notify(user, RESET_LINK % (base_url.rstrip('/'), token.token))
    data['message'] = 'Check your mailbox for the reset link.'
    return data, status.OK, {}


def accept_reset_token(token: str,
                       session: Optional[Session] = None) -> ResponseData:
    """
    Keep a reset token presented by an anonymous visitor in their session.

    The token is checked when the new password is submitted, not here.
    """
    data: Dict[str, Any] = {'form': ChangePasswordForm()}
    if session is not None and not session.is_authenticated:
        try:
            session_store.save(session._replace(reset_token=token))
            return data, status.OK, {}
        except (InvalidToken, SessionCreationFailed) as e:
            logger.debug('Could not update session, creating one: %s', e)
    try:
        session = session_store.create(reset_token=token)
        cookie = session_store.generate_cookie(session)
    except SessionCreationFailed as e:
        logger.info('Could not create session: %s', e)
        raise InternalServerError('Cannot reset password') from e
    data['cookies'] = session_cookie(cookie, session)
    return data, status.OK, {}


def change_password(method: str, form_data: MultiDict,
                    session: Session, ttl: int = 3600) -> ResponseData:
    """
    Change the password of the signed-in user, or of a reset token holder.

    Parameters
    ----------
    method : str
    form_data : MultiDict
        Should include `password` and `password2`.
    session : :class:`.Session`
        Either authenticated, or carrying a reset token.
    ttl : int
        Maximum age of a reset token, in seconds.

    """
    if method == 'GET':
        return {'form': ChangePasswordForm()}, status.OK, {}

    form = ChangePasswordForm(form_data)
    data: Dict[str, Any] = {'form': form}
    if not form.validate():
        return data, status.BAD_REQUEST, {}

    if session.is_authenticated:
        try:
            user = _get_user(session.username)
        except NoSuchUser:
            logger.error('Session for unknown user %s', session.username)
            data['error'] = 'cannot find user'
            return data, status.BAD_REQUEST, {}
    else:
        try:
            user = _get_user_by_token(session.reset_token or '', ttl)
        except NoSuchToken as e:
            logger.debug('Reset token rejected: %s', e)
            data['error'] = 'token not found'
            return data, status.BAD_REQUEST, {}

    _set_password(user.username, form.password.data)
    logger.info('Password changed for %s', user.username)
    notify.notify(user, PASSWORD_CHANGED)

    if not session.is_authenticated:
        # The token is spent, and so is the session that carried it.
        try:
            session_store.current_session().delete_by_id(session.session_id)
        except SessionDeletionFailed as e:
            logger.debug('Could not delete reset session: %s', e)
        data['cookies'] = unset_session_cookie()
    data['message'] = 'Password changed'
    return data, status.OK, {}
