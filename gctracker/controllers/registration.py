"""Controller for creating new accounts."""

from typing import Any, Dict
from http import HTTPStatus as status
import logging

from werkzeug.datastructures import MultiDict
from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length, ValidationError

from retry import retry

from ..domain import User
from ..process import notify
from ..services import datastore
from ..services.exceptions import DatastoreUnavailable, UserExists
from .util import ResponseData, alphanumeric, strip

logger = logging.getLogger(__name__)

ACCOUNT_CREATED = "Your account '%s' has been created."


class RegistrationForm(Form):
    """User registration form."""

    username = StringField(
        'Username',
        validators=[DataRequired(), Length(min=2, max=80), alphanumeric],
        filters=[strip],
        description='Between 2 and 80 letters or digits.'
    )
    email = StringField(
        'Email address',
        validators=[DataRequired(), Email(), Length(max=255)],
        filters=[strip],
        description='Notifications are sent to this address.'
    )
    password = PasswordField(
        'Password',
        validators=[DataRequired(), Length(min=8, max=80)],
        description='Between 8 and 80 characters.'
    )
    password2 = PasswordField('Re-enter password',
                              validators=[DataRequired()])

    def validate_username(self, field: StringField) -> None:
        """Ensure that the username is unique."""
        if field.data and not _is_available(field.data):
            raise ValidationError('That username is already taken')

    def validate_password(self, field: PasswordField) -> None:
        """Verify that the password is the same in both fields."""
        if self.password.data != self.password2.data:
            raise ValidationError('Passwords must match')


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _is_available(username: str) -> bool:
    return datastore.is_username_available(username)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _do_register(username: str, email: str, password: str) -> User:
    return datastore.create_user(username, email, password)


def register(method: str, form_data: MultiDict) -> ResponseData:
    """
    Handle requests for the sign-up view.

    The new user is not signed in; they are asked to sign in with their new
    credentials.
    """
    if method == 'GET':
        return {'form': RegistrationForm()}, status.OK, {}

    logger.debug('Registration form submitted')
    form = RegistrationForm(form_data)
    data: Dict[str, Any] = {'form': form}
    if not form.validate():
        logger.debug('Registration form not valid')
        return data, status.BAD_REQUEST, {}

    try:
        user = _do_register(form.username.data, form.email.data,
                            form.password.data)
    except UserExists:
        # Lost a race with another registration.
        form.username.errors = ['That username is already taken']
        return data, status.BAD_REQUEST, {}

    notify.notify(user, ACCOUNT_CREATED % user.username)
    data['message'] = 'Account created'
    return data, status.OK, {}
