"""Tests for :mod:`gctracker.auth.decorators`."""

from unittest import TestCase
from datetime import timedelta

from flask import Flask, Blueprint, request

from ...domain import Session, now
from .. import decorators


def _session(**kwargs):
    start = now()
    return Session('fooid', start, start + timedelta(hours=1), '1234',
                   **kwargs)


class TestGuards(TestCase):
    """Guards redirect based on the session on the request."""

    def setUp(self):
        """Register the named routes that guards redirect to."""
        self.app = Flask('test')
        blueprint = Blueprint('ui', __name__)
        blueprint.add_url_rule('/', 'cases', lambda: 'cases')
        blueprint.add_url_rule('/signin', 'signin', lambda: 'signin')
        self.app.register_blueprint(blueprint)

        @decorators.login_required
        def protected():
            return 'protected'

        @decorators.anonymous_only
        def public():
            return 'public'

        self.protected = protected
        self.public = public

    def test_login_required_anonymous(self):
        """Visitors without a session are sent to sign in."""
        with self.app.test_request_context():
            request.auth = None
            response = self.protected()
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['Location'], '/signin')

    def test_login_required_no_auth(self):
        """A request that was never given a session is anonymous."""
        with self.app.test_request_context():
            response = self.protected()
        self.assertEqual(response.status_code, 303)

    def test_login_required_reset_session(self):
        """A reset-token session is not a login."""
        with self.app.test_request_context():
            request.auth = _session(reset_token='the-token')
            response = self.protected()
        self.assertEqual(response.status_code, 303)

    def test_login_required_authenticated(self):
        """Authenticated users get through."""
        with self.app.test_request_context():
            request.auth = _session(username='foo', authenticated=True)
            self.assertEqual(self.protected(), 'protected')

    def test_anonymous_only(self):
        """Authenticated users are sent to their cases."""
        with self.app.test_request_context():
            request.auth = _session(username='foo', authenticated=True)
            response = self.public()
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['Location'], '/')

        with self.app.test_request_context():
            request.auth = None
            self.assertEqual(self.public(), 'public')
