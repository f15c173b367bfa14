"""Tests for :mod:`gctracker.config` and :mod:`gctracker.app_logging`."""

from unittest import TestCase, mock
import logging

from pythonjsonlogger import jsonlogger

from gctracker import app_logging, config

VALID = {
    'PORT': '8080',
    'COOKIE_NAME': 'sessionid',
    'SMTP_HOST': 'smtp.gc.test',
    'SMTP_USER': 'tracker@gc.test',
    'SMTP_PASS': 'smtpsecret',
}


class TestValidate(TestCase):
    """Tests for :func:`.config.validate`."""

    def test_valid(self):
        """A complete configuration has no problems."""
        self.assertEqual(config.validate(VALID), [])

    def test_mail_required(self):
        """Notifications cannot be sent without an SMTP account."""
        errors = config.validate({**VALID, 'SMTP_PASS': None, 'SMTP_HOST': ''})
        self.assertEqual(errors, ['SMTP_HOST is required',
                                  'SMTP_PASS is required'])

    def test_port(self):
        """The port is a number."""
        self.assertEqual(config.validate({**VALID, 'PORT': 'http'}),
                         ['PORT must be numeric'])

    def test_cookie_name(self):
        """The cookie name must be usable in a header."""
        self.assertEqual(config.validate({**VALID, 'COOKIE_NAME': 'a; b'}),
                         ['COOKIE_NAME must be alphanumeric'])


class TestSetupLogger(TestCase):
    """Tests for :func:`.app_logging.setup_logger`."""

    def test_json_handler_added_once(self):
        """Log records are written as JSON, by a single handler."""
        root = logging.getLogger()
        with mock.patch.object(root, 'handlers', []), \
                mock.patch.object(root, 'level', logging.WARNING):
            app_logging.setup_logger(logging.DEBUG)
            app_logging.setup_logger(logging.DEBUG)
            self.assertEqual(len(root.handlers), 1)
            self.assertIsInstance(root.handlers[0].formatter,
                                  jsonlogger.JsonFormatter)
            self.assertEqual(root.level, logging.DEBUG)


def test_app_port(app):
    """The dev server port is part of the application config."""
    assert config.validate({**VALID, 'PORT': app.config['PORT']}) == []
