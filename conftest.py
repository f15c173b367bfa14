from unittest import mock

import pytest

from gctracker import factory
from gctracker.services import datastore, session_store

TEST_CONFIG = {
    'TESTING': True,
    'REDIS_FAKE': True,
    'JWT_SECRET': 'foosecret',
    'SESSION_DURATION': '500',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'CREATE_DB': True,
    'BCRYPT_ROUNDS': 4,
    'BASE_URL': 'http://gc.test',
    'SMTP_HOST': 'smtp.gc.test',
    'SMTP_USER': 'tracker@gc.test',
    'SMTP_PASS': 'smtpsecret',
}


@pytest.fixture()
def app():
    app = factory.create_web_app(TEST_CONFIG)
    with app.app_context():
        session_store.get_redis_session(app).r.flushall()
    yield app
    with app.app_context():
        datastore.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def smtp():
    """Stand-in for the SMTP server; sent messages are on ``sendmail``."""
    with mock.patch('gctracker.services.mail.smtplib.SMTP') as mock_smtp:
        yield mock_smtp.return_value.__enter__.return_value


@pytest.fixture()
def status_page():
    """Stand-in for the case status page."""
    with mock.patch('gctracker.services.case_status.check_status') as check:
        check.return_value = 'Case Was Received'
        yield check
