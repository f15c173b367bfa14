"""Tests for :mod:`gctracker.services.datastore`."""

from unittest import TestCase, mock
from datetime import timedelta

from flask import Flask
from sqlalchemy.exc import IntegrityError, OperationalError

from ....domain import now
from ...exceptions import AuthenticationFailed, DatastoreUnavailable, \
    NoSuchToken, NoSuchUser, \
    UserExists
from ... import datastore


class DatastoreTestCase(TestCase):
    """Provide an in-memory database for each test."""

    def setUp(self):
        """Set up a temporary DB."""
        self.app = Flask('test')
        self.app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
        self.app.config['BCRYPT_ROUNDS'] = 4
        datastore.init_app(self.app)
        self.ctx = self.app.app_context()
        self.ctx.push()
        datastore.create_all()

    def tearDown(self):
        """Tear down temporary DB."""
        datastore.drop_all()
        self.ctx.pop()


class TestAvailability(DatastoreTestCase):
    """Tests for :func:`.datastore.is_available`."""

    def test_available(self):
        """The in-memory database answers."""
        self.assertTrue(datastore.is_available())

    def test_unavailable(self):
        """Errors talking to the database mean it is not available."""
        with mock.patch.object(datastore.util.db.session, 'execute',
                               side_effect=OperationalError('', {}, None)):
            self.assertFalse(datastore.is_available())


class TestUsers(DatastoreTestCase):
    """Registering and authenticating users."""

    def test_create_and_get(self):
        """A registered user can be loaded."""
        datastore.create_user('foouser', 'foo@bar.com', 'apassword')
        user = datastore.get_user('foouser')
        self.assertEqual(user.username, 'foouser')
        self.assertEqual(user.email, 'foo@bar.com')
        self.assertEqual(user.cases, frozenset())
        self.assertIsNone(user.reset_token)

    def test_committed(self):
        """Registration is committed, not just flushed."""
        datastore.create_user('foouser', 'foo@bar.com', 'apassword')
        datastore.util.db.session.rollback()
        self.assertFalse(datastore.is_username_available('foouser'))

    def test_username_taken(self):
        """A username can only be registered once."""
        self.assertTrue(datastore.is_username_available('foouser'))
        datastore.create_user('foouser', 'foo@bar.com', 'apassword')
        self.assertFalse(datastore.is_username_available('foouser'))
        with self.assertRaises(UserExists):
            datastore.create_user('foouser', 'other@bar.com', 'apassword')

    def test_no_such_user(self):
        """Loading an unknown user raises :class:`.NoSuchUser`."""
        with self.assertRaises(NoSuchUser):
            datastore.get_user('nobody')

    def test_authenticate(self):
        """The correct password authenticates; others do not."""
        datastore.create_user('foouser', 'foo@bar.com', 'apassword')
        user = datastore.authenticate('foouser', 'apassword')
        self.assertEqual(user.username, 'foouser')
        with self.assertRaises(AuthenticationFailed):
            datastore.authenticate('foouser', 'wrongpassword')
        with self.assertRaises(AuthenticationFailed):
            datastore.authenticate('nobody', 'apassword')

    def test_set_password(self):
        """Changing the password invalidates the old one."""
        datastore.create_user('foouser', 'foo@bar.com', 'apassword')
        datastore.set_password('foouser', 'anotherpassword')
        datastore.authenticate('foouser', 'anotherpassword')
        with self.assertRaises(AuthenticationFailed):
            datastore.authenticate('foouser', 'apassword')


class TestResetTokens(DatastoreTestCase):
    """Reset tokens are time-limited and single-use."""

    def setUp(self):
        """Register a user."""
        super(TestResetTokens, self).setUp()
        datastore.create_user('foouser', 'foo@bar.com', 'apassword')

    def test_find_by_token(self):
        """A fresh token finds its user."""
        token = datastore.set_reset_token('foouser')
        user = datastore.get_user_by_reset_token(token.token, ttl=3600)
        self.assertEqual(user.username, 'foouser')
        self.assertEqual(user.reset_token.token, token.token)

    def test_expired_token(self):
        """A token older than the TTL is not accepted."""
        issued = now() - timedelta(seconds=3601)
        token = datastore.set_reset_token('foouser', issued=issued)
        with self.assertRaises(NoSuchToken):
            datastore.get_user_by_reset_token(token.token, ttl=3600)

    def test_unknown_token(self):
        """A token nobody holds is not accepted."""
        datastore.set_reset_token('foouser')
        with self.assertRaises(NoSuchToken):
            datastore.get_user_by_reset_token('not-a-token', ttl=3600)
        with self.assertRaises(NoSuchToken):
            datastore.get_user_by_reset_token('', ttl=3600)

    def test_new_token_replaces_old(self):
        """Only the most recent token is outstanding."""
        first = datastore.set_reset_token('foouser')
        second = datastore.set_reset_token('foouser')
        with self.assertRaises(NoSuchToken):
            datastore.get_user_by_reset_token(first.token)
        datastore.get_user_by_reset_token(second.token)

    def test_password_change_clears_token(self):
        """Once used to change the password, the token is gone."""
        token = datastore.set_reset_token('foouser')
        datastore.set_password('foouser', 'anotherpassword')
        with self.assertRaises(NoSuchToken):
            datastore.get_user_by_reset_token(token.token)


class TestTracking(DatastoreTestCase):
    """The case registry holds exactly the cases somebody tracks."""

    def setUp(self):
        """Register two users."""
        super(TestTracking, self).setUp()
        datastore.create_user('alice', 'alice@bar.com', 'apassword')
        datastore.create_user('bob', 'bob@bar.com', 'apassword')

    def test_track_new_case(self):
        """Tracking a new case creates it in the registry."""
        case = datastore.track_case('alice', 'EAC1234567890', 'mine',
                                    status='Received')
        self.assertEqual(case.status, 'Received')
        self.assertTrue(datastore.case_exists('EAC1234567890'))
        self.assertEqual(datastore.get_user('alice').cases,
                         frozenset({'EAC1234567890'}))

    def test_labels_are_per_user(self):
        """Two users tracking one case each keep their own label."""
        datastore.track_case('alice', 'EAC1234567890', 'mine', 'Received')
        datastore.track_case('bob', 'EAC1234567890', 'wife', 'Ignored')
        self.assertEqual(len(datastore.get_all_cases()), 1)
        self.assertEqual(datastore.get_cases('alice')[0].name, 'mine')
        self.assertEqual(datastore.get_cases('bob')[0].name, 'wife')
        self.assertEqual(datastore.get_cases('bob')[0].status, 'Received',
                         "Existing status is kept")
        trackers = datastore.get_trackers('EAC1234567890')
        self.assertEqual([(u.username, name) for u, name in trackers],
                         [('alice', 'mine'), ('bob', 'wife')])

    def test_track_twice_relabels(self):
        """Tracking a case again only changes its label."""
        datastore.track_case('alice', 'EAC1234567890', 'mine')
        datastore.track_case('alice', 'EAC1234567890', 'renamed')
        cases = datastore.get_cases('alice')
        self.assertEqual(len(cases), 1)
        self.assertEqual(cases[0].name, 'renamed')

    def test_cases_sorted(self):
        """A user's cases are sorted by ID."""
        datastore.track_case('alice', 'WAC0000000002')
        datastore.track_case('alice', 'EAC0000000001')
        self.assertEqual([c.case_id for c in datastore.get_cases('alice')],
                         ['EAC0000000001', 'WAC0000000002'])

    def test_untrack_shared_case(self):
        """A case stays in the registry while somebody still tracks it."""
        datastore.track_case('alice', 'EAC1234567890')
        datastore.track_case('bob', 'EAC1234567890')
        removed = datastore.untrack_cases('alice', ['EAC1234567890'])
        self.assertEqual(removed, ['EAC1234567890'])
        self.assertTrue(datastore.case_exists('EAC1234567890'))
        self.assertEqual(datastore.get_cases('alice'), [])

        datastore.untrack_cases('bob', ['EAC1234567890'])
        self.assertFalse(datastore.case_exists('EAC1234567890'))
        self.assertEqual(datastore.get_all_cases(), [])

    def test_untrack_unknown(self):
        """Cases the user does not track are ignored."""
        datastore.track_case('bob', 'EAC1234567890')
        removed = datastore.untrack_cases('alice', ['EAC1234567890',
                                                    'NOPE000000000'])
        self.assertEqual(removed, [])
        self.assertTrue(datastore.case_exists('EAC1234567890'))

    def test_track_for_unknown_user(self):
        """Only registered users can track cases."""
        with self.assertRaises(NoSuchUser):
            datastore.track_case('nobody', 'EAC1234567890')
        self.assertFalse(datastore.case_exists('EAC1234567890'))


class TestUpdateStatus(DatastoreTestCase):
    """Status updates are compare-and-set."""

    def setUp(self):
        """Track one case."""
        super(TestUpdateStatus, self).setUp()
        datastore.create_user('alice', 'alice@bar.com', 'apassword')
        datastore.track_case('alice', 'EAC1234567890', status='Received')

    def test_update(self):
        """The update applies when the status is as expected."""
        self.assertTrue(datastore.update_status('EAC1234567890', 'Received',
                                                'Approved'))
        case = datastore.get_case('EAC1234567890')
        self.assertEqual(case.status, 'Approved')
        self.assertEqual(case.old_status, 'Received')

    def test_lost_race(self):
        """Only one of two writers observing the same status wins."""
        self.assertTrue(datastore.update_status('EAC1234567890', 'Received',
                                                'Approved'))
        self.assertFalse(datastore.update_status('EAC1234567890', 'Received',
                                                 'Approved'))
        self.assertEqual(datastore.get_case('EAC1234567890').old_status,
                         'Received')

    def test_case_gone(self):
        """Updating a case nobody tracks any more has no effect."""
        datastore.untrack_cases('alice', ['EAC1234567890'])
        self.assertFalse(datastore.update_status('EAC1234567890', 'Received',
                                                 'Approved'))
        self.assertIsNone(datastore.get_case('EAC1234567890'))


@mock.patch('retry.api.time.sleep', mock.MagicMock())
class TestConcurrentTracking(DatastoreTestCase):
    """Adds and deletes of the same case by different users interleave."""

    def setUp(self):
        """Register two users."""
        super(TestConcurrentTracking, self).setUp()
        datastore.create_user('alice', 'alice@bar.com', 'apassword')
        datastore.create_user('bob', 'bob@bar.com', 'apassword')

    def _read_first(self, stale):
        """The first registry read returns ``stale``; later reads are live."""
        live = datastore._lock_case
        reads = []

        def lock_case(session, case_id):
            reads.append(case_id)
            if len(reads) == 1:
                return stale
            return live(session, case_id)
        return mock.patch.object(datastore, '_lock_case',
                                 side_effect=lock_case)

    def test_both_add_new_case(self):
        """The user who loses the race to create a case still tracks it."""
        datastore.track_case('bob', 'IOE0000000001', 'his', 'Received')
        datastore.util.db.session.remove()

        # Alice read the registry before Bob's insert was committed.
        with self._read_first(None):
            case = datastore.track_case('alice', 'IOE0000000001', 'hers',
                                        'Something else')

        self.assertEqual(case.status, 'Received')
        self.assertEqual(len(datastore.get_all_cases()), 1)
        self.assertEqual(datastore.get_case('IOE0000000001').status,
                         'Received')
        self.assertEqual(
            [(u.username, name)
             for u, name in datastore.get_trackers('IOE0000000001')],
            [('alice', 'hers'), ('bob', 'his')]
        )

    def test_add_races_last_delete(self):
        """A case added while its last tracker deletes it stays registered."""
        datastore.track_case('bob', 'IOE0000000002', status='Received')
        # Alice saw the row, then Bob removed it before she linked to it.
        seen = datastore.models.DBCase(case_id='IOE0000000002',
                                       status='Received', old_status='')
        datastore.untrack_cases('bob', ['IOE0000000002'])
        self.assertFalse(datastore.case_exists('IOE0000000002'))

        with self._read_first(seen):
            datastore.track_case('alice', 'IOE0000000002', 'hers')

        self.assertTrue(datastore.case_exists('IOE0000000002'))
        self.assertEqual(datastore.get_user('alice').cases,
                         frozenset({'IOE0000000002'}))
        self.assertEqual([c.case_id for c in datastore.get_cases('alice')],
                         ['IOE0000000002'])
        self.assertEqual([c.case_id for c in datastore.get_all_cases()],
                         ['IOE0000000002'])

    def test_orphan_link_rejected(self):
        """The database refuses a link to a case that is not registered."""
        session = datastore.util.db.session
        session.add(datastore.models.DBTracking(username='alice',
                                                case_id='IOE0000000003'))
        with self.assertRaises(IntegrityError):
            session.flush()
        session.rollback()

    def test_gives_up(self):
        """A case that keeps changing underneath is reported unavailable."""
        datastore.track_case('bob', 'IOE0000000004', status='Received')
        datastore.util.db.session.remove()
        with mock.patch.object(datastore, '_lock_case', return_value=None):
            with self.assertRaises(DatastoreUnavailable):
                datastore.track_case('alice', 'IOE0000000004')
        self.assertEqual(datastore.get_cases('alice'), [])
