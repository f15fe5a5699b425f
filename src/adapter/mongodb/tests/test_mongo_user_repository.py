"""Tests for MongoUserRepository against a mocked pymongo database."""

import time
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from bson import ObjectId
from pymongo.errors import PyMongoError

from adapter.mongodb.indexes import ensure_index
from adapter.mongodb.user_repository import MongoUserRepository
from domain.model.errors import InternalError, NotFoundError, ValidationError
from domain.model.user import User
from utils.concurrency import bound_deadline

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
OID = ObjectId('65a1b2c3d4e5f60718293a4b')


def _user(email='a@b') -> User:
    return User(name='Ada', surnames='L', email=email, password_hash='hash', claim_ids=[0], created_at=NOW, updated_at=NOW)


def _document(**overrides) -> dict:
    doc = {
        '_id': OID, 'name': 'Ada', 'surnames': 'L', 'email': 'a@b',
        'password_hash': 'hash', 'claims': [0], 'created_at': NOW, 'updated_at': NOW,
    }
    doc.update(overrides)
    return doc


class MongoRepositoryTestCase(unittest.TestCase):

    def setUp(self):
        self.collection = MagicMock()
        self.db = MagicMock()
        self.db.__getitem__.return_value = self.collection
        self.repo = MongoUserRepository(self.db)


class TestWrites(MongoRepositoryTestCase):

    def test_create(self):
        self.collection.insert_one.return_value.inserted_id = OID

        self.assertEqual(self.repo.create(_user()), str(OID))

        document = self.collection.insert_one.call_args.args[0]
        self.assertNotIn('_id', document)
        self.assertNotIn('id', document)
        self.assertEqual(document['claims'], [0])
        self.assertEqual(document['password_hash'], 'hash')

    def test_create_driver_error(self):
        self.collection.insert_one.side_effect = PyMongoError('down')
        with self.assertRaises(InternalError) as ctx:
            self.repo.create(_user())
        self.assertIsInstance(ctx.exception.__cause__, PyMongoError)

    def test_create_many_runs_in_transaction(self):
        session = MagicMock()
        self.db.client.start_session.return_value.__enter__.return_value = session
        session.with_transaction.side_effect = lambda callback, **kwargs: callback(session)
        first, second = ObjectId(), ObjectId()
        self.collection.insert_one.side_effect = [MagicMock(inserted_id=first), MagicMock(inserted_id=second)]

        ids = self.repo.create_many([_user('one@b'), _user('two@b')])

        self.assertEqual(ids, [str(first), str(second)])
        for call in self.collection.insert_one.call_args_list:
            self.assertIs(call.kwargs['session'], session)
        kwargs = session.with_transaction.call_args.kwargs
        self.assertEqual(kwargs['read_concern'].level, 'snapshot')
        self.assertEqual(kwargs['write_concern'].document, {'w': 'majority'})

    def test_create_many_failure(self):
        session = MagicMock()
        self.db.client.start_session.return_value.__enter__.return_value = session
        session.with_transaction.side_effect = PyMongoError('aborted')
        with self.assertRaises(InternalError):
            self.repo.create_many([_user()])

    def test_update(self):
        self.collection.update_one.return_value.matched_count = 1
        user = _user()

        self.repo.update(str(OID), user)

        query, update = self.collection.update_one.call_args.args
        self.assertEqual(query, {'_id': OID})
        self.assertNotIn('_id', update['$set'])

    def test_update_missing(self):
        self.collection.update_one.return_value.matched_count = 0
        with self.assertRaises(NotFoundError):
            self.repo.update(str(OID), _user())

    def test_delete(self):
        self.collection.delete_one.return_value.deleted_count = 1
        self.repo.delete(str(OID))
        self.collection.delete_one.assert_called_once_with({'_id': OID})

    def test_delete_missing(self):
        self.collection.delete_one.return_value.deleted_count = 0
        with self.assertRaises(NotFoundError) as ctx:
            self.repo.delete(str(OID))
        self.assertEqual(str(ctx.exception), f'ID {OID} not found')

    def test_invalid_id(self):
        for call in (self.repo.get_by_id, self.repo.delete):
            with self.assertRaises(ValidationError) as ctx:
                call('not-an-object-id')
            self.assertEqual(str(ctx.exception), 'invalid ID: not-an-object-id')


class TestReads(MongoRepositoryTestCase):

    def test_get_by_id(self):
        self.collection.find_one.return_value = _document()

        user = self.repo.get_by_id(str(OID))

        self.assertEqual(user.id, str(OID))
        self.assertEqual(user.claim_ids, [0])
        self.assertEqual(user.created_at, NOW)
        self.collection.find_one.assert_called_once_with({'_id': OID})

    def test_get_by_id_missing(self):
        self.collection.find_one.return_value = None
        with self.assertRaises(NotFoundError):
            self.repo.get_by_id(str(OID))

    def test_get_empty_is_empty_list(self):
        self.collection.find.return_value = iter([])
        self.assertEqual(self.repo.get({'email': 'a@b'}), [])

    def test_get_translates_filter(self):
        cursor = MagicMock()
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([_document()])
        self.collection.find.return_value = cursor

        users = self.repo.get({'id': str(OID), 'email': 'a@b'}, skip=2, take=3)

        self.assertEqual(len(users), 1)
        self.collection.find.assert_called_once_with({'_id': OID, 'email': 'a@b'})
        cursor.skip.assert_called_once_with(2)
        cursor.limit.assert_called_once_with(3)

    def test_get_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            self.repo.get({'password_hash': 'x'})
        with self.assertRaises(ValidationError):
            self.repo.get({}, skip=-1)

    def test_get_take_zero(self):
        self.assertEqual(self.repo.get({}, take=0), [])
        self.collection.find.assert_not_called()

    def test_ping(self):
        self.assertTrue(self.repo.ping())
        self.db.client.admin.command.side_effect = PyMongoError('down')
        self.assertFalse(self.repo.ping())


class TestIndexes(MongoRepositoryTestCase):

    def test_creates_missing_indexes(self):
        self.collection.index_information.return_value = {'_id_': {'key': [('_id', 1)]}}

        self.assertTrue(self.repo.ensure_indexes())

        names = [call.kwargs['name'] for call in self.collection.create_index.call_args_list]
        self.assertEqual(names, ['idx_users_email', 'idx_users_created_at'])
        self.collection.drop_index.assert_not_called()

    def test_unique_email_index_is_replaced(self):
        self.collection.index_information.return_value = {
            '_id_': {'key': [('_id', 1)]},
            'email_1': {'key': [('email', 1)], 'unique': True},
        }

        ensure_index(self.collection, [('email', 1)], 'idx_users_email')

        self.collection.drop_index.assert_called_once_with('email_1')
        self.collection.create_index.assert_called_once_with([('email', 1)], name='idx_users_email', unique=False)

    def test_existing_index_is_kept(self):
        self.collection.index_information.return_value = {
            'idx_users_email': {'key': [('email', 1)]},
        }
        self.assertFalse(ensure_index(self.collection, [('email', 1)], 'idx_users_email'))
        self.collection.create_index.assert_not_called()

    def test_driver_error(self):
        self.collection.index_information.side_effect = PyMongoError('down')
        self.assertFalse(self.repo.ensure_indexes())


class TestRequestDeadline(MongoRepositoryTestCase):

    @patch('adapter.mongodb.user_repository.pymongo.timeout')
    def test_calls_are_bounded_by_remaining_time(self, mock_timeout):
        self.collection.insert_one.return_value.inserted_id = OID

        with bound_deadline(time.monotonic() + 2):
            self.assertEqual(self.repo.create(_user()), str(OID))

        seconds = mock_timeout.call_args.args[0]
        self.assertTrue(0 < seconds <= 2)
        mock_timeout.return_value.__enter__.assert_called_once()

    @patch('adapter.mongodb.user_repository.pymongo.timeout')
    def test_no_bound_outside_a_request(self, mock_timeout):
        self.collection.insert_one.return_value.inserted_id = OID
        self.repo.create(_user())
        mock_timeout.assert_not_called()

    def test_expired_deadline_writes_nothing(self):
        with bound_deadline(time.monotonic() - 1):
            with self.assertRaises(InternalError):
                self.repo.create(_user())
            with self.assertRaises(InternalError):
                self.repo.update(str(OID), _user())
            with self.assertRaises(InternalError):
                self.repo.delete(str(OID))

        self.collection.insert_one.assert_not_called()
        self.collection.update_one.assert_not_called()
        self.collection.delete_one.assert_not_called()


if __name__ == '__main__':
    unittest.main()
