"""
Tests for ExpenseRecorder.core.tabular: the in-process table and its endpoint contract.

Run with:
    python -m unittest tests.test_tabular
"""
import json
import os
import tempfile
import unittest

from ExpenseRecorder.core import remote
from ExpenseRecorder.core.records import ExpenseRecord
from ExpenseRecorder.core.tabular import TabularRemoteStore
from ExpenseRecorder.status import status

RECORD = ExpenseRecord('r1', '2024-01-01', '食費', 'cash', 1000, 'lunch')


class TabularStoreTests(unittest.TestCase):

    def setUp(self):
        self.table = TabularRemoteStore()

    def test_header_row(self):
        self.assertEqual(self.table.rows, [remote.REMOTE_HEADERS])
        self.assertEqual(remote.REMOTE_HEADERS, ['id', 'date', 'category', 'paymentMethod', 'amount', 'memo'])

    def test_add_appends_row(self):
        self.table.add(RECORD)
        self.assertEqual(self.table.rows[1], ['r1', '2024-01-01', '食費', 'cash', 1000, 'lunch'])
        self.assertEqual(self.table.fetch_all(), [RECORD])

    def test_update_and_delete_by_id(self):
        self.table.add(RECORD)
        self.table.add(ExpenseRecord('r2', '2024-01-02', '交通', 'card', 200))
        self.table.update(ExpenseRecord('r1', '2024-01-01', '食費', 'cash', 1500))
        self.assertEqual(self.table.fetch_all()[0].amount, 1500)
        self.table.delete('r1')
        self.assertEqual([r.id for r in self.table.fetch_all()], ['r2'])

    def test_unknown_ids_fail(self):
        with self.assertRaises(status.RemoteUnavailableException):
            self.table.update(RECORD)
        with self.assertRaises(status.RemoteUnavailableException):
            self.table.delete('r1')

    def test_sync_replaces_everything(self):
        self.table.add(RECORD)
        other = ExpenseRecord('r9', '2024-02-01', '光熱費', 'bank', 8000)
        self.assertEqual(self.table.sync_all([other]), 1)
        self.assertEqual(self.table.fetch_all(), [other])

    def test_persistence(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'table.json')
            TabularRemoteStore(path).add(RECORD)
            with open(path, 'r', encoding='utf-8') as f:
                self.assertEqual(json.load(f)[0], remote.REMOTE_HEADERS)
            self.assertEqual(TabularRemoteStore(path).fetch_all(), [RECORD])

    def test_bad_header_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'table.json')
            with open(path, 'w', encoding='utf-8') as f:
                json.dump([['a', 'b']], f)
            with self.assertRaises(status.RemoteUnavailableException):
                TabularRemoteStore(path)


class EndpointContractTests(unittest.TestCase):

    def setUp(self):
        self.table = TabularRemoteStore()

    def test_get(self):
        self.assertEqual(self.table.handle_get(), {'success': True, 'records': []})
        self.table.add(RECORD)
        self.assertEqual(self.table.handle_get(), {'success': True, 'records': [RECORD.to_dict()]})

    def test_add(self):
        self.assertEqual(self.table.handle_post({'action': 'add', 'record': RECORD.to_dict()}), {'success': True})
        self.assertEqual(self.table.fetch_all(), [RECORD])

    def test_update_missing_remotely(self):
        response = self.table.handle_post({'action': 'update', 'record': RECORD.to_dict()})
        self.assertFalse(response['success'])
        self.assertIn('r1', response['error'])

    def test_delete(self):
        self.table.add(RECORD)
        self.assertEqual(self.table.handle_post({'action': 'delete', 'id': 'r1'}), {'success': True})
        self.assertFalse(self.table.handle_post({'action': 'delete', 'id': 'r1'})['success'])

    def test_sync(self):
        response = self.table.handle_post({'action': 'sync', 'records': [RECORD.to_dict()]})
        self.assertEqual(response, {'success': True, 'result': {'synced': 1}})
        response = self.table.handle_post({'action': 'sync', 'records': []})
        self.assertEqual(response, {'success': True, 'result': {'synced': 0}})
        self.assertEqual(self.table.fetch_all(), [])

    def test_missing_arguments(self):
        for body in (
                {'action': 'add'},
                {'action': 'update', 'record': {'date': '2024-01-01'}},
                {'action': 'delete'},
                {'action': 'sync'},
        ):
            with self.subTest(body=body):
                response = self.table.handle_post(body)
                self.assertFalse(response['success'])
                self.assertTrue(response['error'])

    def test_unknown_action(self):
        response = self.table.handle_post({'action': 'truncate'})
        self.assertEqual(response['success'], False)
        self.assertIn('truncate', response['error'])

    def test_non_object_body(self):
        self.assertFalse(self.table.handle_post(['add'])['success'])

    def test_invalid_record(self):
        record = dict(RECORD.to_dict(), amount='lots')
        self.assertFalse(self.table.handle_post({'action': 'add', 'record': record})['success'])
        self.assertEqual(self.table.fetch_all(), [])


if __name__ == '__main__':
    unittest.main()
