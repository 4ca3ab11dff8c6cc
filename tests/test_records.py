"""
Tests for ExpenseRecorder.core.records: input validation, id generation and the record store.

Run with:
    python -m unittest tests.test_records
"""
import json
import unittest
from unittest import mock

from ExpenseRecorder.core import records
from ExpenseRecorder.core.filters import FilterState
from ExpenseRecorder.core.records import ExpenseRecord, RecordStore
from ExpenseRecorder.settings import lib
from ExpenseRecorder.status import status
from tests.base import BaseTestCase, expense


class TestParseAmount(unittest.TestCase):

    def test_int_passes_through(self):
        self.assertEqual(records.parse_amount(1200), 1200)

    def test_numeric_strings_are_truncated(self):
        self.assertEqual(records.parse_amount('1200'), 1200)
        self.assertEqual(records.parse_amount(' 1200.9 '), 1200)
        self.assertEqual(records.parse_amount('-50.5'), -50)

    def test_float_is_truncated_toward_zero(self):
        self.assertEqual(records.parse_amount(99.99), 99)
        self.assertEqual(records.parse_amount(-99.99), -99)

    def test_negative_allowed(self):
        self.assertEqual(records.parse_amount(-300), -300)

    def test_invalid_values_raise(self):
        for value in ('abc', '', '   ', True, None, float('nan'), float('inf'), 'inf'):
            with self.subTest(value=value):
                with self.assertRaises(status.ValidationException):
                    records.parse_amount(value)


class TestValidateInput(unittest.TestCase):

    def test_memo_defaults_to_empty(self):
        data = expense(memo=None)
        self.assertEqual(records.validate_input(data)['memo'], '')
        del data['memo']
        self.assertEqual(records.validate_input(data)['memo'], '')

    def test_required_fields(self):
        for key in ('date', 'category', 'paymentMethod', 'amount'):
            with self.subTest(key=key):
                data = expense()
                del data[key]
                with self.assertRaises(status.ValidationException):
                    records.validate_input(data)

    def test_whitespace_only_rejected(self):
        with self.assertRaises(status.ValidationException):
            records.validate_input(expense(category='   '))

    def test_malformed_date_rejected(self):
        for value in ('2024/01/01', '2024-1-1', '2024-02-30', 'yesterday'):
            with self.subTest(value=value):
                with self.assertRaises(status.ValidationException):
                    records.validate_input(expense(date=value))

    def test_validation_exception_is_value_error(self):
        with self.assertRaises(ValueError):
            records.validate_input(expense(amount='lots'))


class TestIdGeneration(unittest.TestCase):

    def test_base36(self):
        self.assertEqual(records.to_base36(0), '0')
        self.assertEqual(records.to_base36(35), 'z')
        self.assertEqual(records.to_base36(36), '10')
        with self.assertRaises(ValueError):
            records.to_base36(-1)

    def test_ids_are_lowercase_base36_and_distinct(self):
        ids = {records.generate_id() for _ in range(500)}
        self.assertEqual(len(ids), 500)
        for record_id in ids:
            self.assertRegex(record_id, r'^[0-9a-z]+$')


class TestExpenseRecord(unittest.TestCase):

    def test_wire_form_uses_payment_method_key(self):
        r = ExpenseRecord('a1', '2024-01-01', '食費', 'card', 1200, 'lunch')
        self.assertEqual(list(r.to_dict().keys()), lib.RECORD_KEYS)
        self.assertEqual(r.to_dict()['paymentMethod'], 'card')
        self.assertEqual(ExpenseRecord.from_dict(r.to_dict()), r)

    def test_from_dict_requires_id(self):
        with self.assertRaises(status.ValidationException):
            ExpenseRecord.from_dict(expense())

    def test_from_row_pads_short_rows(self):
        r = ExpenseRecord.from_row(['a1', '2024-01-01', '交通', 'cash', '500'])
        self.assertEqual(r.amount, 500)
        self.assertEqual(r.memo, '')

    def test_to_row_order(self):
        r = ExpenseRecord('a1', '2024-01-01', '食費', 'card', 1200, 'lunch')
        self.assertEqual(r.to_row(), ['a1', '2024-01-01', '食費', 'card', 1200, 'lunch'])


class TestRecordStore(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.store = RecordStore()

    def test_add_then_lookup(self):
        r = self.store.add(expense(amount='1200.5', memo=None))
        self.assertTrue(r.id)
        self.assertEqual(r.amount, 1200)
        self.assertEqual(r.memo, '')
        self.assertEqual(self.store.get(r.id), r)
        self.assertEqual(len(self.store), 1)

    def test_add_persists_to_disk(self):
        r = self.store.add(expense())
        with open(lib.settings.ledger_path, 'r', encoding='utf-8') as f:
            on_disk = json.load(f)
        self.assertEqual(on_disk['records'], [r.to_dict()])

        reloaded = lib.SettingsAPI(config_dir=self.config_dir)
        self.assertEqual(RecordStore(settings=reloaded).get(r.id), r)

    def test_add_invalid_leaves_store_unchanged(self):
        with self.assertRaises(status.ValidationException):
            self.store.add(expense(amount='abc'))
        self.assertEqual(self.store.list(), [])

    def test_ids_unique(self):
        ids = {self.store.add(expense()).id for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_id_regenerated_on_collision(self):
        first = self.store.add(expense())
        with mock.patch.object(records, 'generate_id', side_effect=[first.id, 'fresh']):
            second = self.store.add(expense())
        self.assertEqual(second.id, 'fresh')

    def test_update_preserves_id(self):
        r = self.store.add(expense())
        updated = self.store.update(r.id, expense(date='2024-02-02', category='交通', amount=50, memo='bus'))
        self.assertEqual(updated.id, r.id)
        self.assertEqual(self.store.get(r.id).category, '交通')
        self.assertEqual(self.store.get(r.id).amount, 50)
        self.assertEqual(len(self.store), 1)

    def test_update_unknown_raises_and_leaves_store(self):
        r = self.store.add(expense())
        with self.assertRaises(status.RecordNotFoundException):
            self.store.update('missing', expense(amount=1))
        self.assertEqual(self.store.list(), [r])

    def test_delete(self):
        a = self.store.add(expense())
        b = self.store.add(expense())
        removed = self.store.delete(a.id)
        self.assertEqual(removed, a)
        self.assertEqual(self.store.list(), [b])
        with self.assertRaises(status.RecordNotFoundException):
            self.store.get(a.id)

    def test_delete_unknown_raises_key_error(self):
        with self.assertRaises(KeyError):
            self.store.delete('missing')

    def test_replace_all_is_idempotent(self):
        self.store.add(expense())
        incoming = [
            ExpenseRecord('r1', '2024-01-01', '食費', 'cash', 100),
            {'id': 'r2', 'date': '2024-01-02', 'category': '交通', 'paymentMethod': 'card', 'amount': 200,
             'memo': ''},
        ]
        self.store.replace_all(incoming)
        first = self.store.list()
        self.store.replace_all(incoming)
        self.assertEqual(self.store.list(), first)
        self.assertEqual([r.id for r in first], ['r1', 'r2'])

    def test_replace_all_empty_clears(self):
        self.store.add(expense())
        self.store.replace_all([])
        self.assertEqual(self.store.list(), [])

    def test_replace_all_duplicate_ids_rejected(self):
        r = self.store.add(expense())
        dup = ExpenseRecord('same', '2024-01-01', '食費', 'cash', 1)
        with self.assertRaises(ValueError):
            self.store.replace_all([dup, dup])
        self.assertEqual(self.store.list(), [r])

    def test_list_filtered_example(self):
        self.store.replace_all([
            ExpenseRecord('a', '2024-01-01', '食費', 'cash', 100),
            ExpenseRecord('b', '2024-01-03', '交通', 'card', 200),
            ExpenseRecord('c', '2024-01-05', '食費', 'card', 300),
        ])
        state = FilterState(date_from='2024-01-02', date_to='2024-01-05', category='食費')
        self.assertEqual([r.id for r in self.store.list_filtered(state)], ['c'])

        bounds = FilterState(date_from='2024-01-01', date_to='2024-01-03')
        self.assertEqual([r.id for r in self.store.list_filtered(bounds)], ['b', 'a'])

    def test_list_filtered_date_range(self):
        self.store.replace_all([
            ExpenseRecord(f'r{day}', f'2024-01-0{day}', '食費', 'cash', 100 * day)
            for day in range(1, 6)
        ])
        state = FilterState(date_from='2024-01-02', date_to='2024-01-04')
        self.assertEqual(
            [r.date for r in self.store.list_filtered(state)],
            ['2024-01-04', '2024-01-03', '2024-01-02'],
        )

    def test_list_filtered_sort_order(self):
        self.store.replace_all([
            ExpenseRecord('a', '2024-01-01', '食費', 'cash', 1),
            ExpenseRecord('c', '2024-01-02', '食費', 'cash', 1),
            ExpenseRecord('b', '2024-01-02', '食費', 'cash', 1),
        ])
        self.assertEqual([r.id for r in self.store.list_filtered(FilterState())], ['c', 'b', 'a'])

    def test_is_category_used(self):
        self.store.add(expense(category='交通'))
        self.assertTrue(self.store.is_category_used('交通'))
        self.assertFalse(self.store.is_category_used('食費'))

    def test_storage_failure_rolls_back(self):
        r = self.store.add(expense())
        with mock.patch.object(lib.os, 'replace', side_effect=OSError('disk full')):
            with self.assertRaises(status.StorageFailureException):
                self.store.add(expense())
        self.assertEqual(self.store.list(), [r])

    def test_signals(self):
        from ExpenseRecorder.signals import signals
        added, removed = [], []

        def on_added(data):
            added.append(data)

        def on_removed(record_id):
            removed.append(record_id)

        signals.recordAdded.connect(on_added)
        signals.recordRemoved.connect(on_removed)
        try:
            r = self.store.add(expense())
            self.store.delete(r.id)
        finally:
            signals.recordAdded.disconnect(on_added)
            signals.recordRemoved.disconnect(on_removed)
        self.assertEqual(added, [r.to_dict()])
        self.assertEqual(removed, [r.id])


if __name__ == '__main__':
    unittest.main()
