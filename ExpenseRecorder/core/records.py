"""Local record store for expense records.

Records live in the ``records`` section of the ledger and are addressed by a
generated string id. Every mutation rewrites the whole section through the
settings API, so a mutation is either fully persisted or not applied at all.
"""
import logging
import math
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, TYPE_CHECKING, Union

from ..settings import lib
from ..status import status

if TYPE_CHECKING:
    from .filters import FilterState

REQUIRED_INPUT_KEYS: List[str] = ['date', 'category', 'paymentMethod', 'amount']

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer as a lowercase base-36 string."""
    if value < 0:
        raise ValueError('Only non-negative integers can be encoded.')
    if value == 0:
        return '0'
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return ''.join(reversed(digits))


def generate_id() -> str:
    """Return a new record id: base-36 milliseconds since epoch plus random base-36 entropy.

    Ids generated later sort after earlier ones as long as the timestamp prefix keeps its length.
    Uniqueness is all that is required, not unpredictability.
    """
    timestamp = to_base36(int(time.time() * 1000))
    entropy = to_base36(random.getrandbits(52))
    return f'{timestamp}{entropy}'


def parse_amount(value: Any) -> int:
    """Parse an amount input to an integer, truncating fractional parts toward zero.

    Args:
        value: An int, float or numeric string such as ``'1200'`` or ``'1200.5'``.

    Returns:
        int: The parsed amount.

    Raises:
        status.ValidationException: If the value is empty, boolean, non-numeric or not finite.
    """
    if isinstance(value, bool) or value is None:
        raise status.ValidationException(f'Amount must be a number, got "{value}".')
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise status.ValidationException(f'Amount must be a finite number, got "{value}".')
        return int(value)

    text = str(value).strip()
    if not text:
        raise status.ValidationException('Amount is required.')
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        raise status.ValidationException(f'Amount must be a number, got "{value}".') from None
    if not math.isfinite(number):
        raise status.ValidationException(f'Amount must be a finite number, got "{value}".')
    return int(number)


def validate_input(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate and normalize expense form input.

    Args:
        data: Mapping with ``date``, ``category``, ``paymentMethod``, ``amount`` and optional ``memo``.

    Returns:
        Dict[str, Any]: The normalized fields (without an id).

    Raises:
        status.ValidationException: If a required field is missing or malformed.
    """
    if not isinstance(data, Mapping):
        raise status.ValidationException(f'Expense data must be a mapping, got {type(data)}.')

    missing = [k for k in REQUIRED_INPUT_KEYS
               if data.get(k) is None or (isinstance(data.get(k), str) and not data.get(k).strip())]
    if missing:
        raise status.ValidationException(f'Missing required fields: {missing}.')

    date = data['date']
    if not lib.is_valid_date(date):
        raise status.ValidationException(f'Date must be a YYYY-MM-DD date, got "{date}".')

    for key in ('category', 'paymentMethod'):
        if not isinstance(data[key], str):
            raise status.ValidationException(f'"{key}" must be a string, got {type(data[key])}.')

    memo = data.get('memo') or ''
    if not isinstance(memo, str):
        memo = str(memo)

    return {
        'date': date,
        'category': data['category'],
        'paymentMethod': data['paymentMethod'],
        'amount': parse_amount(data['amount']),
        'memo': memo,
    }


@dataclass
class ExpenseRecord:
    """A single expense entry."""
    id: str
    date: str  # YYYY-MM-DD
    category: str
    payment_method: str
    amount: int
    memo: str = field(default='')

    def to_dict(self) -> Dict[str, Any]:
        """Return the wire/persisted representation with camelCase keys."""
        return {
            'id': self.id,
            'date': self.date,
            'category': self.category,
            'paymentMethod': self.payment_method,
            'amount': self.amount,
            'memo': self.memo,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ExpenseRecord':
        """Build a record from its wire/persisted representation.

        Raises:
            status.ValidationException: If the id is missing or any field is invalid.
        """
        record_id = data.get('id') if isinstance(data, Mapping) else None
        if record_id is None or str(record_id) == '':
            raise status.ValidationException('Record id is required.')
        fields = validate_input(data)
        return cls(
            id=str(record_id),
            date=fields['date'],
            category=fields['category'],
            payment_method=fields['paymentMethod'],
            amount=fields['amount'],
            memo=fields['memo'],
        )

    def to_row(self) -> List[Any]:
        """Return the record as a table row in the remote field order."""
        d = self.to_dict()
        return [d[k] for k in lib.RECORD_KEYS]

    @classmethod
    def from_row(cls, row: List[Any]) -> 'ExpenseRecord':
        """Build a record from a remote table row, padding short rows with empty cells."""
        cells = list(row) + [''] * (len(lib.RECORD_KEYS) - len(row))
        data = dict(zip(lib.RECORD_KEYS, cells))
        data['id'] = str(data['id']).strip() if data['id'] is not None else ''
        for key in ('date', 'category', 'paymentMethod'):
            data[key] = '' if data[key] is None else str(data[key])
        return cls.from_dict(data)


RecordLike = Union[ExpenseRecord, Mapping[str, Any]]


def as_record(value: RecordLike) -> ExpenseRecord:
    """Return value as an ExpenseRecord, converting wire dicts."""
    if isinstance(value, ExpenseRecord):
        return value
    return ExpenseRecord.from_dict(value)


def sort_records(records: Iterable[ExpenseRecord]) -> List[ExpenseRecord]:
    """Sort newest first: by date descending, then by id descending."""
    return sorted(records, key=lambda r: (r.date, r.id), reverse=True)


def filter_records(records: Iterable[ExpenseRecord], filter_state: 'FilterState') -> List[ExpenseRecord]:
    """Apply a filter state and return the matching records, newest first."""
    return sort_records(r for r in records if filter_state.matches(r))


class RecordStore:
    """Persisted, ordered collection of expense records keyed by id."""

    section = 'records'

    def __init__(self, settings: Optional[lib.SettingsAPI] = None) -> None:
        self.settings: lib.SettingsAPI = settings or lib.settings

    def _load(self) -> List[ExpenseRecord]:
        return [ExpenseRecord.from_dict(d) for d in self.settings.get_section(self.section)]

    def _save(self, records: List[ExpenseRecord]) -> None:
        self.settings.set_section(self.section, [r.to_dict() for r in records])

    def _new_id(self, records: List[ExpenseRecord]) -> str:
        existing = {r.id for r in records}
        record_id = generate_id()
        while record_id in existing:
            record_id = generate_id()
        return record_id

    @staticmethod
    def _find(records: List[ExpenseRecord], record_id: str) -> int:
        for idx, record in enumerate(records):
            if record.id == record_id:
                return idx
        raise status.RecordNotFoundException(f'No record with id "{record_id}".')

    def list(self) -> List[ExpenseRecord]:
        """Return all records in stored order."""
        return self._load()

    def get(self, record_id: str) -> ExpenseRecord:
        """Return the record with the given id.

        Raises:
            status.RecordNotFoundException: If no record has that id.
        """
        records = self._load()
        return records[self._find(records, record_id)]

    def add(self, data: Mapping[str, Any]) -> ExpenseRecord:
        """Validate input, assign a fresh id, append and persist.

        Args:
            data: Expense input with date, category, paymentMethod, amount and optional memo.

        Returns:
            ExpenseRecord: The stored record.

        Raises:
            status.ValidationException: If the input is incomplete or malformed.
            status.StorageFailureException: If the ledger could not be written.
        """
        fields = validate_input(data)
        records = self._load()
        record = ExpenseRecord(
            id=self._new_id(records),
            date=fields['date'],
            category=fields['category'],
            payment_method=fields['paymentMethod'],
            amount=fields['amount'],
            memo=fields['memo'],
        )
        records.append(record)
        self._save(records)
        logging.info(f'Added record "{record.id}" ({record.date}, {record.category}, {record.amount}).')

        from ..signals import signals
        signals.recordAdded.emit(record.to_dict())
        return record

    def update(self, record_id: str, data: Mapping[str, Any]) -> ExpenseRecord:
        """Replace every mutable field of an existing record, keeping its id.

        Raises:
            status.ValidationException: If the input is incomplete or malformed.
            status.RecordNotFoundException: If no record has that id. The store is unchanged.
            status.StorageFailureException: If the ledger could not be written.
        """
        fields = validate_input(data)
        records = self._load()
        idx = self._find(records, record_id)
        record = ExpenseRecord(
            id=records[idx].id,
            date=fields['date'],
            category=fields['category'],
            payment_method=fields['paymentMethod'],
            amount=fields['amount'],
            memo=fields['memo'],
        )
        records[idx] = record
        self._save(records)
        logging.info(f'Updated record "{record.id}".')

        from ..signals import signals
        signals.recordUpdated.emit(record.to_dict())
        return record

    def delete(self, record_id: str) -> ExpenseRecord:
        """Remove the record with the given id and return it.

        Raises:
            status.RecordNotFoundException: If no record has that id.
            status.StorageFailureException: If the ledger could not be written.
        """
        records = self._load()
        record = records.pop(self._find(records, record_id))
        self._save(records)
        logging.info(f'Deleted record "{record_id}".')

        from ..signals import signals
        signals.recordRemoved.emit(record_id)
        return record

    def replace_all(self, records: Iterable[RecordLike]) -> List[ExpenseRecord]:
        """Discard the stored sequence and install the given records verbatim.

        Args:
            records: ExpenseRecord instances or wire dicts. An empty iterable clears the store.

        Returns:
            List[ExpenseRecord]: The installed records.

        Raises:
            status.ValidationException: If a record is malformed. The store is unchanged.
            ValueError: If the records contain duplicate ids. The store is unchanged.
        """
        new_records = [as_record(r) for r in records]
        self._save(new_records)
        logging.info(f'Replaced all records ({len(new_records)} record(s)).')

        from ..signals import signals
        signals.recordsReplaced.emit(len(new_records))
        return new_records

    def list_filtered(self, filter_state: 'FilterState') -> List[ExpenseRecord]:
        """Return the records matching filter_state, sorted by date then id, newest first."""
        return filter_records(self._load(), filter_state)

    def is_category_used(self, name: str) -> bool:
        """Return True if any record references the category name."""
        return any(r.category == name for r in self._load())

    def __len__(self) -> int:
        return len(self.settings.get_section(self.section))

