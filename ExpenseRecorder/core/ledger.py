"""Ledger facade tying the local stores to the remote bridge.

Local state is authoritative: every mutation commits locally first, then is
mirrored to the remote store on an :class:`~ExpenseRecorder.core.service.AsyncWorker`
when sync is active. A failed mirror never undoes the local change.

Example:

    .. code-block:: python

        from ExpenseRecorder.core import ledger

        api = ledger.LedgerAPI()
        api.save_sync_settings('https://script.google.com/macros/s/.../exec', True)
        mutation = api.add_expense({
            'date': '2024-01-01',
            'category': '食費',
            'paymentMethod': 'cash',
            'amount': 1200,
        })
        mutation.record.id, mutation.remote

"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from . import service
from .categories import CategoryStore, ConfirmCallback
from .filters import FilterState, FilterStore
from .records import ExpenseRecord, RecordStore
from .remote import SyncConfig
from .sync import RemoteBridge, StoreFactory
from ..data import data as aggregation
from ..settings import lib
from ..status import status


@dataclass
class Mutation:
    """Outcome of a local mutation and its remote mirror.

    ``remote`` is None when sync is inactive or the mirror is still running on ``worker``.
    """
    record: ExpenseRecord
    remote: Optional[bool] = None
    worker: Optional[service.AsyncWorker] = None


@dataclass
class Summary:
    total: int
    by_category: Dict[str, int]
    by_payment_method: Dict[str, int]
    records: List[ExpenseRecord] = field(default_factory=list)


class LedgerAPI:
    """High level operations used by the application front end."""

    def __init__(self, settings: Optional[lib.SettingsAPI] = None,
                 store_factory: StoreFactory = service.HttpRemoteStore) -> None:
        self.settings: lib.SettingsAPI = settings or lib.settings
        self.records = RecordStore(settings=self.settings)
        self.category_store = CategoryStore(settings=self.settings, records=self.records)
        self.filter_store = FilterStore(settings=self.settings)
        self.bridge = RemoteBridge(
            SyncConfig.from_dict(self.settings.get_section('sync')),
            store_factory=store_factory,
        )

    def _mirror(self, func, *args: Any, wait: bool = True) -> tuple[Optional[bool], Optional[service.AsyncWorker]]:
        if not self.bridge.is_active:
            return None, None
        if not wait:
            return None, service.start_background(func, *args)
        try:
            return bool(service.start_asynchronous(func, *args)), None
        except status.BaseStatusException as ex:
            logging.warning(f'Remote mirror did not complete: {ex}')
            return False, None

    def _check_category(self, data: Mapping[str, Any], current: Optional[str] = None) -> None:
        category = data.get('category') if isinstance(data, Mapping) else None
        # An edit may keep a category that was removed after the record was made
        if not category or category == current:
            return
        if category not in self.category_store:
            raise status.ValidationException(f'Unknown category "{category}".')

    def add_expense(self, data: Mapping[str, Any], wait: bool = True) -> Mutation:
        """Add a record locally, then mirror it.

        Raises:
            status.ValidationException: If the input is invalid or the category is unknown.
                Nothing is sent remotely.
        """
        self._check_category(data)
        record = self.records.add(data)
        result, worker = self._mirror(self.bridge.push_add, record, wait=wait)
        return Mutation(record, result, worker)

    def update_expense(self, record_id: str, data: Mapping[str, Any], wait: bool = True) -> Mutation:
        self._check_category(data, current=self.records.get(record_id).category)
        record = self.records.update(record_id, data)
        result, worker = self._mirror(self.bridge.push_update, record, wait=wait)
        return Mutation(record, result, worker)

    def delete_expense(self, record_id: str, wait: bool = True) -> Mutation:
        record = self.records.delete(record_id)
        result, worker = self._mirror(self.bridge.push_delete, record_id, wait=wait)
        return Mutation(record, result, worker)

    def get_expense(self, record_id: str) -> ExpenseRecord:
        return self.records.get(record_id)

    def categories(self) -> List[str]:
        return self.category_store.list()

    def add_category(self, name: str) -> bool:
        return self.category_store.add(name)

    def remove_category(self, name: str, confirm: Optional[ConfirmCallback] = None) -> bool:
        return self.category_store.remove(name, confirm=confirm)

    def filters(self) -> FilterState:
        return self.filter_store.get()

    def save_filters(self, state: FilterState) -> FilterState:
        return self.filter_store.save(state)

    def reset_filters(self) -> FilterState:
        return self.filter_store.reset()

    def filtered_records(self, state: Optional[FilterState] = None) -> List[ExpenseRecord]:
        """Return the records matching state, or the persisted filters when state is None."""
        return self.records.list_filtered(state or self.filters())

    def summary(self, state: Optional[FilterState] = None) -> Summary:
        """Return the total and grouped sums of the filtered records."""
        records = self.filtered_records(state)
        return Summary(
            total=aggregation.total(records),
            by_category=aggregation.summary_by_category(records),
            by_payment_method=aggregation.summary_by_payment_method(records),
            records=records,
        )

    def sync_settings(self) -> SyncConfig:
        return self.bridge.config

    def save_sync_settings(self, endpoint: str, enabled: bool) -> SyncConfig:
        """Persist the sync section and reconfigure the bridge.

        Args:
            endpoint: Remote endpoint URL. Surrounding whitespace is stripped.
            enabled: Whether local changes are mirrored.

        Returns:
            SyncConfig: The new configuration.
        """
        config = SyncConfig(endpoint=(endpoint or '').strip(), enabled=bool(enabled))
        self.settings.set_section('sync', config.to_dict())
        self.bridge.configure(config)
        logging.info(f'Sync settings saved: endpoint="{config.endpoint}", enabled={config.enabled}')

        from ..signals import signals
        signals.syncConfigChanged.emit(config.to_dict())
        return config

    def load_from_remote(self) -> bool:
        """Replace the local records with the remote ones.

        Returns:
            bool: True if the remote records were installed, False if sync is inactive or the fetch failed.
        """
        if not self.bridge.is_active:
            return False
        remote_records = self.bridge.fetch_all()
        if remote_records is None:
            return False
        try:
            self.records.replace_all(remote_records)
        except (ValueError, TypeError) as ex:
            logging.warning(f'Remote records were not installed: {ex}')
            return False
        logging.info(f'Loaded {len(remote_records)} record(s) from remote.')
        return True

    def initialize(self) -> bool:
        """Startup hook: pull the remote records when sync is active."""
        return self.load_from_remote()

    def push_to_remote(self) -> Optional[int]:
        """Replace the remote table with the local records. Returns the synced count or None."""
        if not self.bridge.is_active:
            return None
        return self.bridge.push_sync_all(self.records.list())

    def reset_all(self) -> None:
        """Revert records, categories and filters to their defaults. Sync settings are kept."""
        for section in lib.RESETTABLE_SECTIONS:
            self.settings.revert_section(section)
        logging.info('Ledger reset to defaults.')

        from ..signals import signals
        signals.recordsReplaced.emit(0)
        signals.filtersChanged.emit(FilterState().to_dict())
