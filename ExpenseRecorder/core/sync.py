"""Remote bridge: best-effort mirroring of local records to a remote store.

Every operation is an independent round trip with no retry and no queue.
Failures are logged as warnings and reported as ``False`` or ``None``; they
never raise and never change the bridge configuration. When the bridge is
inactive (sync disabled or no endpoint) no store is built and nothing is
sent.
"""
import logging
import threading
from typing import Any, Callable, List, Optional

from PySide6 import QtCore

from . import remote
from .records import ExpenseRecord
from .service import HttpRemoteStore
from ..status import status

StoreFactory = Callable[[str], remote.RemoteStore]


class RemoteBridge(QtCore.QObject):
    """Mediates between the local stores and a :class:`remote.RemoteStore`."""

    def __init__(self, config: Optional[remote.SyncConfig] = None,
                 store_factory: StoreFactory = HttpRemoteStore,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._lock = threading.Lock()
        self._config: remote.SyncConfig = config or remote.SyncConfig()
        self._store_factory: StoreFactory = store_factory
        self._store: Optional[remote.RemoteStore] = None

    @property
    def config(self) -> remote.SyncConfig:
        with self._lock:
            return self._config

    @property
    def is_active(self) -> bool:
        return self.config.active

    def configure(self, config: remote.SyncConfig) -> None:
        """Replace the configuration and drop the cached store."""
        with self._lock:
            self._config = config
            self._store = None
        logging.debug(f'Remote bridge configured: endpoint="{config.endpoint}", enabled={config.enabled}')

    def _get_store(self) -> Optional[remote.RemoteStore]:
        with self._lock:
            if not self._config.active:
                return None
            if self._store is None:
                self._store = self._store_factory(self._config.endpoint)
            return self._store

    def _call(self, action: str, func: Callable[[remote.RemoteStore], Any]) -> tuple[bool, Any]:
        """Run func against the store, returning ``(success, result)``."""
        try:
            store = self._get_store()
        except Exception as ex:
            logging.warning(f'Remote "{action}" failed: could not create store: {ex}')
            self._finished(action, False)
            return False, None

        if store is None:
            logging.debug(f'Remote "{action}" skipped, sync is not active.')
            return False, None

        try:
            result = func(store)
        except status.RemoteUnavailableException as ex:
            logging.warning(f'Remote "{action}" failed: {ex}')
            self._finished(action, False)
            return False, None
        except Exception as ex:
            # Stores that leak transport or parse errors are still only unavailable
            logging.warning(f'Remote "{action}" failed with {type(ex).__name__}: {ex}')
            self._finished(action, False)
            return False, None

        logging.debug(f'Remote "{action}" succeeded.')
        self._finished(action, True)
        return True, result

    @staticmethod
    def _finished(action: str, success: bool) -> None:
        from ..signals import signals
        signals.remoteOperationFinished.emit(action, success)

    def fetch_all(self) -> Optional[List[ExpenseRecord]]:
        """Return the remote records, or None if they could not be retrieved."""
        ok, result = self._call(remote.ACTION_FETCH, lambda s: s.fetch_all())
        return result if ok else None

    def push_add(self, record: ExpenseRecord) -> bool:
        ok, _ = self._call(remote.ACTION_ADD, lambda s: s.add(record))
        return ok

    def push_update(self, record: ExpenseRecord) -> bool:
        ok, _ = self._call(remote.ACTION_UPDATE, lambda s: s.update(record))
        return ok

    def push_delete(self, record_id: str) -> bool:
        ok, _ = self._call(remote.ACTION_DELETE, lambda s: s.delete(record_id))
        return ok

    def push_sync_all(self, records: List[ExpenseRecord]) -> Optional[int]:
        """Replace the remote table with records. Returns the synced count or None."""
        records = list(records)
        ok, result = self._call(remote.ACTION_SYNC, lambda s: s.sync_all(records))
        return result if ok else None
