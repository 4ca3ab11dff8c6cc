"""Remote store interface and sync configuration.

A remote store mirrors the local records as a table: a header row with
:data:`REMOTE_HEADERS` followed by one row per record. Implementations raise
:class:`ExpenseRecorder.status.status.RemoteUnavailableException` on any
failure.
"""
import abc
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..settings import lib
from .records import ExpenseRecord

REMOTE_HEADERS: List[str] = list(lib.RECORD_KEYS)

ACTION_FETCH = 'fetch'
ACTION_ADD = 'add'
ACTION_UPDATE = 'update'
ACTION_DELETE = 'delete'
ACTION_SYNC = 'sync'


@dataclass(frozen=True)
class SyncConfig:
    """Remote endpoint configuration. Replaced whole, never mutated."""
    endpoint: str = ''
    enabled: bool = False

    @property
    def active(self) -> bool:
        return bool(self.enabled and self.endpoint)

    def to_dict(self) -> Dict[str, Any]:
        return {'endpoint': self.endpoint, 'enabled': self.enabled}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'SyncConfig':
        data = data or {}
        return cls(
            endpoint=(data.get('endpoint') or '').strip(),
            enabled=bool(data.get('enabled', False)),
        )


class RemoteStore(abc.ABC):
    """Repository interface over a remote record table."""

    @abc.abstractmethod
    def fetch_all(self) -> List[ExpenseRecord]:
        """Return every remote record in table order."""

    @abc.abstractmethod
    def add(self, record: ExpenseRecord) -> None:
        """Append a record row."""

    @abc.abstractmethod
    def update(self, record: ExpenseRecord) -> None:
        """Overwrite the row whose id matches record.id.

        Raises:
            status.RemoteUnavailableException: Also raised when the id is unknown remotely.
        """

    @abc.abstractmethod
    def delete(self, record_id: str) -> None:
        """Remove the row with record_id.

        Raises:
            status.RemoteUnavailableException: Also raised when the id is unknown remotely.
        """

    @abc.abstractmethod
    def sync_all(self, records: List[ExpenseRecord]) -> int:
        """Replace the whole table with records and return the number written."""
