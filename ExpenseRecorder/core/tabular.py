"""In-process record table implementing the remote endpoint contract.

:class:`TabularRemoteStore` keeps the remote table (a header row plus one row
per record) in memory and optionally persists it to a JSON file. Its
:meth:`~TabularRemoteStore.handle_get` and :meth:`~TabularRemoteStore.handle_post`
produce the same responses as the spreadsheet endpoint, so it can serve or
stand in for that endpoint.
"""
import json
import logging
import pathlib
import threading
from typing import Any, Dict, List, Optional, Union

from . import remote
from .records import ExpenseRecord
from ..settings import lib
from ..status import status


class TabularRemoteStore(remote.RemoteStore):

    def __init__(self, path: Optional[Union[str, pathlib.Path]] = None) -> None:
        self.path: Optional[pathlib.Path] = pathlib.Path(path) if path else None
        self._lock = threading.RLock()
        self._rows: List[List[Any]] = [list(remote.REMOTE_HEADERS)]
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with self.path.open('r', encoding='utf-8') as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            raise status.RemoteUnavailableException(f'Could not read table "{self.path}": {ex}') from ex
        if not isinstance(rows, list) or not rows or rows[0] != remote.REMOTE_HEADERS:
            raise status.RemoteUnavailableException(f'Table "{self.path}" has an unexpected header row.')
        self._rows = rows
        logging.debug(f'Loaded {len(rows) - 1} row(s) from "{self.path}".')

    def _save(self) -> None:
        if not self.path:
            return
        try:
            lib.write_json(self.path, self._rows)
        except status.StorageFailureException as ex:
            raise status.RemoteUnavailableException(str(ex)) from ex

    def _row_index(self, record_id: str) -> int:
        for idx, row in enumerate(self._rows[1:], start=1):
            if row and str(row[0]) == str(record_id):
                return idx
        raise status.RemoteUnavailableException(f'Record "{record_id}" not found in remote table.')

    @property
    def rows(self) -> List[List[Any]]:
        """A copy of the table, header row included."""
        with self._lock:
            return [list(r) for r in self._rows]

    def fetch_all(self) -> List[ExpenseRecord]:
        with self._lock:
            data_rows = [list(r) for r in self._rows[1:] if r and r[0] != '']
        try:
            return [ExpenseRecord.from_row(r) for r in data_rows]
        except status.ValidationException as ex:
            raise status.RemoteUnavailableException(f'Remote table holds an invalid row: {ex}') from ex

    def add(self, record: ExpenseRecord) -> None:
        with self._lock:
            self._rows.append(record.to_row())
            self._save()

    def update(self, record: ExpenseRecord) -> None:
        with self._lock:
            idx = self._row_index(record.id)
            self._rows[idx] = record.to_row()
            self._save()

    def delete(self, record_id: str) -> None:
        with self._lock:
            idx = self._row_index(record_id)
            del self._rows[idx]
            self._save()

    def sync_all(self, records: List[ExpenseRecord]) -> int:
        with self._lock:
            self._rows = [list(remote.REMOTE_HEADERS)] + [r.to_row() for r in records]
            self._save()
        return len(records)

    def handle_get(self) -> Dict[str, Any]:
        """Answer a ``GET`` request: ``{success, records}`` or ``{success: False, error}``."""
        try:
            records = self.fetch_all()
        except status.RemoteUnavailableException as ex:
            return {'success': False, 'error': str(ex)}
        return {'success': True, 'records': [r.to_dict() for r in records]}

    def handle_post(self, body: Any) -> Dict[str, Any]:
        """Answer a ``POST`` request.

        Args:
            body: Decoded request body ``{action, record?, id?, records?}``.

        Returns:
            dict: ``{success: True, result?}`` or ``{success: False, error}``.
        """
        if not isinstance(body, dict):
            return {'success': False, 'error': 'Request body must be a JSON object.'}

        action = body.get('action')
        try:
            if action == remote.ACTION_ADD:
                if not body.get('record'):
                    return {'success': False, 'error': 'Missing "record".'}
                self.add(ExpenseRecord.from_dict(body['record']))
                return {'success': True}

            if action == remote.ACTION_UPDATE:
                record = body.get('record')
                if not isinstance(record, dict) or not record.get('id'):
                    return {'success': False, 'error': 'Missing "record" or record "id".'}
                self.update(ExpenseRecord.from_dict(record))
                return {'success': True}

            if action == remote.ACTION_DELETE:
                if not body.get('id'):
                    return {'success': False, 'error': 'Missing "id".'}
                self.delete(str(body['id']))
                return {'success': True}

            if action == remote.ACTION_SYNC:
                records = body.get('records')
                if not isinstance(records, list):
                    return {'success': False, 'error': 'Missing "records".'}
                synced = self.sync_all([ExpenseRecord.from_dict(r) for r in records])
                return {'success': True, 'result': {'synced': synced}}
        except (status.RemoteUnavailableException, status.ValidationException) as ex:
            return {'success': False, 'error': str(ex)}

        return {'success': False, 'error': f'Unknown action "{action}".'}
