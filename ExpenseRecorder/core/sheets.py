"""Google Sheets backing for the remote record table.

The worksheet holds the header row in row 1 and one record per row below it,
columns ordered as :data:`ExpenseRecorder.core.remote.REMOTE_HEADERS`.
"""
import datetime
import functools
import logging
import pathlib
import socket
import ssl
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import google.auth.exceptions
import httplib2
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from . import remote
from .records import ExpenseRecord
from ..status import status

DEFAULT_SCOPES: List[str] = ['https://www.googleapis.com/auth/spreadsheets']

DATE_FORMAT = '%Y-%m-%d'


def idx_to_col(idx: int) -> str:
    """Convert zero-based column index to spreadsheet letter(s).

    Args:
        idx: The zero-based column index.

    Returns:
        The spreadsheet column letter(s) (e.g., A, B, AA).
    """
    letters = ''
    while idx >= 0:
        letters = chr((idx % 26) + ord('A')) + letters
        idx = idx // 26 - 1
    return letters


LAST_COL: str = idx_to_col(len(remote.REMOTE_HEADERS) - 1)


def google_serial_date_to_iso(serial: float) -> str:
    """Converts a Google Sheets date serial to an ISO 'YYYY-MM-DD' string.

    Raises:
        ValueError: If the serial number is out of a plausible range.
    """
    if serial < -20000 or serial > 2958465:
        logging.warning(f'Google date serial "{serial}" is out of plausible range.')
        raise ValueError(f'Serial date "{serial}" is out of supported range.')

    base_date = datetime.datetime(1899, 12, 30)
    return (base_date + datetime.timedelta(days=int(serial))).strftime(DATE_FORMAT)


def load_credentials(path: Union[str, pathlib.Path],
                     scopes: Sequence[str] = DEFAULT_SCOPES) -> service_account.Credentials:
    """Load service-account credentials from a JSON key file.

    Raises:
        status.RemoteUnavailableException: If the file is missing or not a valid key.
    """
    try:
        return service_account.Credentials.from_service_account_file(str(path), scopes=list(scopes))
    except (OSError, ValueError) as ex:
        raise status.RemoteUnavailableException(f'Could not load service account credentials: {ex}') from ex


def get_service(credentials: Any) -> Any:
    """Build a Sheets v4 API resource for the given credentials."""
    try:
        service = build('sheets', 'v4', credentials=credentials, cache_discovery=False)
    except (HttpError, OSError) as ex:
        raise status.RemoteUnavailableException(f'Could not build the Sheets service: {ex}') from ex
    logging.debug('Google Sheets service client created successfully.')
    return service


def _translate_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Raise RemoteUnavailableException for API, transport and credential errors."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HttpError as ex:
            stat: Optional[int] = ex.resp.status if ex.resp else None
            raise status.RemoteUnavailableException(f'Sheets API error (HTTP {stat}): {ex}') from ex
        except socket.timeout as ex:
            raise status.RemoteUnavailableException(f'Timeout error: {ex}') from ex
        except ssl.SSLError as ex:
            raise status.RemoteUnavailableException(f'SSL error: {ex}') from ex
        except OSError as ex:
            raise status.RemoteUnavailableException(f'Connection error: {ex}') from ex
        except httplib2.HttpLib2Error as ex:
            raise status.RemoteUnavailableException(f'Transport error: {ex}') from ex
        except google.auth.exceptions.GoogleAuthError as ex:
            raise status.RemoteUnavailableException(f'Credential error: {ex}') from ex

    return wrapper


class SheetsRemoteStore(remote.RemoteStore):
    """Remote record table on a Google Sheets worksheet."""

    def __init__(self, service: Any, spreadsheet_id: str, worksheet: str) -> None:
        if not spreadsheet_id:
            raise ValueError('A spreadsheet id is required.')
        if not worksheet:
            raise ValueError('A worksheet name is required.')
        self.service = service
        self.spreadsheet_id: str = spreadsheet_id
        self.worksheet: str = worksheet

    @classmethod
    def factory(cls, credentials: Any, worksheet: str) -> Callable[[str], 'SheetsRemoteStore']:
        """Return a store factory for :class:`ExpenseRecorder.core.sync.RemoteBridge`.

        The bridge's endpoint is used as the spreadsheet id.
        """
        def _factory(spreadsheet_id: str) -> 'SheetsRemoteStore':
            return cls(get_service(credentials), spreadsheet_id, worksheet)

        return _factory

    def _values(self) -> Any:
        return self.service.spreadsheets().values()

    def _range(self, a1: str) -> str:
        return f'{self.worksheet}!{a1}'

    @staticmethod
    def _normalize_row(row: List[Any]) -> List[Any]:
        row = list(row)
        if len(row) > 1 and isinstance(row[1], (int, float)) and not isinstance(row[1], bool):
            row[1] = google_serial_date_to_iso(row[1])
        return row

    def _data_rows(self) -> List[List[Any]]:
        result: Dict[str, Any] = self._values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f'A2:{LAST_COL}'),
            valueRenderOption='UNFORMATTED_VALUE',
        ).execute()
        return result.get('values', [])

    def _row_number(self, record_id: str) -> int:
        """Return the 1-based sheet row holding record_id."""
        for offset, row in enumerate(self._data_rows()):
            if row and str(row[0]) == str(record_id):
                return offset + 2
        raise status.RemoteUnavailableException(
            f'Record "{record_id}" not found in worksheet "{self.worksheet}".')

    def _sheet_id(self) -> int:
        result: Dict[str, Any] = self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields='sheets(properties(sheetId,title))',
        ).execute()
        sheet = next(
            (s for s in result.get('sheets', [])
             if s.get('properties', {}).get('title', '') == self.worksheet), None)
        if not sheet:
            raise status.RemoteUnavailableException(
                f'Worksheet "{self.worksheet}" not found in spreadsheet "{self.spreadsheet_id}".')
        return sheet['properties']['sheetId']

    @_translate_errors
    def fetch_all(self) -> List[ExpenseRecord]:
        rows = [r for r in self._data_rows() if r and r[0] != '']
        logging.debug(f'Fetched {len(rows)} row(s) from worksheet "{self.worksheet}".')
        try:
            return [ExpenseRecord.from_row(self._normalize_row(r)) for r in rows]
        except (status.ValidationException, ValueError) as ex:
            raise status.RemoteUnavailableException(f'Worksheet holds an invalid row: {ex}') from ex

    @_translate_errors
    def add(self, record: ExpenseRecord) -> None:
        self._values().append(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f'A1:{LAST_COL}1'),
            valueInputOption='RAW',
            insertDataOption='INSERT_ROWS',
            body={'values': [record.to_row()]},
        ).execute()

    @_translate_errors
    def update(self, record: ExpenseRecord) -> None:
        row_number = self._row_number(record.id)
        self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f'A{row_number}:{LAST_COL}{row_number}'),
            valueInputOption='RAW',
            body={'values': [record.to_row()]},
        ).execute()

    @_translate_errors
    def delete(self, record_id: str) -> None:
        row_number = self._row_number(record_id)
        request = {
            'deleteDimension': {
                'range': {
                    'sheetId': self._sheet_id(),
                    'dimension': 'ROWS',
                    'startIndex': row_number - 1,
                    'endIndex': row_number,
                }
            }
        }
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'requests': [request]},
        ).execute()

    @_translate_errors
    def sync_all(self, records: List[ExpenseRecord]) -> int:
        self._values().clear(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f'A:{LAST_COL}'),
            body={},
        ).execute()
        values = [list(remote.REMOTE_HEADERS)] + [r.to_row() for r in records]
        self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=self._range('A1'),
            valueInputOption='RAW',
            body={'values': values},
        ).execute()
        logging.debug(f'Wrote {len(records)} row(s) to worksheet "{self.worksheet}".')
        return len(records)
