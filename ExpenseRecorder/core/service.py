"""HTTP endpoint client and asynchronous workers for remote operations.

Remote calls never block the caller's thread unless asked to: they run on
:class:`AsyncWorker` threads started by :func:`start_asynchronous` (blocking
until done) or :func:`start_background` (fire and forget).
"""

import datetime
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests
from PySide6 import QtCore

from . import remote
from .records import ExpenseRecord
from ..status import status

TOTAL_TIMEOUT: int = 180
REQUEST_TIMEOUT: int = 30

_workers: List['AsyncWorker'] = []
_workers_lock = threading.Lock()


class HttpRemoteStore(remote.RemoteStore):
    """Client for the spreadsheet-backed HTTP endpoint.

    ``GET <endpoint>`` returns ``{success, records?, error?}``.
    ``POST <endpoint>`` takes ``{action, record?, id?, records?}`` and returns ``{success, result?, error?}``.
    """

    def __init__(self, endpoint: str, session: Optional[requests.Session] = None,
                 timeout: int = REQUEST_TIMEOUT) -> None:
        if not endpoint:
            raise ValueError('An endpoint is required.')
        self.endpoint: str = endpoint
        self.session: requests.Session = session or requests.Session()
        self.timeout: int = timeout

    def _parse(self, response: requests.Response) -> Dict[str, Any]:
        try:
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as ex:
            raise status.RemoteUnavailableException(f'Endpoint returned an error: {ex}') from ex
        except ValueError as ex:
            raise status.RemoteUnavailableException(f'Endpoint returned invalid JSON: {ex}') from ex

        if not isinstance(payload, dict):
            raise status.RemoteUnavailableException(f'Unexpected response from endpoint: {payload!r}')
        if not payload.get('success'):
            raise status.RemoteUnavailableException(payload.get('error') or 'Endpoint reported a failure.')
        return payload

    def _get(self) -> Dict[str, Any]:
        logging.debug(f'GET {self.endpoint}')
        try:
            response = self.session.get(self.endpoint, timeout=self.timeout)
        except requests.RequestException as ex:
            raise status.RemoteUnavailableException(f'Request failed: {ex}') from ex
        return self._parse(response)

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        logging.debug(f'POST {self.endpoint} action={body.get("action")}')
        try:
            response = self.session.post(self.endpoint, json=body, timeout=self.timeout)
        except requests.RequestException as ex:
            raise status.RemoteUnavailableException(f'Request failed: {ex}') from ex
        return self._parse(response)

    @staticmethod
    def _normalize_record(data: Any) -> Any:
        # Date cells serialised by the endpoint arrive as ISO datetimes
        if isinstance(data, dict) and isinstance(data.get('date'), str) and 'T' in data['date']:
            try:
                date = datetime.datetime.fromisoformat(data['date']).date().isoformat()
            except ValueError:
                return data
            return {**data, 'date': date}
        return data

    def fetch_all(self) -> List[ExpenseRecord]:
        payload = self._get()
        records = payload.get('records') or []
        if not isinstance(records, list):
            raise status.RemoteUnavailableException('Endpoint returned malformed records.')
        try:
            return [ExpenseRecord.from_dict(self._normalize_record(r)) for r in records]
        except (ValueError, TypeError) as ex:
            raise status.RemoteUnavailableException(f'Endpoint returned an invalid record: {ex}') from ex

    def add(self, record: ExpenseRecord) -> None:
        self._post({'action': remote.ACTION_ADD, 'record': record.to_dict()})

    def update(self, record: ExpenseRecord) -> None:
        self._post({'action': remote.ACTION_UPDATE, 'record': record.to_dict()})

    def delete(self, record_id: str) -> None:
        self._post({'action': remote.ACTION_DELETE, 'id': record_id})

    def sync_all(self, records: List[ExpenseRecord]) -> int:
        payload = self._post({'action': remote.ACTION_SYNC, 'records': [r.to_dict() for r in records]})
        result = payload.get('result')
        if result is None:
            return len(records)
        if not isinstance(result, dict):
            raise status.RemoteUnavailableException(f'Endpoint returned a malformed sync result: {result!r}')
        try:
            return int(result.get('synced', len(records)))
        except (TypeError, ValueError) as ex:
            raise status.RemoteUnavailableException(f'Endpoint returned a malformed sync count: {ex}') from ex


class AsyncWorker(QtCore.QThread):
    """
    Worker thread running a single blocking function.

    Remote calls are best-effort, so there is no retry.

    Signals:
        resultReady (object): Emitted with the function's result on success.
        errorOccurred (object): Emitted with the exception on failure.
    """
    resultReady = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object)

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

        self.result: Any = None
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self.result = self.func(*self.args, **self.kwargs)
        except Exception as ex:
            self.error = ex
            self.errorOccurred.emit(ex)
            return
        self.resultReady.emit(self.result)


def _raise_worker_error(err: BaseException) -> None:
    # Propagate known status exceptions directly
    if isinstance(err, status.BaseStatusException):
        raise err
    raise status.UnknownException(str(err)) from err


def start_asynchronous(func: Callable[..., Any], *args: Any, total_timeout: int = TOTAL_TIMEOUT,
                       **kwargs: Any) -> Any:
    """
    Run func on an AsyncWorker and block until it finishes.

    Args:
        func: The blocking function to run.
        *args, **kwargs: Arguments passed to func.
        total_timeout (int): Seconds to wait before the worker is terminated.

    Returns:
        The result of the function on success.

    Raises:
        status.RemoteUnavailableException: If the operation times out.
        status.BaseStatusException: Re-raised from the worker.
        status.UnknownException: For any other worker error.
    """
    worker: AsyncWorker = AsyncWorker(func, *args, **kwargs)
    worker.start()

    if not worker.wait(int(total_timeout * 1000)):
        worker.terminate()
        worker.wait()
        raise status.RemoteUnavailableException(f'Operation timed out after {total_timeout}s.')

    if worker.error is not None:
        _raise_worker_error(worker.error)
    return worker.result


def _prune_workers() -> None:
    with _workers_lock:
        _workers[:] = [w for w in _workers if not w.isFinished()]


def start_background(func: Callable[..., Any], *args: Any, **kwargs: Any) -> AsyncWorker:
    """
    Start func on an AsyncWorker and return immediately.

    A reference to the worker is kept until it finishes so the thread is not garbage collected.

    Returns:
        AsyncWorker: The running worker. Its ``result`` and ``error`` are set once finished.
    """
    _prune_workers()
    worker: AsyncWorker = AsyncWorker(func, *args, **kwargs)
    with _workers_lock:
        _workers.append(worker)
    worker.start()
    return worker


def wait_for_workers(timeout: Optional[float] = None) -> bool:
    """
    Block until all background workers have finished.

    Args:
        timeout: Seconds to wait per worker, or None to wait indefinitely.

    Returns:
        bool: True if every worker finished.
    """
    with _workers_lock:
        workers = list(_workers)

    finished = True
    for worker in workers:
        if timeout is None:
            worker.wait()
        elif not worker.wait(int(timeout * 1000)):
            logging.warning('Background worker did not finish in time.')
            finished = False
    _prune_workers()
    return finished
