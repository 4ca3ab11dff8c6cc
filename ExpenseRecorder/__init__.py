"""
ExpenseRecorder: local-first expense recorder with optional spreadsheet mirroring.

This package provides:

- :mod:`ExpenseRecorder.core` – Record, category and filter stores, the remote bridge and remote store backings.
- :mod:`ExpenseRecorder.data` – pandas-based totals and grouped summaries.
- :mod:`ExpenseRecorder.settings` – The persisted ledger, schema validation and atomic writes.
- :mod:`ExpenseRecorder.log` – Root logger setup with an in-memory log tank.

Use :class:`ExpenseRecorder.core.ledger.LedgerAPI` as the entry point.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('ExpenseRecorder requires Python 3.11 or higher.')

__version__ = '0.1.0'
__author__ = 'Gergely Wootsch'
__license__ = 'GPL-3.0'
__copyright__ = 'Copyright (C) 2025 Gergely Wootsch'
__description__ = 'ExpenseRecorder: local-first expense recorder with optional Google Sheets mirroring.'

from .log import log

log.setup_logging()
