"""
Core package for ExpenseRecorder providing the local stores and remote mirroring.

This package includes:

- :mod:`ExpenseRecorder.core.records` – Expense records, input validation and the record store.
- :mod:`ExpenseRecorder.core.categories` – The category store.
- :mod:`ExpenseRecorder.core.filters` – Filter state and its persistence.
- :mod:`ExpenseRecorder.core.remote` – Remote store interface and sync configuration.
- :mod:`ExpenseRecorder.core.service` – HTTP endpoint client and asynchronous workers.
- :mod:`ExpenseRecorder.core.tabular` – In-process record table implementing the endpoint contract.
- :mod:`ExpenseRecorder.core.sheets` – Google Sheets backing for the remote table.
- :mod:`ExpenseRecorder.core.sync` – The remote bridge.
- :mod:`ExpenseRecorder.core.ledger` – Facade combining local stores and remote mirroring.
"""
