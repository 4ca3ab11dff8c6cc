"""Settings package: persisted local state.

- :mod:`ExpenseRecorder.settings.lib` – ledger.json schema, validation, atomic writes and the settings API.
"""
