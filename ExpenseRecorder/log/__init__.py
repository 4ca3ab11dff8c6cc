"""
Logging subsystem.

Modules:

- :mod:`ExpenseRecorder.log.log` – Root logger setup, in-memory log tank and Qt message bridge.
"""
