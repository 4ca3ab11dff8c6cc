"""Test package for ExpenseRecorder.

The ledger location is pointed at a throwaway directory before any
ExpenseRecorder module is imported, so the module-level settings instance
never touches the user's configuration.
"""
import os
import tempfile

os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')
os.environ['EXPENSE_RECORDER_CONFIG_DIR'] = tempfile.mkdtemp(prefix='expenserecorder_tests_')
