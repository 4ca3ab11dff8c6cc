"""
ExpenseRecorder data package: aggregation.

This package provides:

- :mod:`ExpenseRecorder.data.data` – pandas-based totals and grouped summaries (:func:`ExpenseRecorder.data.data.total`, :func:`ExpenseRecorder.data.data.summary_by_category`, :func:`ExpenseRecorder.data.data.summary_by_payment_method`) over expense records.
"""
