"""Aggregation API for expense records.

Builds pandas frames from :class:`ExpenseRecorder.core.records.ExpenseRecord`
sequences and computes totals and grouped summaries. Nothing is cached:
every call recomputes from the records it is given.
"""
import logging
from typing import Dict, Iterable

import pandas as pd

from ..core.records import ExpenseRecord

FRAME_COLUMNS = ['id', 'date', 'category', 'payment_method', 'amount', 'memo']


def to_frame(records: Iterable[ExpenseRecord]) -> pd.DataFrame:
    """Return the records as a DataFrame with one row per record.

    Args:
        records: Expense records, in any order. Row order follows the input.

    Returns:
        pd.DataFrame: Frame with FRAME_COLUMNS. ``amount`` is int64.
    """
    rows = [
        {
            'id': r.id,
            'date': r.date,
            'category': r.category,
            'payment_method': r.payment_method,
            'amount': r.amount,
            'memo': r.memo,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df['amount'] = df['amount'].astype('int64')
    return df


def total(records: Iterable[ExpenseRecord]) -> int:
    """Return the sum of all amounts, 0 for no records."""
    df = to_frame(records)
    if df.empty:
        return 0
    return int(df['amount'].sum())


def _summarize(records: Iterable[ExpenseRecord], column: str) -> Dict[str, int]:
    """Sum amounts per key of column, ordered by sum descending.

    Groups keep encounter order and the stable sort keeps it for equal sums.
    """
    df = to_frame(records)
    if df.empty:
        return {}

    sums = df.groupby(column, sort=False)['amount'].sum()
    sums = sums.sort_values(ascending=False, kind='stable')
    logging.debug(f'Summarized {len(df)} record(s) into {len(sums)} "{column}" group(s).')
    return {str(k): int(v) for k, v in sums.items()}


def summary_by_category(records: Iterable[ExpenseRecord]) -> Dict[str, int]:
    """Return ``{category: sum}`` ordered by sum descending, ties in encounter order."""
    return _summarize(records, 'category')


def summary_by_payment_method(records: Iterable[ExpenseRecord]) -> Dict[str, int]:
    """Return ``{payment_method: sum}`` ordered by sum descending, ties in encounter order."""
    return _summarize(records, 'payment_method')
