"""Filter state for the record list.

A :class:`FilterState` narrows the visible records by an inclusive date range,
a category and a payment method. ``'ALL'`` disables the category or payment
method criterion and an empty date bound is unbounded.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..settings import lib
from ..status import status

ALL: str = 'ALL'


@dataclass(frozen=True)
class FilterState:
    date_from: str = ''
    date_to: str = ''
    category: str = ALL
    payment_method: str = ALL

    def matches(self, record) -> bool:
        """Return True if the record satisfies every active criterion.

        Dates compare lexicographically, which matches chronological order for YYYY-MM-DD.
        Both bounds are inclusive.
        """
        if self.date_from and record.date < self.date_from:
            return False
        if self.date_to and record.date > self.date_to:
            return False
        if self.category != ALL and record.category != self.category:
            return False
        if self.payment_method != ALL and record.payment_method != self.payment_method:
            return False
        return True

    @property
    def is_default(self) -> bool:
        return self == FilterState()

    def to_dict(self) -> Dict[str, str]:
        return {
            'from': self.date_from,
            'to': self.date_to,
            'category': self.category,
            'paymentMethod': self.payment_method,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'FilterState':
        """Build a filter state from its persisted form.

        Missing keys and None values fall back to the defaults.

        Raises:
            status.ValidationException: If a date bound is not empty or a valid YYYY-MM-DD date.
        """
        data = data or {}
        state = cls(
            date_from=data.get('from') or '',
            date_to=data.get('to') or '',
            category=data.get('category') or ALL,
            payment_method=data.get('paymentMethod') or ALL,
        )
        for key, value in (('from', state.date_from), ('to', state.date_to)):
            if value and not lib.is_valid_date(value):
                raise status.ValidationException(f'Filter "{key}" must be a YYYY-MM-DD date, got "{value}".')
        return state


class FilterStore:
    """Persists the last used filter state in the ``filters`` ledger section."""

    section = 'filters'

    def __init__(self, settings: Optional[lib.SettingsAPI] = None) -> None:
        self.settings: lib.SettingsAPI = settings or lib.settings

    def get(self) -> FilterState:
        return FilterState.from_dict(self.settings.get_section(self.section))

    def save(self, state: FilterState) -> FilterState:
        """Validate and persist the filter state and notify listeners.

        Raises:
            status.ValidationException: If a date bound is malformed.
        """
        state = FilterState.from_dict(state.to_dict())
        self.settings.set_section(self.section, state.to_dict())
        logging.debug(f'Saved filters: {state.to_dict()}')

        from ..signals import signals
        signals.filtersChanged.emit(state.to_dict())
        return state

    def reset(self) -> FilterState:
        """Restore the default, unfiltered state."""
        return self.save(FilterState())
