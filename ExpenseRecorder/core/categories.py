"""Category store.

Categories are an ordered list of unique, non-empty names persisted in the
``categories`` ledger section. A category referenced by a record can only be
removed after explicit confirmation, and removal never touches the records.
"""
import logging
from typing import Callable, List, Optional

from ..settings import lib
from ..status import status
from .records import RecordStore

ConfirmCallback = Callable[[str], bool]


class CategoryStore:
    section = 'categories'

    def __init__(self, settings: Optional[lib.SettingsAPI] = None, records: Optional[RecordStore] = None) -> None:
        self.settings: lib.SettingsAPI = settings or lib.settings
        self.records: RecordStore = records or RecordStore(settings=self.settings)

    def list(self) -> List[str]:
        """Return the category names in insertion order."""
        return self.settings.get_section(self.section)

    def __contains__(self, name: str) -> bool:
        return name in self.settings.get_section(self.section)

    def add(self, name: str) -> bool:
        """Append a new category.

        Args:
            name: Category name. Surrounding whitespace is stripped.

        Returns:
            bool: True once the category was stored.

        Raises:
            status.EmptyCategoryNameException: If the name is empty or whitespace only.
            status.DuplicateCategoryException: If the category already exists.
        """
        if not isinstance(name, str) or not name.strip():
            raise status.EmptyCategoryNameException('Category name must not be empty.')
        name = name.strip()

        categories = self.list()
        if name in categories:
            raise status.DuplicateCategoryException(f'Category "{name}" already exists.')

        categories.append(name)
        self.settings.set_section(self.section, categories)
        logging.info(f'Added category "{name}".')

        from ..signals import signals
        signals.categoryAdded.emit(name)
        return True

    def remove(self, name: str, confirm: Optional[ConfirmCallback] = None) -> bool:
        """Remove a category.

        When records still reference the category the confirm callback decides.
        Records are never modified and keep their category string.

        Args:
            name: The category to remove.
            confirm: Called with the name when the category is in use. Returning False cancels.

        Returns:
            bool: True if removed, False if the name is unknown or the removal was declined.

        Raises:
            status.CategoryInUseException: If the category is in use and no confirm callback was given.
        """
        categories = self.list()
        if name not in categories:
            logging.warning(f'Category "{name}" not found, nothing to remove.')
            return False

        if self.records.is_category_used(name):
            if confirm is None:
                raise status.CategoryInUseException(f'Category "{name}" is used by existing records.')
            if not confirm(name):
                logging.info(f'Removal of category "{name}" declined.')
                return False

        categories.remove(name)
        self.settings.set_section(self.section, categories)
        logging.info(f'Removed category "{name}".')

        from ..signals import signals
        signals.categoryRemoved.emit(name)
        return True
