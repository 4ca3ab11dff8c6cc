"""Settings library for the persisted local ledger.

Provides:
    - Schema validation and enforcement for the ledger.json structure.
    - Loading, saving, reverting, and reloading ledger sections.
    - Atomic JSON writes used by every persisted namespace.
    - Constants for record fields and section names.
"""

import copy
import json
import logging
import os
import pathlib
import re
import shutil
import tempfile
from typing import Any, Dict, List, Optional

from PySide6 import QtCore

from ..status import status

app_name: str = 'ExpenseRecorder'

CONFIG_DIR_ENV_KEY: str = 'EXPENSE_RECORDER_CONFIG_DIR'

DATE_PATTERN = re.compile(r'\d{4}-\d{2}-\d{2}')

RECORD_KEYS: List[str] = ['id', 'date', 'category', 'paymentMethod', 'amount', 'memo']
FILTER_KEYS: List[str] = ['from', 'to', 'category', 'paymentMethod']
SYNC_KEYS: List[str] = ['endpoint', 'enabled']

# Sections cleared by a full reset. The sync section survives.
RESETTABLE_SECTIONS: List[str] = ['records', 'categories', 'filters']

LEDGER_SCHEMA: Dict[str, Any] = {
    'records': {
        'type': list,
        'required': True,
        'item_schema': {
            'id': {'type': str, 'required': True},
            'date': {'type': str, 'required': True, 'format': 'date'},
            'category': {'type': str, 'required': True},
            'paymentMethod': {'type': str, 'required': True},
            'amount': {'type': int, 'required': True},
            'memo': {'type': str, 'required': False},
        }
    },
    'categories': {
        'type': list,
        'required': True,
        'value_type': str,
    },
    'filters': {
        'type': dict,
        'required': True,
        'required_keys': FILTER_KEYS,
        'item_schema': {
            'from': {'type': str, 'required': True, 'format': 'optional_date'},
            'to': {'type': str, 'required': True, 'format': 'optional_date'},
            'category': {'type': str, 'required': True},
            'paymentMethod': {'type': str, 'required': True},
        }
    },
    'sync': {
        'type': dict,
        'required': True,
        'required_keys': SYNC_KEYS,
        'item_schema': {
            'endpoint': {'type': str, 'required': True},
            'enabled': {'type': bool, 'required': True},
        }
    },
}


def is_valid_date(value: str) -> bool:
    """Check if a string is a valid calendar date in YYYY-MM-DD format.

    Args:
        value (str): Date string to validate.

    Returns:
        bool: True if value is an existing 'YYYY-MM-DD' date, False otherwise.
    """
    import datetime

    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        return False
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def write_json(path: pathlib.Path, data: Any) -> None:
    """Atomically write data as JSON to path.

    The data is written to a temporary file in the same directory, flushed to disk and
    moved over the target with os.replace, so readers never observe a partial file.

    Args:
        path: Destination file.
        data: JSON-serializable value.

    Raises:
        status.StorageFailureException: If writing or replacing the file fails.
    """
    path = pathlib.Path(path)
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f'{path.name}-', suffix='.tmp', dir=str(path.parent))
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except (OSError, TypeError, ValueError) as ex:
        if tmp_name and os.path.exists(tmp_name):
            try:
                os.unlink(tmp_name)
            except OSError as cleanup_ex:
                logging.debug(f'Failed removing temporary file {tmp_name}: {cleanup_ex}')
        raise status.StorageFailureException(f'Failed to write "{path}": {ex}') from ex


def _check_field(owner: str, field: str, value: Any, field_specs: Dict[str, Any]) -> None:
    """Check a single field value against its schema entry.

    Raises:
        TypeError: If the value has the wrong type.
        ValueError: If the value fails format validation.
    """
    _type = field_specs['type']
    # bool is an int subclass, amounts must be real integers
    if not isinstance(value, _type) or (_type is int and isinstance(value, bool)):
        msg = f'{owner} field "{field}" must be {_type}, got {type(value)}.'
        logging.error(msg)
        raise TypeError(msg)

    fmt = field_specs.get('format')
    if fmt == 'date' and not is_valid_date(value):
        msg = f'{owner} field "{field}" must be a YYYY-MM-DD date, got "{value}".'
        logging.error(msg)
        raise ValueError(msg)
    if fmt == 'optional_date' and value and not is_valid_date(value):
        msg = f'{owner} field "{field}" must be empty or a YYYY-MM-DD date, got "{value}".'
        logging.error(msg)
        raise ValueError(msg)


def _validate_records(records: List[Any], item_schema: Dict[str, Any]) -> None:
    """Validate the 'records' section of the ledger.

    Ensures records is a list of dicts whose fields match item_schema and whose ids are unique.

    Args:
        records: List of persisted expense records.
        item_schema: Dict describing required fields, types, and format constraints.

    Raises:
        TypeError: If records is not a list, an entry is not a dict, or a field has the wrong type.
        ValueError: If a required field is missing, a date is malformed or an id is duplicated.
    """
    logging.debug('Validating "records" section.')
    if not isinstance(records, list):
        msg: str = '"records" must be a list.'
        logging.error(msg)
        raise TypeError(msg)

    seen_ids = set()
    for idx, record in enumerate(records):
        if not isinstance(record, dict):
            msg = f'Record #{idx} must be a dict.'
            logging.error(msg)
            raise TypeError(msg)
        for field, field_specs in item_schema.items():
            if field not in record:
                if field_specs['required']:
                    msg = f'Record #{idx} missing "{field}".'
                    logging.error(msg)
                    raise ValueError(msg)
                continue
            _check_field(f'Record #{idx}', field, record[field], field_specs)

        if not record['id']:
            msg = f'Record #{idx} has an empty id.'
            logging.error(msg)
            raise ValueError(msg)
        if record['id'] in seen_ids:
            msg = f'Duplicate record id "{record["id"]}".'
            logging.error(msg)
            raise ValueError(msg)
        seen_ids.add(record['id'])


def _validate_categories(categories: List[Any]) -> None:
    """Validate the 'categories' section of the ledger.

    Args:
        categories: List of category names.

    Raises:
        TypeError: If categories is not a list of strings.
        ValueError: If a name is empty or duplicated.
    """
    logging.debug('Validating "categories" section.')
    if not isinstance(categories, list):
        msg: str = '"categories" must be a list.'
        logging.error(msg)
        raise TypeError(msg)
    seen = set()
    for name in categories:
        if not isinstance(name, str):
            msg = f'Category "{name}" is not a string.'
            logging.error(msg)
            raise TypeError(msg)
        if not name.strip():
            msg = 'Category names must not be empty.'
            logging.error(msg)
            raise ValueError(msg)
        if name in seen:
            msg = f'Duplicate category "{name}".'
            logging.error(msg)
            raise ValueError(msg)
        seen.add(name)


def _validate_mapping(section: str, data: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate a dict section ('filters' or 'sync') against its item schema.

    Args:
        section: Section name, used in messages.
        data: The section data.
        specs: Schema dict containing 'required_keys' and 'item_schema'.

    Raises:
        ValueError: If keys differ from required_keys or a format check fails.
        TypeError: If a value has the wrong type.
    """
    logging.debug(f'Validating "{section}" section.')
    required_keys = set(specs['required_keys'])
    if set(data.keys()) != required_keys:
        msg: str = f'{section} must have keys {required_keys}, got {set(data.keys())}.'
        logging.error(msg)
        raise ValueError(msg)
    for field, field_specs in specs['item_schema'].items():
        _check_field(section, field, data[field], field_specs)


def validate_section(section_name: str, data: Any) -> None:
    """Validate one ledger section.

    Raises:
        ValueError: If section_name is unknown or the data fails validation.
        TypeError: If the data has the wrong type.
    """
    if section_name not in LEDGER_SCHEMA:
        raise ValueError(f'Unknown section "{section_name}"')
    specs = LEDGER_SCHEMA[section_name]
    if not isinstance(data, specs['type']):
        msg = f'Field "{section_name}" must be {specs["type"]}, got {type(data)}.'
        logging.error(msg)
        raise TypeError(msg)

    if section_name == 'records':
        _validate_records(data, specs['item_schema'])
    elif section_name == 'categories':
        _validate_categories(data)
    else:
        _validate_mapping(section_name, data, specs)


class ConfigPaths:
    """Manage application file paths and ensure the default ledger exists.

    The configuration directory is resolved from, in order: the config_dir argument,
    the EXPENSE_RECORDER_CONFIG_DIR environment variable, and the platform's
    application data location.
    """

    def __init__(self, config_dir: Optional[str] = None) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')
        logging.debug(f'Setting application name: {app_name}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.ledger_template: pathlib.Path = self.template_dir / 'ledger.json.template'

        if config_dir:
            self.config_dir: pathlib.Path = pathlib.Path(config_dir)
        elif os.environ.get(CONFIG_DIR_ENV_KEY):
            self.config_dir = pathlib.Path(os.environ[CONFIG_DIR_ENV_KEY])
        else:
            p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
            self.config_dir = pathlib.Path(p) / 'config'
        logging.debug(f'Using config directory: {self.config_dir}')

        self.ledger_path: pathlib.Path = self.config_dir / 'ledger.json'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists, create the config directory and seed the ledger.

        Raises:
            FileNotFoundError: If the ledger template is missing.
        """
        logging.debug(f'Verifying required templates in {self.template_dir}')
        if not self.ledger_template.exists():
            msg: str = f'Missing ledger template: {self.ledger_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        # First run
        if not self.ledger_path.exists():
            logging.info(f'Copying default ledger from template to {self.ledger_path}')
            shutil.copy(self.ledger_template, self.ledger_path)

    def load_template(self) -> Dict[str, Any]:
        """Return the parsed default ledger template."""
        with self.ledger_template.open('r', encoding='utf-8') as f:
            return json.load(f)

    def revert_ledger_to_template(self) -> None:
        """Restore ledger.json from the default template file.

        Raises:
            FileNotFoundError: If the ledger template file is missing.
        """
        logging.debug(f'Reverting ledger to template: {self.ledger_template}')
        if not self.ledger_template.exists():
            msg: str = f'Ledger template not found: {self.ledger_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        shutil.copy(self.ledger_template, self.ledger_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save the ledger.json sections:
    records, categories, filters and sync.
    """

    def __init__(self, config_dir: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load the ledger data.

        Args:
            config_dir: Optional directory holding ledger.json.
        """
        super().__init__(config_dir=config_dir)

        self._signals_blocked: bool = False

        self.ledger_data: Dict[str, Any] = {}
        self.init_data()

    def block_signals(self, v: bool) -> None:
        """Enable or disable emission of configuration change signals.

        Args:
            v: True to block signals, False to allow signals to emit.
        """
        self._signals_blocked = v

    def _emit_changed(self, section_name: str) -> None:
        if self._signals_blocked:
            return
        from ..signals import signals
        signals.configSectionChanged.emit(section_name)

    def init_data(self) -> None:
        """Reload ledger data from disk, emitting change signals for every section."""
        self.load_ledger()
        for section in LEDGER_SCHEMA.keys():
            self._emit_changed(section)

    def load_ledger(self) -> Dict[str, Any]:
        """Load ledger.json from disk and validate against schema.

        Sections missing from the file are seeded from the template.

        Returns:
            The loaded ledger data dictionary.

        Raises:
            status.LedgerInvalidException: If the file is missing, JSON parsing or validation fails.
        """
        logging.debug(f'Loading ledger from "{self.ledger_path}"')
        if not self.ledger_path.exists():
            raise status.LedgerInvalidException(f'Ledger file not found: {self.ledger_path}')

        try:
            with self.ledger_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            if not isinstance(data, dict):
                raise TypeError('Ledger root must be a JSON object.')

            template: Dict[str, Any] = self.load_template()
            for section in LEDGER_SCHEMA.keys():
                if section not in data:
                    logging.warning(f'Ledger is missing section "{section}", using defaults.')
                    data[section] = template[section]

            self.validate_ledger_data(data=data)
        except (ValueError, TypeError, OSError) as ex:
            raise status.LedgerInvalidException(str(ex)) from ex

        self.ledger_data = data
        return self.ledger_data

    def validate_ledger_data(self, data: Dict[str, Any] = None) -> None:
        """Validate ledger data against the defined LEDGER_SCHEMA.

        Args:
            data (dict, optional): Ledger data to validate. Defaults to self.ledger_data.

        Raises:
            RuntimeError: If data is empty.
            status.LedgerInvalidException: If a required section is missing.
            TypeError, ValueError: If a section fails validation.
        """
        if data is None:
            data = self.ledger_data
        if not data:
            raise RuntimeError('Ledger data is empty.')

        logging.debug('Validating ledger data against schema.')
        for field, specs in LEDGER_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise status.LedgerInvalidException(f'Missing required field: {field}')
            if field not in data:
                continue
            validate_section(field, data[field])

        logging.debug('Ledger data is valid.')

    def get_section(self, section_name: str) -> Any:
        """Retrieve a copy of a ledger section.

        Args:
            section_name: Section name, a key of LEDGER_SCHEMA.

        Returns:
            A deep copy of the requested section data.

        Raises:
            KeyError: If section_name is not in ledger_data.
        """
        return copy.deepcopy(self.ledger_data[section_name])

    def set_section(self, section_name: str, new_data: Any) -> None:
        """Validate, replace and persist a ledger section.

        The in-memory section is rolled back if validation or the write fails.

        Args:
            section_name: Section to update.
            new_data: New data for the section.

        Raises:
            ValueError: If section_name is unrecognized or validation fails.
            TypeError: If new_data has the wrong type.
            status.StorageFailureException: If the ledger file could not be written.
        """
        if section_name not in LEDGER_SCHEMA:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data: Any = self.ledger_data.get(section_name)
        try:
            validate_section(section_name, new_data)
            self.ledger_data[section_name] = copy.deepcopy(new_data)
            self.save_section(section_name)
        except (ValueError, TypeError, status.BaseStatusException) as e:
            logging.error(f'Error on set_section("{section_name}"): {e}')
            self.ledger_data[section_name] = current_section_data
            raise

        self._emit_changed(section_name)

    def reload_section(self, section_name: str) -> None:
        """Reload a ledger section from its source file and emit change signal.

        Args:
            section_name: Section to reload.

        Raises:
            ValueError: If section_name is unrecognized or the data on disk is invalid.
            JSONDecodeError: If parsing ledger.json fails.
        """
        if section_name not in LEDGER_SCHEMA:
            msg: str = f'Unknown section_name for reload: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        logging.debug(f'Reloading section "{section_name}" from disk.')
        try:
            with self.ledger_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            validate_section(section_name, data[section_name])
            self.ledger_data[section_name] = data[section_name]
        except (ValueError, TypeError, KeyError, json.JSONDecodeError) as e:
            logging.error(f'Failed to reload section "{section_name}": {e}')
            raise

        self._emit_changed(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a ledger section to its template default and save.

        Args:
            section_name: Section to revert.

        Raises:
            ValueError: If section_name is invalid or not present in the template.
        """
        if section_name not in LEDGER_SCHEMA:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        template_data: Dict[str, Any] = self.load_template()
        if section_name not in template_data:
            msg = f'No template-based revert logic for section "{section_name}".'
            logging.error(msg)
            raise ValueError(msg)

        logging.debug(f'Reverting section "{section_name}" to template.')
        self.set_section(section_name, template_data[section_name])

    def save_section(self, section_name: str) -> None:
        """Persist a single ledger section, keeping the other sections on disk as they are.

        Args:
            section_name: The section to save.

        Raises:
            ValueError: If section_name is not recognized.
            status.StorageFailureException: If the file cannot be written.
        """
        if section_name not in self.ledger_data:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        original_data: Dict[str, Any] = {}
        try:
            with self.ledger_path.open('r', encoding='utf-8') as f:
                original_data = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            logging.warning(f'Could not read "{self.ledger_path}" before saving, rewriting all sections: {ex}')
        if not isinstance(original_data, dict):
            original_data = {}

        new_data: Dict[str, Any] = {k: original_data.get(k, v) for k, v in self.ledger_data.items()}
        new_data[section_name] = self.ledger_data[section_name]

        logging.debug(f'Saving section "{section_name}" to "{self.ledger_path}"')
        write_json(self.ledger_path, new_data)

    def save_all(self) -> None:
        """Validate and save every ledger section at once.

        Raises:
            TypeError, ValueError: On validation failure.
            status.StorageFailureException: If the file cannot be written.
        """
        logging.debug('Saving all settings.')
        self.validate_ledger_data()
        write_json(self.ledger_path, self.ledger_data)


settings: SettingsAPI = SettingsAPI()
