"""Status definitions and exceptions for ExpenseRecorder.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., RecordNotFoundException) raised by the stores and remote backends
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Local ledger status
    LedgerInvalid = enum.auto()
    StorageFailure = enum.auto()

    # Input status
    ValidationFailed = enum.auto()
    RecordNotFound = enum.auto()

    # Category status
    DuplicateCategory = enum.auto()
    EmptyCategoryName = enum.auto()
    CategoryInUse = enum.auto()

    # Remote status
    RemoteUnavailable = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.LedgerInvalid: 'The local ledger file is malformed or contains invalid values.',
    Status.StorageFailure: 'Could not save the data. Changes may be lost after a restart.',

    Status.ValidationFailed: 'The expense data is incomplete or contains invalid values.',
    Status.RecordNotFound: 'Could not find the expense record.',

    Status.DuplicateCategory: 'This category already exists.',
    Status.EmptyCategoryName: 'Please enter a category name.',
    Status.CategoryInUse: 'The category is used by existing records.',

    Status.RemoteUnavailable: 'The remote spreadsheet is unavailable. Please check the endpoint and your connection.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in ExpenseRecorder.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.message = message or ''
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..signals import signals
        signals.error.emit(message or self.status_message)

    def __str__(self) -> str:
        # KeyError subclasses would otherwise repr() the message
        return self.args[0] if self.args else self.status_message


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class LedgerInvalidException(BaseStatusException):
    """Exception raised when the persisted ledger file cannot be parsed or fails validation."""
    status = Status.LedgerInvalid


class StorageFailureException(BaseStatusException):
    """Exception raised when the ledger file cannot be written."""
    status = Status.StorageFailure


class ValidationException(BaseStatusException, ValueError):
    """Exception raised when required expense fields are missing or malformed."""
    status = Status.ValidationFailed


class RecordNotFoundException(BaseStatusException, KeyError):
    """Exception raised when no record matches the requested id."""
    status = Status.RecordNotFound


class DuplicateCategoryException(BaseStatusException):
    """Exception raised when adding a category name that already exists."""
    status = Status.DuplicateCategory


class EmptyCategoryNameException(BaseStatusException):
    """Exception raised when adding an empty or whitespace-only category name."""
    status = Status.EmptyCategoryName


class CategoryInUseException(BaseStatusException):
    """Exception raised when removing a referenced category without a confirmation."""
    status = Status.CategoryInUse


class RemoteUnavailableException(BaseStatusException):
    """Exception raised on transport, parse or remote-reported failures."""
    status = Status.RemoteUnavailable
