"""Root logger setup for ExpenseRecorder.

Every module logs through the root logger. :func:`setup_logging` runs at
package import and attaches a stdout handler and a :class:`TankHandler`, so
recent messages, such as failed remote mirrors, can be read back by a front end.

The level defaults to DEBUG and can be overridden with the
``EXPENSE_RECORDER_LOG_LEVEL`` environment variable (a level name or number).
"""
import collections
import logging
import os
import sys
from typing import Deque, List, Optional, Tuple, Union

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

from ..signals import signals

LOG_LEVEL = logging.DEBUG
LOG_LEVEL_ENV = 'EXPENSE_RECORDER_LOG_LEVEL'
LOG_FORMAT = '[%(asctime)s] <%(module)s> %(levelname)s:  %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

TANK_SIZE = 1000

LEVELS = (
    logging.DEBUG,
    logging.INFO,
    logging.WARNING,
    logging.ERROR,
    logging.CRITICAL,
)


def resolve_level(level: Union[int, str]) -> int:
    """Return the numeric logging level for a level number or name.

    Raises:
        ValueError: If level is not one of the standard levels.
    """
    if isinstance(level, str):
        name = level.strip().upper()
        level = int(name) if name.isdigit() else logging.getLevelName(name)
    if isinstance(level, bool) or not isinstance(level, int) or level not in LEVELS:
        raise ValueError(f'Invalid logging level: {level!r}. Use one of DEBUG, INFO, WARNING, ERROR or CRITICAL.')
    return level


def set_logging_level(level: Union[int, str]) -> int:
    """Set the level of the root logger and every handler attached to it.

    Returns:
        int: The level applied.
    """
    level = resolve_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
    return level


def qt_message_handler(mode, context, message):
    logger = logging.getLogger('Qt')
    message = message.strip()

    if mode == QtMsgType.QtDebugMsg:
        logger.debug(message)
    elif mode == QtMsgType.QtInfoMsg:
        logger.info(message)
    elif mode == QtMsgType.QtWarningMsg:
        logger.warning(message)
    elif mode == QtMsgType.QtCriticalMsg:
        logger.error(message)
    elif mode == QtMsgType.QtFatalMsg:
        logger.critical(message)
        sys.exit(1)


def _default_level() -> int:
    value = os.environ.get(LOG_LEVEL_ENV)
    if not value:
        return LOG_LEVEL
    try:
        return resolve_level(value)
    except ValueError:
        print(f'Ignoring {LOG_LEVEL_ENV}={value!r}: not a logging level.', file=sys.stderr)
        return LOG_LEVEL


def setup_logging(enable_stream_handler: bool = True, enable_qt_handler: bool = True,
                  log_level: Optional[Union[int, str]] = None, tank_size: int = TANK_SIZE) -> 'TankHandler':
    """
    Configure the root logger.

    Args:
        enable_stream_handler: Attach a stdout stream handler.
        enable_qt_handler: Route Qt's own messages through Python logging.
        log_level: Level name or number. Falls back to ``EXPENSE_RECORDER_LOG_LEVEL``, then DEBUG.
        tank_size: Number of messages the in-memory tank keeps.

    Returns:
        TankHandler: The tank attached to the root logger.
    """
    root_logger = logging.getLogger()
    # Clear all handlers to avoid duplicate output when called again
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if enable_stream_handler:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    tank_handler = TankHandler(maxlen=tank_size)
    tank_handler.setFormatter(formatter)
    root_logger.addHandler(tank_handler)

    set_logging_level(_default_level() if log_level is None else log_level)

    if enable_qt_handler:
        qInstallMessageHandler(qt_message_handler)
    return tank_handler


def get_tank() -> Optional['TankHandler']:
    """Return the TankHandler attached to the root logger, if any."""
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, TankHandler)),
        None
    )


class TankHandler(logging.Handler):
    """
    Keeps the most recent formatted log messages in memory.

    Records at ERROR or above are also announced with ``signals.errorLogged``.

    Attributes:
        tank (collections.deque[tuple[int, str]]): ``(level, message)`` pairs, oldest first.
    """

    def __init__(self, maxlen: Optional[int] = TANK_SIZE):
        super().__init__()
        self.tank: Deque[Tuple[int, str]] = collections.deque(maxlen=maxlen)

    def emit(self, record):
        try:
            message = self.format(record)
            self.tank.append((record.levelno, message))
            if record.levelno >= logging.ERROR:
                signals.errorLogged.emit(message)
        except Exception:
            self.handleError(record)

    def get_logs(self, level: int = logging.NOTSET) -> List[str]:
        """Return the stored messages at or above level."""
        return [msg for lvl, msg in self.tank if lvl >= level]

    def clear_logs(self) -> None:
        self.tank.clear()
