"""
Tests for ExpenseRecorder.log.log: root logger setup, the message tank and level handling.

Run with:
    python -m unittest tests.test_log
"""
import logging
import os
import unittest
from unittest import mock

from PySide6.QtCore import QtMsgType

from ExpenseRecorder.log import log
from ExpenseRecorder.log.log import TankHandler
from ExpenseRecorder.signals import signals
from tests.base import BaseTestCase


class LogSetupTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        logging.disable(logging.NOTSET)
        self.tank = log.setup_logging(enable_stream_handler=False, enable_qt_handler=False, log_level='DEBUG')
        self.root_logger = logging.getLogger()

    def tearDown(self):
        log.setup_logging(enable_stream_handler=False, enable_qt_handler=False, log_level=logging.DEBUG)
        super().tearDown()

    def test_setup_installs_single_tank(self):
        self.assertEqual([type(h) for h in self.root_logger.handlers], [TankHandler])
        self.assertIs(log.get_tank(), self.tank)

        # calling again replaces rather than stacks handlers
        tank = log.setup_logging(enable_stream_handler=False, enable_qt_handler=False)
        self.assertEqual(self.root_logger.handlers, [tank])

    def test_remote_failure_lands_in_tank(self):
        logging.warning('Remote "add" failed: Request failed: offline')
        self.assertTrue(any('Remote "add" failed' in m for m in self.tank.get_logs(logging.WARNING)))
        self.assertIn('WARNING', self.tank.get_logs()[-1])

    def test_tank_filters_by_level_and_clears(self):
        logging.debug('dbg message')
        logging.error('err message')
        errors = self.tank.get_logs(logging.ERROR)
        self.assertEqual(len(errors), 1)
        self.assertIn('err message', errors[0])
        self.tank.clear_logs()
        self.assertEqual(self.tank.get_logs(), [])

    def test_tank_is_bounded(self):
        tank = log.setup_logging(enable_stream_handler=False, enable_qt_handler=False, tank_size=3)
        for i in range(5):
            logging.info(f'message {i}')
        logs = tank.get_logs()
        self.assertEqual(len(logs), 3)
        self.assertIn('message 4', logs[-1])
        self.assertIn('message 2', logs[0])

    def test_error_emits_error_logged(self):
        received = []

        def on_error(message):
            received.append(message)

        signals.errorLogged.connect(on_error)
        try:
            logging.warning('not an error')
            logging.error('ledger write failed')
        finally:
            signals.errorLogged.disconnect(on_error)

        self.assertEqual(len(received), 1)
        self.assertIn('ledger write failed', received[0])

    def test_set_logging_level_applies_to_handlers(self):
        self.assertEqual(log.set_logging_level('warning'), logging.WARNING)
        self.assertEqual(self.root_logger.level, logging.WARNING)
        self.assertEqual(self.tank.level, logging.WARNING)

        logging.info('hidden')
        self.assertEqual(self.tank.get_logs(), [])

    def test_invalid_levels_rejected(self):
        for level in ('VERBOSE', 1234, True, None, '5'):
            with self.subTest(level=level):
                with self.assertRaises(ValueError):
                    log.set_logging_level(level)

    def test_level_from_environment(self):
        with mock.patch.dict(os.environ, {log.LOG_LEVEL_ENV: 'error'}):
            log.setup_logging(enable_stream_handler=False, enable_qt_handler=False)
        self.assertEqual(self.root_logger.level, logging.ERROR)

        with mock.patch.dict(os.environ, {log.LOG_LEVEL_ENV: 'loud'}):
            with mock.patch('sys.stderr'):
                log.setup_logging(enable_stream_handler=False, enable_qt_handler=False)
        self.assertEqual(self.root_logger.level, log.LOG_LEVEL)

    def test_qt_messages_routed_to_logging(self):
        log.qt_message_handler(QtMsgType.QtInfoMsg, None, ' Qt info ')
        log.qt_message_handler(QtMsgType.QtCriticalMsg, None, 'Qt critical')
        logs = self.tank.get_logs()
        self.assertTrue(any(m.endswith('Qt info') for m in logs))
        self.assertIn('Qt critical', self.tank.get_logs(logging.ERROR)[0])

    def test_qt_fatal_exits(self):
        with self.assertRaises(SystemExit):
            log.qt_message_handler(QtMsgType.QtFatalMsg, None, 'fatal')


if __name__ == '__main__':
    unittest.main()
