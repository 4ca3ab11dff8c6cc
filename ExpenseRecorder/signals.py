"""Application-wide Qt signals for ExpenseRecorder.

View layers connect to these to re-render after local mutations, to surface
remote mirroring outcomes, and to show errors.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for configuration, ledger data and remote sync events."""
    configSectionChanged = QtCore.Signal(str)  # Section name

    recordAdded = QtCore.Signal(dict)
    recordUpdated = QtCore.Signal(dict)
    recordRemoved = QtCore.Signal(str)  # Record id
    recordsReplaced = QtCore.Signal(int)  # New record count

    categoryAdded = QtCore.Signal(str)
    categoryRemoved = QtCore.Signal(str)

    filtersChanged = QtCore.Signal(dict)
    syncConfigChanged = QtCore.Signal(dict)

    remoteOperationFinished = QtCore.Signal(str, bool)  # Action, success

    error = QtCore.Signal(str)
    errorLogged = QtCore.Signal(str)


signals = Signals()
