from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, Qt, Signal, Slot


class MainThreadDispatcher(QObject):
    """Runs callbacks on the thread this object lives in (the GUI thread)."""

    _callbackQueued = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._callbackQueued.connect(self._run_callback, Qt.ConnectionType.QueuedConnection)

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._callbackQueued.emit(callback)

    @Slot(object)
    def _run_callback(self, callback: Callable[[], None]) -> None:
        callback()
