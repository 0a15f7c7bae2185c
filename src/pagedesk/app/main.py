from __future__ import annotations

import logging
import os
import sys
from typing import Sequence

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication, QMainWindow, QWidget

from pagedesk import APP_NAME, APP_VERSION
from pagedesk.app.mount import MountedPanel, mount
from pagedesk.app.settings_store import STORE_BACKEND_MEMORY, load_panel_settings, settings_path
from pagedesk.app.store_factory import create_entity_store
from pagedesk.core.store_trace import configure_store_trace


_LOG_LEVEL_ENV = "PAGEDESK_LOG_LEVEL"
_LOGGER = logging.getLogger("pagedesk.app")


def _configure_logging() -> None:
    level_name = str(os.getenv(_LOG_LEVEL_ENV, "") or "WARNING").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run(argv: Sequence[str] | None = None) -> int:
    _configure_logging()
    configure_store_trace()
    app = QApplication.instance()
    if app is None:
        app = QApplication(list(argv or sys.argv))

    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)

    settings = load_panel_settings()
    _LOGGER.info("Using %s store (settings: %s)", settings.store_backend, settings_path())
    store = create_entity_store(
        settings,
        seed_demo_pages=settings.store_backend == STORE_BACKEND_MEMORY,
    )

    window = QMainWindow()
    window.setWindowTitle("Pages")
    window.resize(760, 520)
    container = QWidget(window)
    container.setObjectName("PagesPanelContainer")
    window.setCentralWidget(container)

    mounted: list[MountedPanel] = []

    def _on_ready() -> None:
        mounted.append(mount(container, store, settings=settings))

    def _on_quit() -> None:
        for handle in mounted:
            handle.unmount()
        store.close()

    # Mount once the event loop is running, the way a host signals "ready".
    QTimer.singleShot(0, _on_ready)
    app.aboutToQuit.connect(_on_quit)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(run())
