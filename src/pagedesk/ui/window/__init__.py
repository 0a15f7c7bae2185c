from __future__ import annotations

from pagedesk.ui.window.app_dialogs import AppConfirmDialog
from pagedesk.ui.window.panel_dialog import PanelDialog

__all__ = [
    "AppConfirmDialog",
    "PanelDialog",
]
