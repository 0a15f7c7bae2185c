from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QDialog, QFrame, QLabel, QVBoxLayout, QWidget


class PanelDialog(QDialog):
    """Window-modal dialog with a heading and a ``body_layout`` for content."""

    def __init__(self, title: str = "", parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("PanelDialog")
        self.setWindowModality(Qt.WindowModality.WindowModal)
        self.setMinimumWidth(420)

        root = QVBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        root.setSpacing(0)

        self._frame = QFrame(self)
        self._frame.setObjectName("PanelDialogFrame")
        root.addWidget(self._frame)

        frame_layout = QVBoxLayout(self._frame)
        frame_layout.setContentsMargins(16, 14, 16, 14)
        frame_layout.setSpacing(10)

        self._title_label = QLabel(self._frame)
        self._title_label.setObjectName("PanelDialogTitle")
        frame_layout.addWidget(self._title_label)

        self.body = QWidget(self._frame)
        self.body.setObjectName("PanelDialogBody")
        self.body_layout = QVBoxLayout(self.body)
        self.body_layout.setContentsMargins(0, 0, 0, 0)
        self.body_layout.setSpacing(10)
        frame_layout.addWidget(self.body, 1)

        self.set_dialog_title(title)

    def set_dialog_title(self, title: str) -> None:
        self.setWindowTitle(title)
        self._title_label.setText(title)
