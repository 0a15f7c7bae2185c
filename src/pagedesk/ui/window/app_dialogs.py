from __future__ import annotations

from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton

from pagedesk.ui.window.panel_dialog import PanelDialog


class AppConfirmDialog(PanelDialog):
    def __init__(
        self,
        *,
        title: str,
        message: str,
        confirm_text: str = "Confirm",
        cancel_text: str = "Cancel",
        danger: bool = False,
        parent=None,
    ) -> None:
        super().__init__(title=title, parent=parent)
        self.setMinimumSize(420, 160)

        message_label = QLabel(message, self.body)
        message_label.setWordWrap(True)
        message_label.setObjectName("PanelWarning" if danger else "PanelHint")
        self.body_layout.addWidget(message_label)

        footer = QHBoxLayout()
        footer.setContentsMargins(0, 0, 0, 0)
        footer.setSpacing(8)
        footer.addStretch(1)

        cancel_button = QPushButton(cancel_text, self.body)
        cancel_button.setObjectName("PanelButton")
        cancel_button.clicked.connect(self.reject)
        footer.addWidget(cancel_button)

        confirm_button = QPushButton(confirm_text, self.body)
        if danger:
            confirm_button.setObjectName("PanelDangerButton")
        else:
            confirm_button.setObjectName("PanelButton")
            confirm_button.setProperty("primary", "true")
        confirm_button.clicked.connect(self.accept)
        footer.addWidget(confirm_button)
        self.body_layout.addLayout(footer)

        cancel_button.setFocus()

    @classmethod
    def ask(
        cls,
        *,
        parent,
        title: str,
        message: str,
        confirm_text: str = "Confirm",
        cancel_text: str = "Cancel",
        danger: bool = False,
    ) -> bool:
        dialog = cls(
            title=title,
            message=message,
            confirm_text=confirm_text,
            cancel_text=cancel_text,
            danger=danger,
            parent=parent,
        )
        return dialog.exec() == dialog.DialogCode.Accepted
