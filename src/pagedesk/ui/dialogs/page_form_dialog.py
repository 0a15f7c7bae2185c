from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QHBoxLayout, QLabel, QLineEdit, QPushButton, QWidget

from pagedesk.app.record_edit_controller import (
    ControllerStateError,
    EditFormState,
    RecordEditController,
)
from pagedesk.core.entity_store import Record
from pagedesk.ui.window.panel_dialog import PanelDialog


class PageFormDialog(PanelDialog):
    """Title form for a page; every control reflects the controller state."""

    _stateChanged = Signal()

    def __init__(
        self,
        controller: RecordEditController,
        *,
        title: str,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(title=title, parent=parent)
        self._controller = controller
        self._saved = False

        title_label = QLabel("Page title", self.body)
        title_label.setObjectName("PanelFieldLabel")
        self.body_layout.addWidget(title_label)

        self.title_input = QLineEdit(self.body)
        self.title_input.setObjectName("PageTitleInput")
        title_label.setBuddy(self.title_input)
        self.body_layout.addWidget(self.title_input)

        self.error_label = QLabel(self.body)
        self.error_label.setObjectName("FormError")
        self.error_label.setWordWrap(True)
        self.error_label.hide()
        self.body_layout.addWidget(self.error_label)

        footer = QHBoxLayout()
        footer.setContentsMargins(0, 0, 0, 0)
        footer.setSpacing(8)
        footer.addStretch(1)

        self.save_button = QPushButton("Save", self.body)
        self.save_button.setObjectName("PanelButton")
        self.save_button.setProperty("primary", "true")
        self.save_button.clicked.connect(self._on_save_clicked)
        footer.addWidget(self.save_button)

        self.cancel_button = QPushButton("Cancel", self.body)
        self.cancel_button.setObjectName("PanelButton")
        self.cancel_button.clicked.connect(self.reject)
        footer.addWidget(self.cancel_button)

        self.body_layout.addLayout(footer)

        self.title_input.textEdited.connect(self._on_title_edited)
        self.title_input.returnPressed.connect(self._on_save_clicked)
        self._stateChanged.connect(self.render)
        controller.set_on_save_finished(self._on_save_finished)
        self._unsubscribe = controller.subscribe(self._on_controller_state)
        self.finished.connect(self._release)

        self.render()
        self.title_input.setFocus()

    @property
    def controller(self) -> RecordEditController:
        return self._controller

    def render(self) -> None:
        state = self._controller.state()
        if not state.is_open:
            if self.isVisible():
                self.done(self.DialogCode.Accepted if self._saved else self.DialogCode.Rejected)
            return
        self._apply_state(state)

    def reject(self) -> None:
        state = self._controller.state()
        if not state.is_open:
            super().reject()
            return
        if not state.cancel_enabled:
            return
        # Closing happens through render() once the controller reports CLOSED.
        self._controller.cancel()

    def _apply_state(self, state: EditFormState) -> None:
        if self.title_input.text() != state.title:
            cursor = self.title_input.cursorPosition()
            self.title_input.setText(state.title)
            self.title_input.setCursorPosition(min(cursor, len(state.title)))
        self.title_input.setReadOnly(state.is_saving)

        if state.error_message:
            self.error_label.setText(f"Error: {state.error_message}")
            self.error_label.show()
        else:
            self.error_label.clear()
            self.error_label.hide()

        self.save_button.setEnabled(state.save_enabled)
        self.save_button.setText(state.save_label)
        self.cancel_button.setEnabled(state.cancel_enabled)

    def _on_title_edited(self, text: str) -> None:
        try:
            self._controller.change_title(text)
        except ControllerStateError:
            self.render()

    def _on_save_clicked(self) -> None:
        try:
            self._controller.save()
        except ControllerStateError:
            self.render()

    def _on_save_finished(self, _record: Record) -> None:
        self._saved = True
        self.render()

    def _on_controller_state(self, _state: EditFormState) -> None:
        # Store workers call this off the GUI thread; Qt queues the signal.
        self._stateChanged.emit()

    def _release(self, _result: int) -> None:
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()
        self._controller.set_on_save_finished(None)
