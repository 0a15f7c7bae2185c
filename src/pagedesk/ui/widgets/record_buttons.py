from __future__ import annotations

from typing import Callable, Hashable

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QPushButton, QWidget

from pagedesk.app.record_delete_controller import DeleteControlState, RecordDeleteController
from pagedesk.app.record_edit_controller import ControllerStateError
from pagedesk.ui.window.app_dialogs import AppConfirmDialog


class PageEditButton(QPushButton):
    def __init__(
        self,
        key: Hashable,
        *,
        on_edit: Callable[[Hashable], None],
        parent: QWidget | None = None,
    ) -> None:
        super().__init__("Edit", parent)
        self.setObjectName("PanelButton")
        self.setProperty("primary", "true")
        self._key = key
        self.clicked.connect(lambda: on_edit(self._key))

    @property
    def key(self) -> Hashable:
        return self._key


class CreatePageButton(QPushButton):
    def __init__(self, *, on_create: Callable[[], None], parent: QWidget | None = None) -> None:
        super().__init__("Create Page", parent)
        self.setObjectName("PanelButton")
        self.setProperty("primary", "true")
        self.clicked.connect(lambda: on_create())


class PageDeleteButton(QPushButton):
    """Delete control bound to one record; asks first when ``confirm`` is set."""

    _stateChanged = Signal()

    def __init__(
        self,
        controller: RecordDeleteController,
        *,
        record_title: str = "",
        confirm: bool = True,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.setObjectName("PanelDangerButton")
        self._controller = controller
        self._record_title = record_title
        self._confirm = confirm
        self._stateChanged.connect(self.render)
        unsubscribe = controller.subscribe(self._on_controller_state)
        self._unsubscribe: Callable[[], None] | None = unsubscribe
        self.destroyed.connect(lambda *_: unsubscribe())
        self.clicked.connect(self._on_clicked)
        self.render()

    @property
    def controller(self) -> RecordDeleteController:
        return self._controller

    def detach(self) -> None:
        """Stop listening to the controller; call before the row widget goes away."""
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()

    def render(self) -> None:
        state = self._controller.state()
        self.setEnabled(state.enabled)
        self.setText(state.label)
        failed = bool(state.error_message) and state.enabled
        self.setToolTip(f"Delete failed: {state.error_message}" if failed else "")
        self.setProperty("deleteError", "true" if failed else "false")
        style = self.style()
        style.unpolish(self)
        style.polish(self)
        self.update()

    def _on_clicked(self) -> None:
        if self._confirm:
            label = self._record_title or "this page"
            confirmed = AppConfirmDialog.ask(
                parent=self.window(),
                title="Delete Page",
                message=f"Delete '{label}'?",
                confirm_text="Delete",
                cancel_text="Cancel",
                danger=True,
            )
            if not confirmed:
                return
        try:
            self._controller.delete()
        except ControllerStateError:
            self.render()

    def _on_controller_state(self, _state: DeleteControlState) -> None:
        if self._unsubscribe is None:
            return
        self._stateChanged.emit()
