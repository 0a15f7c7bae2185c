from __future__ import annotations

from typing import Hashable

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QProgressBar,
    QStackedWidget,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from pagedesk.app.collection_view import CollectionState, CollectionStatus, CollectionView, RecordRow
from pagedesk.app.record_delete_controller import RecordDeleteController
from pagedesk.app.record_edit_controller import RecordEditController
from pagedesk.app.settings_store import PanelSettings
from pagedesk.core.entity_store import EntityRecordStore
from pagedesk.ui.dialogs.page_form_dialog import PageFormDialog
from pagedesk.ui.dispatch import MainThreadDispatcher
from pagedesk.ui.widgets.record_buttons import CreatePageButton, PageDeleteButton, PageEditButton


_PANEL_STYLESHEET = """
QLabel#FormError { color: #b32d2e; }
QLabel#PagesEmptyLabel { color: #646970; padding: 12px; }
QPushButton#PanelDangerButton { color: #b32d2e; }
QPushButton#PanelDangerButton[deleteError="true"] { border: 1px solid #b32d2e; }
"""
_LOADING_PAGE = 0
_EMPTY_PAGE = 1
_TABLE_PAGE = 2


class PagesPanel(QWidget):
    """Search box, create button and the page list with per-row actions."""

    _collectionChanged = Signal()

    def __init__(
        self,
        store: EntityRecordStore,
        *,
        settings: PanelSettings | None = None,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.setObjectName("PagesPanel")
        self.setStyleSheet(_PANEL_STYLESHEET)
        self._store = store
        self._settings = settings or PanelSettings()
        self._dispatcher = MainThreadDispatcher(self)
        self._collection = CollectionView(store)
        self._last_state: CollectionState | None = None
        self._delete_controllers: dict[Hashable, RecordDeleteController] = {}
        self._open_editors: dict[Hashable | None, PageFormDialog] = {}
        self._create_controller = RecordEditController.for_new_record(
            store,
            default_status=self._settings.default_page_status,
            call_soon=self._dispatcher.call_soon,
        )

        root = QVBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        root.setSpacing(10)

        controls = QHBoxLayout()
        controls.setContentsMargins(0, 0, 0, 0)
        controls.setSpacing(8)
        self.search_input = QLineEdit(self)
        self.search_input.setObjectName("PagesSearchInput")
        self.search_input.setPlaceholderText("Search pages")
        self.search_input.setClearButtonEnabled(True)
        self.search_input.textChanged.connect(self._collection.search)
        controls.addWidget(self.search_input, 1)
        self.create_button = CreatePageButton(on_create=self.open_creator, parent=self)
        controls.addWidget(self.create_button)
        root.addLayout(controls)

        self.stack = QStackedWidget(self)
        root.addWidget(self.stack, 1)

        loading_page = QWidget(self.stack)
        loading_layout = QVBoxLayout(loading_page)
        loading_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        spinner = QProgressBar(loading_page)
        spinner.setObjectName("PagesSpinner")
        spinner.setRange(0, 0)
        spinner.setTextVisible(False)
        spinner.setMaximumWidth(160)
        loading_layout.addWidget(spinner)
        self.stack.insertWidget(_LOADING_PAGE, loading_page)

        self.empty_label = QLabel("No results.", self.stack)
        self.empty_label.setObjectName("PagesEmptyLabel")
        self.empty_label.setAlignment(Qt.AlignmentFlag.AlignTop | Qt.AlignmentFlag.AlignLeft)
        self.empty_label.setWordWrap(True)
        self.stack.insertWidget(_EMPTY_PAGE, self.empty_label)

        self.table = QTableWidget(0, 2, self.stack)
        self.table.setObjectName("PagesTable")
        self.table.setHorizontalHeaderLabels(["Title", "Actions"])
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        self.table.setAlternatingRowColors(True)
        self.table.verticalHeader().setVisible(False)
        header = self.table.horizontalHeader()
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.Stretch)
        header.setSectionResizeMode(1, QHeaderView.ResizeMode.ResizeToContents)
        self.stack.insertWidget(_TABLE_PAGE, self.table)

        self._collectionChanged.connect(self.render)
        self._unsubscribe = self._collection.subscribe(lambda _state: self._collectionChanged.emit())
        self.render()

    @property
    def collection(self) -> CollectionView:
        return self._collection

    @property
    def create_controller(self) -> RecordEditController:
        return self._create_controller

    def delete_controller(self, key: Hashable) -> RecordDeleteController | None:
        return self._delete_controllers.get(key)

    def editor(self, key: Hashable | None) -> PageFormDialog | None:
        return self._open_editors.get(key)

    def render(self) -> None:
        state = self._collection.state()
        if state == self._last_state:
            return
        self._last_state = state
        if state.status is CollectionStatus.LOADING:
            self.stack.setCurrentIndex(_LOADING_PAGE)
            return
        if state.status is CollectionStatus.EMPTY:
            text = "No results."
            if state.error_message:
                text = f"{text}\n{state.error_message}"
            self.empty_label.setText(text)
            self.stack.setCurrentIndex(_EMPTY_PAGE)
            self._detach_row_actions()
            self._prune_delete_controllers(set())
            return
        self._render_rows(state.rows)
        self.stack.setCurrentIndex(_TABLE_PAGE)

    def open_editor(self, key: Hashable) -> PageFormDialog:
        dialog = self._open_editors.get(key)
        if dialog is not None:
            dialog.raise_()
            dialog.activateWindow()
            return dialog
        controller = RecordEditController.for_record(
            self._store,
            key,
            call_soon=self._dispatcher.call_soon,
        )
        controller.open()
        dialog = PageFormDialog(controller, title="Edit Page", parent=self)
        return self._show_editor(key, dialog, release_controller=True)

    def open_creator(self) -> PageFormDialog:
        dialog = self._open_editors.get(None)
        if dialog is not None:
            dialog.raise_()
            dialog.activateWindow()
            return dialog
        self._create_controller.open()
        dialog = PageFormDialog(self._create_controller, title="Create Page", parent=self)
        return self._show_editor(None, dialog, release_controller=False)

    def shutdown(self) -> None:
        for dialog in list(self._open_editors.values()):
            dialog.done(dialog.DialogCode.Rejected)
        self._open_editors.clear()
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()
        self._detach_row_actions()
        self._prune_delete_controllers(set())
        self._create_controller.close()
        self._collection.close()

    def _show_editor(self, key: Hashable | None, dialog: PageFormDialog, *, release_controller: bool) -> PageFormDialog:
        self._open_editors[key] = dialog

        def _on_finished(_result: int) -> None:
            if self._open_editors.get(key) is dialog:
                del self._open_editors[key]
            if release_controller:
                dialog.controller.close()
            dialog.deleteLater()

        dialog.finished.connect(_on_finished)
        dialog.open()
        return dialog

    def _render_rows(self, rows: tuple[RecordRow, ...]) -> None:
        self._detach_row_actions()
        self._prune_delete_controllers({row.key for row in rows})
        self.table.setRowCount(0)
        self.table.setRowCount(len(rows))
        for index, row in enumerate(rows):
            title_item = QTableWidgetItem(row.title)
            title_item.setData(Qt.ItemDataRole.UserRole, row.key)
            self.table.setItem(index, 0, title_item)
            self.table.setCellWidget(index, 1, self._build_row_actions(row))
        self.table.resizeRowsToContents()

    def _build_row_actions(self, row: RecordRow) -> QWidget:
        controller = self._delete_controllers.get(row.key)
        if controller is None:
            controller = RecordDeleteController(self._store, row.key)
            self._delete_controllers[row.key] = controller
        actions = QWidget(self.table)
        actions.setObjectName("PagesRowActions")
        layout = QHBoxLayout(actions)
        layout.setContentsMargins(4, 2, 4, 2)
        layout.setSpacing(6)
        layout.addWidget(PageEditButton(row.key, on_edit=self.open_editor, parent=actions))
        layout.addWidget(
            PageDeleteButton(
                controller,
                record_title=row.title,
                confirm=self._settings.confirm_delete,
                parent=actions,
            )
        )
        return actions

    def _detach_row_actions(self) -> None:
        # Deleted cell widgets linger until the event loop runs; stop their updates now.
        for row in range(self.table.rowCount()):
            actions = self.table.cellWidget(row, 1)
            if actions is None:
                continue
            for button in actions.findChildren(PageDeleteButton):
                button.detach()

    def _prune_delete_controllers(self, keep: set[Hashable]) -> None:
        for key in [key for key in self._delete_controllers if key not in keep]:
            self._delete_controllers.pop(key).close()
