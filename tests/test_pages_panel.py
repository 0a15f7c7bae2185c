import pytest

pytest.importorskip("PySide6")

from PySide6.QtTest import QTest
from PySide6.QtWidgets import QApplication, QWidget

from pagedesk.app.mount import mount
from pagedesk.app.settings_store import PanelSettings
from pagedesk.ui.widgets.pages_panel import PagesPanel
from pagedesk.ui.widgets.record_buttons import PageDeleteButton
from pagedesk.ui.window.app_dialogs import AppConfirmDialog

LOADING, EMPTY, TABLE = 0, 1, 2


@pytest.fixture
def panel(qapp, store, executor):
    widget = PagesPanel(store, settings=PanelSettings(confirm_delete=False))
    yield widget
    widget.shutdown()
    widget.deleteLater()
    QApplication.processEvents()


def _titles(panel):
    return [panel.table.item(row, 0).text() for row in range(panel.table.rowCount())]


def _delete_button(panel, row):
    return panel.table.cellWidget(row, 1).findChild(PageDeleteButton)


def test_shows_spinner_then_rows(qapp, store, executor, add_page):
    add_page("Hello & World")
    panel = PagesPanel(store)

    assert panel.stack.currentIndex() == LOADING
    executor.run_pending()

    assert panel.stack.currentIndex() == TABLE
    assert _titles(panel) == ["Hello & World"]
    panel.shutdown()


def test_search_without_results_shows_empty_state(panel, executor, add_page):
    add_page("Contact")
    executor.run_pending()

    panel.search_input.setText("zzz")
    assert panel.stack.currentIndex() == LOADING
    executor.run_pending()

    assert panel.stack.currentIndex() == EMPTY
    assert panel.empty_label.text() == "No results."


def test_create_page_through_dialog(panel, store, backend, executor):
    executor.run_pending()
    dialog = panel.open_creator()
    results = []
    dialog.finished.connect(results.append)
    assert dialog.save_button.isEnabled() is False

    QTest.keyClicks(dialog.title_input, "New Page")
    assert dialog.save_button.isEnabled() is True
    dialog.save_button.click()
    assert dialog.save_button.text() == "Saving"
    assert dialog.cancel_button.isEnabled() is False

    executor.run_pending()
    QApplication.processEvents()

    assert results == [dialog.DialogCode.Accepted]
    assert panel.editor(None) is None
    assert ("create", {"title": "New Page", "status": "publish"}) in backend.calls
    assert _titles(panel) == ["New Page"]


def test_edit_page_through_dialog(panel, executor, add_page):
    page = add_page("Old")
    executor.run_pending()
    dialog = panel.open_editor(page["id"])
    assert panel.open_editor(page["id"]) is dialog
    assert dialog.title_input.text() == "Old"

    dialog.title_input.selectAll()
    QTest.keyClicks(dialog.title_input, "Renamed")
    dialog.save_button.click()
    executor.run_pending()
    QApplication.processEvents()

    assert panel.editor(page["id"]) is None
    assert _titles(panel) == ["Renamed"]


def test_failed_save_shows_error_in_dialog(panel, backend, executor, add_page):
    page = add_page("Old")
    executor.run_pending()
    backend.failures["update"] = "Sorry, you are not allowed to edit this post."
    dialog = panel.open_editor(page["id"])

    dialog.title_input.selectAll()
    QTest.keyClicks(dialog.title_input, "Renamed")
    dialog.save_button.click()
    executor.run_pending()
    QApplication.processEvents()

    assert panel.editor(page["id"]) is dialog
    assert dialog.error_label.text() == "Error: Sorry, you are not allowed to edit this post."
    assert dialog.save_button.isEnabled() is True
    dialog.reject()
    assert panel.editor(page["id"]) is None


def test_delete_removes_row(panel, executor, add_page):
    add_page("Keep", date="2024-01-01T00:00:00")
    drop = add_page("Drop", date="2024-01-02T00:00:00")
    executor.run_pending()
    assert _titles(panel) == ["Drop", "Keep"]

    button = _delete_button(panel, 0)
    button.click()
    assert button.isEnabled() is False
    assert button.text() == "Deleting"
    assert panel.delete_controller(drop["id"]).state().is_deleting

    executor.run_pending()

    assert _titles(panel) == ["Keep"]
    assert panel.delete_controller(drop["id"]) is None


def test_failed_delete_marks_button(panel, backend, executor, add_page):
    add_page("Stuck")
    executor.run_pending()
    backend.failures["delete"] = "Cannot delete"

    button = _delete_button(panel, 0)
    button.click()
    executor.run_pending()

    assert button.isEnabled() is True
    assert button.text() == "Delete"
    assert button.toolTip() == "Delete failed: Cannot delete"
    assert button.property("deleteError") == "true"
    assert _titles(panel) == ["Stuck"]


def test_declined_confirmation_keeps_page(qapp, store, backend, executor, add_page, monkeypatch):
    monkeypatch.setattr(AppConfirmDialog, "ask", classmethod(lambda cls, **kwargs: False))
    add_page("Precious")
    panel = PagesPanel(store, settings=PanelSettings(confirm_delete=True))
    executor.run_pending()

    _delete_button(panel, 0).click()

    assert executor.pending == 0
    assert not [call for call in backend.calls if call[0] == "delete"]
    panel.shutdown()


def test_mount_and_unmount(qapp, store, executor):
    container = QWidget()

    handle = mount(container, store)
    assert handle.mounted
    assert isinstance(handle.panel, PagesPanel)

    handle.unmount()
    assert handle.mounted is False
    handle.unmount()


def test_rebuilt_rows_stop_listening_to_old_buttons(panel, store, executor, add_page):
    keep = add_page("Keep", date="2024-01-01T00:00:00")
    add_page("Drop", date="2024-01-02T00:00:00")
    executor.run_pending()
    old_button = _delete_button(panel, 1)
    assert old_button.controller.key == keep["id"]
    renders = []
    old_button._stateChanged.connect(lambda: renders.append(True))

    _delete_button(panel, 0).click()
    executor.run_pending()
    store.delete_entity_record("postType", "page", keep["id"])

    assert renders == []
    assert panel.delete_controller(keep["id"]).state().is_deleting
    executor.run_pending()
    assert panel.stack.currentIndex() == EMPTY
