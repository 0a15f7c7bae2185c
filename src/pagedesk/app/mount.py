from __future__ import annotations

from dataclasses import dataclass

from PySide6.QtWidgets import QVBoxLayout, QWidget

from pagedesk.app.settings_store import PanelSettings
from pagedesk.core.entity_store import EntityRecordStore
from pagedesk.ui.widgets.pages_panel import PagesPanel


@dataclass(slots=True)
class MountedPanel:
    container: QWidget
    panel: PagesPanel | None

    @property
    def mounted(self) -> bool:
        return self.panel is not None

    def unmount(self) -> None:
        panel = self.panel
        if panel is None:
            return
        self.panel = None
        panel.shutdown()
        layout = self.container.layout()
        if layout is not None:
            layout.removeWidget(panel)
        panel.hide()
        panel.setParent(None)
        panel.deleteLater()


def mount(
    container: QWidget,
    store: EntityRecordStore,
    *,
    settings: PanelSettings | None = None,
) -> MountedPanel:
    """Render the pages panel into a host-provided container widget."""
    layout = container.layout()
    if layout is None:
        layout = QVBoxLayout(container)
        layout.setContentsMargins(12, 12, 12, 12)
    panel = PagesPanel(store, settings=settings, parent=container)
    layout.addWidget(panel)
    panel.show()
    return MountedPanel(container=container, panel=panel)
