from pagedesk.ui.widgets.pages_panel import PagesPanel
from pagedesk.ui.widgets.record_buttons import CreatePageButton, PageDeleteButton, PageEditButton

__all__ = [
    "CreatePageButton",
    "PageDeleteButton",
    "PageEditButton",
    "PagesPanel",
]
