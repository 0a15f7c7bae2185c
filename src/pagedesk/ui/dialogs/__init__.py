from pagedesk.ui.dialogs.page_form_dialog import PageFormDialog

__all__ = [
    "PageFormDialog",
]
