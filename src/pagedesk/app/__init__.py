from __future__ import annotations

from pagedesk.app.collection_view import (
    PAGE_KIND,
    PAGE_NAME,
    CollectionState,
    CollectionStatus,
    CollectionView,
    RecordRow,
    build_query,
)
from pagedesk.app.record_delete_controller import DeleteControlState, RecordDeleteController
from pagedesk.app.record_edit_controller import (
    DEFAULT_PAGE_STATUS,
    ControllerStateError,
    EditFormState,
    EditMode,
    EditorPhase,
    RecordEditController,
)

__all__ = [
    "CollectionState",
    "CollectionStatus",
    "CollectionView",
    "ControllerStateError",
    "DEFAULT_PAGE_STATUS",
    "DeleteControlState",
    "EditFormState",
    "EditMode",
    "EditorPhase",
    "PAGE_KIND",
    "PAGE_NAME",
    "RecordDeleteController",
    "RecordEditController",
    "RecordRow",
    "build_query",
]
