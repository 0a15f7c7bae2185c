from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable

from pagedesk.app.collection_view import PAGE_KIND, PAGE_NAME
from pagedesk.core.change_feed import StoreChange
from pagedesk.core.entity_store import EntityRecordStore, Record
from pagedesk.core.text import decode_entities


DEFAULT_PAGE_STATUS = "publish"
_LOGGER = logging.getLogger("pagedesk.controllers")

CallSoon = Callable[[Callable[[], None]], None]


def call_immediately(callback: Callable[[], None]) -> None:
    callback()


class ControllerStateError(RuntimeError):
    """Raised when an intent is issued in a state that does not allow it."""


class EditMode(str, Enum):
    EDIT = "edit"
    CREATE = "create"


class EditorPhase(str, Enum):
    CLOSED = "closed"
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class EditFormState:
    phase: EditorPhase
    title: str = ""
    error_message: str = ""
    has_edits: bool = False
    is_saving: bool = False

    @property
    def is_open(self) -> bool:
        return self.phase is not EditorPhase.CLOSED

    @property
    def save_enabled(self) -> bool:
        return self.is_open and self.has_edits and not self.is_saving

    @property
    def cancel_enabled(self) -> bool:
        return self.is_open and not self.is_saving

    @property
    def save_label(self) -> str:
        return "Saving" if self.is_saving else "Save"


EditFormListener = Callable[[EditFormState], None]
SaveFinishedCallback = Callable[[Record], None]


def _title_text(value: Any) -> str:
    if isinstance(value, Mapping):
        if "raw" in value:
            return str(value.get("raw") or "")
        return decode_entities(value.get("rendered") or "")
    if value is None:
        return ""
    return str(value)


class RecordEditController:
    """Editor protocol for one record, or for a new record in create mode.

    In edit mode the store holds the draft: every title change is an edit
    intent applied to the store right away, so editors bound to the same key
    see each other's changes. In create mode there is no key to attach edits
    to and the controller keeps its own draft title.

    A save that resolves to a record closes the editor and calls
    ``on_save_finished`` once. A save that resolves to nothing leaves the
    editor open; the store's last save error is then part of the state.
    """

    def __init__(
        self,
        store: EntityRecordStore,
        *,
        key: Hashable | None = None,
        kind: str = PAGE_KIND,
        name: str = PAGE_NAME,
        default_status: str = DEFAULT_PAGE_STATUS,
        call_soon: CallSoon | None = None,
        on_save_finished: SaveFinishedCallback | None = None,
    ) -> None:
        self._store = store
        self._key = key
        self._mode = EditMode.CREATE if key is None else EditMode.EDIT
        self._kind = kind
        self._name = name
        self._default_status = str(default_status or DEFAULT_PAGE_STATUS)
        self._call_soon = call_soon or call_immediately
        self._on_save_finished = on_save_finished
        self._is_open = False
        self._draft_title = ""
        self._save_attempt = 0
        self._saved_this_session = False
        self._listeners: list[EditFormListener] = []
        self._unsubscribe: Callable[[], None] | None = store.subscribe(self._on_store_change)

    @classmethod
    def for_record(cls, store: EntityRecordStore, key: Hashable, **kwargs: Any) -> RecordEditController:
        if key is None:
            raise ValueError("An existing record needs a key.")
        return cls(store, key=key, **kwargs)

    @classmethod
    def for_new_record(cls, store: EntityRecordStore, **kwargs: Any) -> RecordEditController:
        kwargs.pop("key", None)
        return cls(store, key=None, **kwargs)

    @property
    def key(self) -> Hashable | None:
        return self._key

    @property
    def mode(self) -> EditMode:
        return self._mode

    @property
    def is_open(self) -> bool:
        return self._is_open

    def set_on_save_finished(self, callback: SaveFinishedCallback | None) -> None:
        self._on_save_finished = callback

    def open(self) -> None:
        if self._is_open:
            return
        self._is_open = True
        self._saved_this_session = False
        if self._mode is EditMode.CREATE:
            self._draft_title = ""
        self._notify()

    def change_title(self, title: str) -> None:
        if not self._is_open:
            raise ControllerStateError("The editor is closed.")
        text = str(title or "")
        if self._mode is EditMode.EDIT:
            # The store notifies subscribers, including this controller.
            self._store.edit_entity_record(self._kind, self._name, self._key, {"title": text})
            return
        self._draft_title = text
        self._notify()

    def save(self) -> Future:
        state = self.state()
        if not state.save_enabled:
            raise ControllerStateError(f"Save is not available while the editor is {state.phase.value}.")
        if self._mode is EditMode.EDIT:
            future = self._store.save_edited_entity_record(self._kind, self._name, self._key)
        else:
            future = self._store.save_entity_record(
                self._kind,
                self._name,
                {"title": self._draft_title, "status": self._default_status},
            )
        self._save_attempt += 1
        self._saved_this_session = True
        attempt = self._save_attempt
        future.add_done_callback(
            lambda settled: self._call_soon(lambda: self._on_save_settled(attempt, settled))
        )
        return future

    def cancel(self) -> None:
        if not self._is_open:
            return
        if self._store.is_saving_entity_record(self._kind, self._name, self._key):
            raise ControllerStateError("Cannot cancel while a save is in flight.")
        self._is_open = False
        self._save_attempt += 1
        self._notify()

    def state(self) -> EditFormState:
        if not self._is_open:
            return EditFormState(phase=EditorPhase.CLOSED)
        store = self._store
        if self._mode is EditMode.EDIT:
            record = store.get_edited_entity_record(self._kind, self._name, self._key)
            title = _title_text(record.get("title"))
            has_edits = store.has_edits_for_entity_record(self._kind, self._name, self._key)
        else:
            title = self._draft_title
            has_edits = bool(title)
        is_saving = store.is_saving_entity_record(self._kind, self._name, self._key)
        error = store.get_last_entity_save_error(self._kind, self._name, self._key)
        if self._mode is EditMode.CREATE and not self._saved_this_session:
            # The key-less slot is shared by every creator; an older failure is not ours.
            error = None
        if is_saving:
            phase = EditorPhase.SAVING
        elif error is not None and has_edits:
            phase = EditorPhase.ERRORED
        elif has_edits:
            phase = EditorPhase.DIRTY
        else:
            phase = EditorPhase.CLEAN
        return EditFormState(
            phase=phase,
            title=title,
            error_message=error.message if phase is EditorPhase.ERRORED else "",
            has_edits=has_edits,
            is_saving=is_saving,
        )

    def subscribe(self, listener: EditFormListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return

        return _unsubscribe

    def close(self) -> None:
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()
        self._listeners.clear()

    def _on_save_settled(self, attempt: int, future: Future) -> None:
        if attempt != self._save_attempt or not self._is_open:
            return
        record = None
        if future.cancelled():
            _LOGGER.warning("Save of %s/%s %s was cancelled", self._kind, self._name, self._key)
        elif future.exception() is not None:
            _LOGGER.warning(
                "Save of %s/%s %s raised: %s",
                self._kind,
                self._name,
                self._key,
                future.exception(),
            )
        else:
            record = future.result()
        if not record:
            self._notify()
            return
        self._is_open = False
        self._draft_title = ""
        callback = self._on_save_finished
        if callback is not None:
            callback(record)
        self._notify()

    def _on_store_change(self, change: StoreChange) -> None:
        if not self._is_open or not change.concerns(self._kind, self._name, self._key):
            return
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.state()
        for listener in tuple(self._listeners):
            listener(state)
