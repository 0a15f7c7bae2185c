from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Hashable

from pagedesk.app.collection_view import PAGE_KIND, PAGE_NAME
from pagedesk.app.record_edit_controller import ControllerStateError
from pagedesk.core.change_feed import StoreChange
from pagedesk.core.entity_store import EntityRecordStore


DELETE_LABEL = "Delete"
DELETING_LABEL = "Deleting"
_DELETE_EVENTS = frozenset({"record.deleting", "record.deleted", "record.delete_failed"})


@dataclass(frozen=True, slots=True)
class DeleteControlState:
    is_deleting: bool = False
    error_message: str = ""

    @property
    def enabled(self) -> bool:
        return not self.is_deleting

    @property
    def label(self) -> str:
        return DELETING_LABEL if self.is_deleting else DELETE_LABEL


DeleteControlListener = Callable[[DeleteControlState], None]


class RecordDeleteController:
    """Delete intent for one record.

    A successful delete needs no follow-up here: the record leaves every
    cached query in the store and the collection drops the row on its own.
    A failed delete returns the control to idle with the error attached.
    """

    def __init__(
        self,
        store: EntityRecordStore,
        key: Hashable,
        *,
        kind: str = PAGE_KIND,
        name: str = PAGE_NAME,
    ) -> None:
        if key is None:
            raise ValueError("Deleting needs a record key.")
        self._store = store
        self._key = key
        self._kind = kind
        self._name = name
        self._listeners: list[DeleteControlListener] = []
        self._unsubscribe: Callable[[], None] | None = store.subscribe(self._on_store_change)

    @property
    def key(self) -> Hashable:
        return self._key

    def state(self) -> DeleteControlState:
        error = self._store.get_last_entity_delete_error(self._kind, self._name, self._key)
        return DeleteControlState(
            is_deleting=self._store.is_deleting_entity_record(self._kind, self._name, self._key),
            error_message=error.message if error is not None else "",
        )

    def delete(self) -> Future:
        if not self.state().enabled:
            raise ControllerStateError("A delete is already in flight for this record.")
        return self._store.delete_entity_record(self._kind, self._name, self._key)

    def subscribe(self, listener: DeleteControlListener) -> Callable[[], None]:
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

    def _on_store_change(self, change: StoreChange) -> None:
        if change.key != self._key or not change.concerns(self._kind, self._name, self._key):
            return
        if change.event_type not in _DELETE_EVENTS:
            return
        state = self.state()
        for listener in tuple(self._listeners):
            listener(state)
