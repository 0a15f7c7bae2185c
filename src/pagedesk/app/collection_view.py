from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable

from pagedesk.core.change_feed import StoreChange
from pagedesk.core.entity_store import EntityRecordStore
from pagedesk.core.text import decode_entities


PAGE_KIND = "postType"
PAGE_NAME = "page"


class CollectionStatus(str, Enum):
    LOADING = "loading"
    EMPTY = "empty"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class RecordRow:
    key: Hashable
    title: str


@dataclass(frozen=True, slots=True)
class CollectionState:
    status: CollectionStatus
    search_term: str = ""
    rows: tuple[RecordRow, ...] = ()
    error_message: str = ""

    @property
    def is_loading(self) -> bool:
        return self.status is CollectionStatus.LOADING

    @property
    def is_empty(self) -> bool:
        return self.status is CollectionStatus.EMPTY


def build_query(search_term: str) -> dict[str, Any]:
    """Collection query for a search term; an empty term leaves the query unconstrained."""
    query: dict[str, Any] = {}
    if search_term:
        query["search"] = search_term
    return query


def display_title(record: Mapping[str, Any]) -> str:
    title = record.get("title")
    if isinstance(title, Mapping):
        rendered = title.get("rendered")
        if rendered is None:
            rendered = title.get("raw", "")
        return decode_entities(rendered)
    return decode_entities(title)


CollectionListener = Callable[[CollectionState], None]


class CollectionView:
    """Search filter plus the store-derived list of matching records."""

    def __init__(
        self,
        store: EntityRecordStore,
        *,
        kind: str = PAGE_KIND,
        name: str = PAGE_NAME,
    ) -> None:
        self._store = store
        self._kind = kind
        self._name = name
        self._key_field = store.get_entity_config(kind, name).key
        self._search_term = ""
        self._listeners: list[CollectionListener] = []
        self._unsubscribe: Callable[[], None] | None = store.subscribe(self._on_store_change)

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def name(self) -> str:
        return self._name

    @property
    def search_term(self) -> str:
        return self._search_term

    def query(self) -> dict[str, Any]:
        return build_query(self._search_term)

    def search(self, term: str) -> None:
        normalized = str(term or "")
        if normalized == self._search_term:
            return
        self._search_term = normalized
        self._notify()

    def state(self) -> CollectionState:
        query = self.query()
        records = self._store.get_entity_records(self._kind, self._name, query)
        resolved = self._store.has_finished_resolution(self._kind, self._name, query)
        if not resolved:
            return CollectionState(status=CollectionStatus.LOADING, search_term=self._search_term)
        if not records:
            error = self._store.get_resolution_error(self._kind, self._name, query)
            return CollectionState(
                status=CollectionStatus.EMPTY,
                search_term=self._search_term,
                error_message=error.message if error is not None else "",
            )
        rows = tuple(RecordRow(key=record.get(self._key_field), title=display_title(record)) for record in records)
        return CollectionState(status=CollectionStatus.READY, search_term=self._search_term, rows=rows)

    def subscribe(self, listener: CollectionListener) -> Callable[[], None]:
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
        if not change.concerns(self._kind, self._name):
            return
        # Drafts never change the persisted titles the list shows.
        if change.event_type == "record.edited":
            return
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.state()
        for listener in tuple(self._listeners):
            listener(state)
