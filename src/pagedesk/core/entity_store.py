from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from copy import deepcopy
from dataclasses import dataclass, field
from threading import Lock, RLock
from typing import Any, Callable, Hashable, Protocol

from pagedesk.core.change_feed import ChangeFeed, StoreChange, StoreListener
from pagedesk.core.store_trace import OperationTrace


_LOGGER = logging.getLogger("pagedesk.store")
_DEFAULT_MAX_WORKERS = 4
_MAX_CACHED_QUERIES = 32
_CREATE_SLOT = None

RecordKey = Hashable
Record = dict[str, Any]


class EntityStoreError(RuntimeError):
    """A failed store read or write, carrying a displayable message."""

    def __init__(self, message: str = "", *, code: str = "", status: int = 0) -> None:
        detail = str(message or "").strip() or "The request failed."
        super().__init__(detail)
        self.message = detail
        self.code = str(code or "").strip()
        self.status = max(0, int(status or 0))


@dataclass(frozen=True, slots=True)
class EntityConfig:
    kind: str
    name: str
    key: str = "id"
    raw_attributes: tuple[str, ...] = ("title", "content", "excerpt")


DEFAULT_ENTITIES: tuple[EntityConfig, ...] = (
    EntityConfig(kind="postType", name="page"),
    EntityConfig(kind="postType", name="post"),
)


class RecordBackend(Protocol):
    def fetch_records(self, entity: EntityConfig, query: Mapping[str, Any]) -> list[Record]:
        raise NotImplementedError

    def create_record(self, entity: EntityConfig, fields: Mapping[str, Any]) -> Record:
        raise NotImplementedError

    def update_record(self, entity: EntityConfig, key: RecordKey, fields: Mapping[str, Any]) -> Record:
        raise NotImplementedError

    def delete_record(self, entity: EntityConfig, key: RecordKey) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class _QueryState:
    query: dict[str, Any] = field(default_factory=dict)
    items: list[RecordKey] | None = None
    resolved: bool = False
    resolving: bool = False
    stale: bool = False
    error: EntityStoreError | None = None


@dataclass(slots=True)
class _EntityState:
    config: EntityConfig
    records: dict[RecordKey, Record] = field(default_factory=dict)
    edits: dict[RecordKey, dict[str, Any]] = field(default_factory=dict)
    queries: OrderedDict[tuple, _QueryState] = field(default_factory=OrderedDict)
    saving: dict[RecordKey | None, int] = field(default_factory=dict)
    deleting: dict[RecordKey, int] = field(default_factory=dict)
    save_errors: dict[RecordKey | None, EntityStoreError] = field(default_factory=dict)
    delete_errors: dict[RecordKey, EntityStoreError] = field(default_factory=dict)
    deleted: set[RecordKey] = field(default_factory=set)
    key_locks: dict[RecordKey, Lock] = field(default_factory=dict)


class EntityRecordStore:
    """Generic entity-record store: cached records, drafts, write flags and errors.

    Reads are synchronous and never block on the backend. The first read of a
    query, and the first read after it went stale, starts its resolution on the
    executor. Only the most recently read queries stay cached. Writes return
    futures that settle once the backend call finishes. A failed write never raises into the
    caller: its future resolves to ``None`` (``False`` for deletes) and the
    error is kept per key until the next successful write of the same kind.
    Writes to the same key are serialized; writes to different keys are not.
    """

    def __init__(
        self,
        backend: RecordBackend,
        *,
        entities: tuple[EntityConfig, ...] | list[EntityConfig] = DEFAULT_ENTITIES,
        executor: Executor | None = None,
    ) -> None:
        self._backend = backend
        self._lock = RLock()
        self._feed = ChangeFeed()
        self._entities: dict[tuple[str, str], _EntityState] = {}
        for config in entities:
            self.register_entity(config)
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=_DEFAULT_MAX_WORKERS,
            thread_name_prefix="pagedesk-store",
        )
        self._closed = False

    @property
    def backend(self) -> RecordBackend:
        return self._backend

    def register_entity(self, config: EntityConfig) -> None:
        with self._lock:
            self._entities.setdefault((config.kind, config.name), _EntityState(config=config))

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        return self._feed.subscribe(listener)

    def recent_changes(self, *, limit: int = 50) -> tuple[StoreChange, ...]:
        return self._feed.tail(limit=limit)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def get_entity_config(self, kind: str, name: str) -> EntityConfig:
        return self._entity(kind, name).config

    # Queries -------------------------------------------------------------

    def get_entity_records(
        self,
        kind: str,
        name: str,
        query: Mapping[str, Any] | None = None,
    ) -> list[Record] | None:
        entity = self._entity(kind, name)
        query_key = _query_key(query)
        start = False
        with self._lock:
            state = entity.queries.get(query_key)
            if state is None:
                state = _QueryState(query=dict(query or {}))
                entity.queries[query_key] = state
                _evict_queries(entity, keep=query_key)
            else:
                entity.queries.move_to_end(query_key)
            if not state.resolving and (state.stale or not state.resolved):
                state.resolving = True
                state.stale = False
                start = True
            items = None
            if state.items is not None:
                items = [deepcopy(entity.records[key]) for key in state.items if key in entity.records]
        if start:
            self._schedule_resolution(entity, query_key, dict(state.query))
        return items

    def has_finished_resolution(
        self,
        kind: str,
        name: str,
        query: Mapping[str, Any] | None = None,
    ) -> bool:
        entity = self._entity(kind, name)
        with self._lock:
            state = entity.queries.get(_query_key(query))
            return bool(state is not None and state.resolved)

    def get_resolution_error(
        self,
        kind: str,
        name: str,
        query: Mapping[str, Any] | None = None,
    ) -> EntityStoreError | None:
        entity = self._entity(kind, name)
        with self._lock:
            state = entity.queries.get(_query_key(query))
            return state.error if state is not None else None

    def invalidate_entity_records(self, kind: str, name: str) -> None:
        """Mark every cached query of ``kind/name`` stale.

        Stale queries keep their items and stay resolved; each one is fetched
        again on its next read.
        """
        entity = self._entity(kind, name)
        with self._lock:
            _mark_stale(entity)
        self._feed.record("query.invalidated", kind=kind, name=name)

    # Records -------------------------------------------------------------

    def get_entity_record(self, kind: str, name: str, key: RecordKey) -> Record | None:
        entity = self._entity(kind, name)
        with self._lock:
            record = entity.records.get(key)
            return deepcopy(record) if record is not None else None

    def get_edited_entity_record(self, kind: str, name: str, key: RecordKey) -> Record:
        entity = self._entity(kind, name)
        with self._lock:
            merged = _raw_view(entity.records.get(key) or {}, entity.config.raw_attributes)
            merged.update(deepcopy(entity.edits.get(key) or {}))
            return merged

    def edit_entity_record(
        self,
        kind: str,
        name: str,
        key: RecordKey,
        edits: Mapping[str, Any],
    ) -> None:
        entity = self._entity(kind, name)
        with self._lock:
            persisted = _raw_view(entity.records.get(key) or {}, entity.config.raw_attributes)
            pending = entity.edits.setdefault(key, {})
            for field_name, value in edits.items():
                if field_name == entity.config.key:
                    continue
                if field_name in persisted and persisted[field_name] == value:
                    pending.pop(field_name, None)
                else:
                    pending[field_name] = deepcopy(value)
            if not pending:
                entity.edits.pop(key, None)
        self._feed.record("record.edited", kind=kind, name=name, key=key)

    def has_edits_for_entity_record(self, kind: str, name: str, key: RecordKey) -> bool:
        entity = self._entity(kind, name)
        with self._lock:
            return bool(entity.edits.get(key))

    def get_entity_record_edits(self, kind: str, name: str, key: RecordKey) -> dict[str, Any]:
        entity = self._entity(kind, name)
        with self._lock:
            return deepcopy(entity.edits.get(key) or {})

    # Write flags and errors ----------------------------------------------

    def is_saving_entity_record(self, kind: str, name: str, key: RecordKey | None = _CREATE_SLOT) -> bool:
        entity = self._entity(kind, name)
        with self._lock:
            return entity.saving.get(key, 0) > 0

    def is_deleting_entity_record(self, kind: str, name: str, key: RecordKey) -> bool:
        entity = self._entity(kind, name)
        with self._lock:
            return entity.deleting.get(key, 0) > 0

    def get_last_entity_save_error(
        self,
        kind: str,
        name: str,
        key: RecordKey | None = _CREATE_SLOT,
    ) -> EntityStoreError | None:
        entity = self._entity(kind, name)
        with self._lock:
            return entity.save_errors.get(key)

    def get_last_entity_delete_error(self, kind: str, name: str, key: RecordKey) -> EntityStoreError | None:
        entity = self._entity(kind, name)
        with self._lock:
            return entity.delete_errors.get(key)

    # Writes --------------------------------------------------------------

    def save_edited_entity_record(self, kind: str, name: str, key: RecordKey) -> Future:
        self._ensure_open()
        entity = self._entity(kind, name)
        with self._lock:
            edits = deepcopy(entity.edits.get(key) or {})
            if not edits:
                return _completed(None)
            _begin(entity.saving, key)
        self._feed.record("record.saving", kind=kind, name=name, key=key)
        return self._submit(self._run_update, entity, key, edits)

    def save_entity_record(self, kind: str, name: str, fields: Mapping[str, Any]) -> Future:
        self._ensure_open()
        entity = self._entity(kind, name)
        payload = deepcopy(dict(fields))
        key = payload.get(entity.config.key)
        if key is not None:
            payload.pop(entity.config.key, None)
            with self._lock:
                _begin(entity.saving, key)
            self._feed.record("record.saving", kind=kind, name=name, key=key)
            return self._submit(self._run_update, entity, key, payload)
        with self._lock:
            _begin(entity.saving, _CREATE_SLOT)
        self._feed.record("record.creating", kind=kind, name=name)
        return self._submit(self._run_create, entity, payload)

    def delete_entity_record(self, kind: str, name: str, key: RecordKey) -> Future:
        self._ensure_open()
        entity = self._entity(kind, name)
        with self._lock:
            _begin(entity.deleting, key)
        self._feed.record("record.deleting", kind=kind, name=name, key=key)
        return self._submit(self._run_delete, entity, key)

    # Workers -------------------------------------------------------------

    def _run_update(self, entity: _EntityState, key: RecordKey, fields: dict[str, Any]) -> Record | None:
        config = entity.config
        op = OperationTrace("save", kind=config.kind, name=config.name, key=key)
        with self._key_lock(entity, key):
            try:
                saved = _require_record(self._backend.update_record(config, key, fields))
            except Exception as exc:
                error = _as_store_error(exc)
                with self._lock:
                    entity.save_errors[key] = error
                    _end(entity.saving, key)
                    _release_key_lock(entity, key)
                _LOGGER.warning("Saving %s/%s %s failed: %s", config.kind, config.name, key, error.message)
                op.failed(error.message, code=error.code)
                self._feed.record("record.save_failed", kind=config.kind, name=config.name, key=key)
                return None

        with self._lock:
            entity.records[key] = deepcopy(saved)
            pending = entity.edits.get(key)
            if pending:
                for field_name, value in fields.items():
                    if field_name in pending and pending[field_name] == value:
                        pending.pop(field_name)
                if not pending:
                    entity.edits.pop(key, None)
            entity.save_errors.pop(key, None)
            _end(entity.saving, key)
            _release_key_lock(entity, key)
        op.succeeded(fields=sorted(fields))
        self._feed.record("record.saved", kind=config.kind, name=config.name, key=key)
        return deepcopy(saved)

    def _run_create(self, entity: _EntityState, fields: dict[str, Any]) -> Record | None:
        config = entity.config
        op = OperationTrace("create", kind=config.kind, name=config.name)
        try:
            created = _require_record(self._backend.create_record(config, fields))
            key = created.get(config.key)
            if key is None:
                raise EntityStoreError("The created record has no id.", code="invalid_response")
        except Exception as exc:
            error = _as_store_error(exc)
            with self._lock:
                entity.save_errors[_CREATE_SLOT] = error
                _end(entity.saving, _CREATE_SLOT)
            _LOGGER.warning("Creating %s/%s failed: %s", config.kind, config.name, error.message)
            op.failed(error.message, code=error.code)
            self._feed.record("record.save_failed", kind=config.kind, name=config.name)
            return None

        with self._lock:
            entity.records[key] = deepcopy(created)
            entity.deleted.discard(key)
            entity.save_errors.pop(_CREATE_SLOT, None)
            _end(entity.saving, _CREATE_SLOT)
            # Readers refetch on their next read; unread queries cost nothing.
            _mark_stale(entity)
        op.succeeded(created_key=key)
        self._feed.record("record.created", kind=config.kind, name=config.name, key=key)
        return deepcopy(created)

    def _run_delete(self, entity: _EntityState, key: RecordKey) -> bool:
        config = entity.config
        op = OperationTrace("delete", kind=config.kind, name=config.name, key=key)
        with self._key_lock(entity, key):
            try:
                self._backend.delete_record(config, key)
            except Exception as exc:
                error = _as_store_error(exc)
                with self._lock:
                    entity.delete_errors[key] = error
                    _end(entity.deleting, key)
                    _release_key_lock(entity, key)
                _LOGGER.warning("Deleting %s/%s %s failed: %s", config.kind, config.name, key, error.message)
                op.failed(error.message, code=error.code)
                self._feed.record("record.delete_failed", kind=config.kind, name=config.name, key=key)
                return False

        with self._lock:
            entity.records.pop(key, None)
            entity.edits.pop(key, None)
            # Only a fetch already in flight can still return the deleted key.
            if any(state.resolving for state in entity.queries.values()):
                entity.deleted.add(key)
            for state in entity.queries.values():
                if state.items is not None and key in state.items:
                    state.items = [item for item in state.items if item != key]
            entity.delete_errors.pop(key, None)
            entity.save_errors.pop(key, None)
            _end(entity.deleting, key)
            _release_key_lock(entity, key)
        op.succeeded()
        self._feed.record("record.deleted", kind=config.kind, name=config.name, key=key)
        return True

    def _resolve_query(self, entity: _EntityState, query_key: tuple, query: dict[str, Any]) -> None:
        config = entity.config
        op = OperationTrace("query", kind=config.kind, name=config.name)
        try:
            rows = self._backend.fetch_records(config, query)
        except Exception as exc:
            error = _as_store_error(exc)
            with self._lock:
                state = entity.queries.get(query_key)
                if state is not None:
                    state.error = error
                    state.resolved = True
                    state.resolving = False
                _forget_deleted_keys(entity)
            _LOGGER.warning("Loading %s/%s failed: %s", config.kind, config.name, error.message)
            op.failed(error.message, query=query)
            self._feed.record("query.failed", kind=config.kind, name=config.name)
            return

        with self._lock:
            keys: list[RecordKey] = []
            for row in rows or []:
                if not isinstance(row, Mapping):
                    continue
                key = row.get(config.key)
                if key is None or key in entity.deleted:
                    continue
                entity.records[key] = deepcopy(dict(row))
                keys.append(key)
            state = entity.queries.get(query_key)
            if state is not None:
                state.items = keys
                state.error = None
                state.resolved = True
                state.resolving = False
            _forget_deleted_keys(entity)
        op.succeeded(query=query, count=len(keys))
        self._feed.record("query.resolved", kind=config.kind, name=config.name)

    # Helpers -------------------------------------------------------------

    def _schedule_resolution(self, entity: _EntityState, query_key: tuple, query: dict[str, Any]) -> None:
        if self._closed:
            return
        self._submit(self._resolve_query, entity, query_key, query)

    def _ensure_open(self) -> None:
        if self._closed:
            raise EntityStoreError("The store is closed.", code="store_closed")

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        self._ensure_open()
        return self._executor.submit(fn, *args)

    def _entity(self, kind: str, name: str) -> _EntityState:
        with self._lock:
            entity = self._entities.get((kind, name))
        if entity is None:
            raise EntityStoreError(f"Unknown entity: {kind}/{name}", code="unknown_entity")
        return entity

    def _key_lock(self, entity: _EntityState, key: RecordKey) -> Lock:
        with self._lock:
            lock = entity.key_locks.get(key)
            if lock is None:
                lock = Lock()
                entity.key_locks[key] = lock
            return lock


def _mark_stale(entity: _EntityState) -> None:
    for state in entity.queries.values():
        state.stale = True


def _evict_queries(entity: _EntityState, *, keep: tuple) -> None:
    overflow = len(entity.queries) - _MAX_CACHED_QUERIES
    if overflow <= 0:
        return
    # Oldest reads first; a query with a fetch in flight stays until it lands.
    evictable = [
        query_key
        for query_key, state in entity.queries.items()
        if query_key != keep and not state.resolving
    ]
    for query_key in evictable[:overflow]:
        del entity.queries[query_key]


def _release_key_lock(entity: _EntityState, key: RecordKey) -> None:
    if entity.saving.get(key, 0) or entity.deleting.get(key, 0):
        return
    entity.key_locks.pop(key, None)


def _forget_deleted_keys(entity: _EntityState) -> None:
    if not any(state.resolving for state in entity.queries.values()):
        entity.deleted.clear()


def _begin(counters: dict, key: Any) -> None:
    counters[key] = counters.get(key, 0) + 1


def _end(counters: dict, key: Any) -> None:
    remaining = counters.get(key, 0) - 1
    if remaining > 0:
        counters[key] = remaining
    else:
        counters.pop(key, None)


def _completed(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return tuple(sorted((str(key), _freeze(item)) for key, item in value.items()))
    if isinstance(value, (list, tuple, set)):
        return tuple(_freeze(item) for item in value)
    return value


def _query_key(query: Mapping[str, Any] | None) -> tuple:
    if not query:
        return ()
    return tuple(sorted((str(key), _freeze(value)) for key, value in query.items()))


def _raw_view(record: Mapping[str, Any], raw_attributes: tuple[str, ...]) -> Record:
    flattened: Record = {}
    for field_name, value in record.items():
        if field_name in raw_attributes and isinstance(value, Mapping) and "raw" in value:
            flattened[field_name] = deepcopy(value["raw"])
        else:
            flattened[field_name] = deepcopy(value)
    return flattened


def _require_record(value: object) -> Record:
    if isinstance(value, Mapping) and value:
        return dict(value)
    raise EntityStoreError("The server returned an empty record.", code="invalid_response")


def _as_store_error(exc: BaseException) -> EntityStoreError:
    if isinstance(exc, EntityStoreError):
        return exc
    message = str(exc).strip() or exc.__class__.__name__
    return EntityStoreError(message, code="unknown_error")
