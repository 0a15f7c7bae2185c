from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from datetime import datetime, timezone
from itertools import count
from threading import RLock
from typing import Any, Iterable

from pagedesk.core.entity_store import EntityConfig, EntityStoreError, Record, RecordKey
from pagedesk.core.text import decode_entities, encode_entities


DEFAULT_PAGE_SIZE = 10
_RENDERED_ATTRIBUTES: tuple[str, ...] = ("title", "content", "excerpt")


def _utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _as_raw_text(value: Any) -> str:
    if isinstance(value, Mapping):
        if "raw" in value:
            return str(value.get("raw") or "")
        return decode_entities(value.get("rendered") or "")
    if value is None:
        return ""
    return str(value)


def _rendered_field(raw: str) -> dict[str, str]:
    return {"raw": raw, "rendered": encode_entities(raw)}


class MemoryRecordBackend:
    """In-process record backend with REST-like search and paging.

    Records are grouped per ``kind/name``; ids come from a single counter so
    they never collide across entity types. Search is a case-insensitive
    substring match over title and content; results are newest first.
    """

    def __init__(
        self,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        seed: Mapping[tuple[str, str], Iterable[Mapping[str, Any]]] | None = None,
    ) -> None:
        self._lock = RLock()
        self._page_size = max(1, int(page_size))
        self._ids = count(1)
        self._tables: dict[tuple[str, str], dict[RecordKey, Record]] = {}
        for (kind, name), rows in (seed or {}).items():
            for row in rows:
                self._insert(kind, name, row)

    @property
    def page_size(self) -> int:
        return self._page_size

    def records(self, kind: str, name: str) -> list[Record]:
        with self._lock:
            return [deepcopy(row) for row in self._table(kind, name).values()]

    def fetch_records(self, entity: EntityConfig, query: Mapping[str, Any]) -> list[Record]:
        search = str(query.get("search", "") or "").strip().casefold()
        per_page = _positive_int(query.get("per_page"), default=self._page_size)
        page = _positive_int(query.get("page"), default=1)
        status = str(query.get("status", "") or "").strip()
        with self._lock:
            rows = list(self._table(entity.kind, entity.name).values())
        rows.sort(key=lambda row: (str(row.get("date", "")), _sortable_key(row.get("id"))), reverse=True)
        matched: list[Record] = []
        for row in rows:
            if status and row.get("status") != status:
                continue
            if search:
                haystack = " ".join(
                    _as_raw_text(row.get(field_name)) for field_name in ("title", "content")
                ).casefold()
                if search not in haystack:
                    continue
            matched.append(row)
        start = (page - 1) * per_page
        return [deepcopy(row) for row in matched[start : start + per_page]]

    def create_record(self, entity: EntityConfig, fields: Mapping[str, Any]) -> Record:
        title = _as_raw_text(fields.get("title")).strip()
        if not title and not _as_raw_text(fields.get("content")).strip():
            raise EntityStoreError(
                "Content, title, and excerpt are empty.",
                code="empty_content",
                status=400,
            )
        with self._lock:
            return deepcopy(self._insert(entity.kind, entity.name, fields))

    def update_record(self, entity: EntityConfig, key: RecordKey, fields: Mapping[str, Any]) -> Record:
        with self._lock:
            table = self._table(entity.kind, entity.name)
            record = table.get(key)
            if record is None:
                raise EntityStoreError("Invalid post ID.", code="rest_post_invalid_id", status=404)
            for field_name, value in fields.items():
                if field_name == entity.key:
                    continue
                if field_name in _RENDERED_ATTRIBUTES:
                    record[field_name] = _rendered_field(_as_raw_text(value))
                else:
                    record[field_name] = deepcopy(value)
            record["modified"] = _utc_iso_now()
            return deepcopy(record)

    def delete_record(self, entity: EntityConfig, key: RecordKey) -> None:
        with self._lock:
            table = self._table(entity.kind, entity.name)
            if key not in table:
                raise EntityStoreError("Invalid post ID.", code="rest_post_invalid_id", status=404)
            del table[key]

    def _insert(self, kind: str, name: str, fields: Mapping[str, Any]) -> Record:
        record_id = next(self._ids)
        now_iso = _utc_iso_now()
        record: Record = {
            "id": record_id,
            "date": str(fields.get("date") or now_iso),
            "modified": now_iso,
            "status": str(fields.get("status") or "draft"),
            "type": name,
        }
        for field_name in _RENDERED_ATTRIBUTES:
            record[field_name] = _rendered_field(_as_raw_text(fields.get(field_name)))
        for field_name, value in fields.items():
            if field_name in record or field_name == "id":
                continue
            record[field_name] = deepcopy(value)
        self._table(kind, name)[record_id] = record
        return record

    def _table(self, kind: str, name: str) -> dict[RecordKey, Record]:
        return self._tables.setdefault((kind, name), {})


def _positive_int(value: Any, *, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return max(1, int(default))
    return max(1, parsed)


def _sortable_key(value: Any) -> tuple[int, str]:
    if isinstance(value, int):
        return (value, "")
    return (0, str(value))
