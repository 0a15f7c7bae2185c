from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from dataclasses import dataclass
from time import perf_counter
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from pagedesk.core.entity_store import EntityConfig, EntityStoreError, Record, RecordKey
from pagedesk.core.store_trace import trace


_DEFAULT_TIMEOUT_SECONDS = 10.0
_DEFAULT_PER_PAGE = 10
_REST_PREFIX = "/wp-json"
_REST_BASES: dict[tuple[str, str], str] = {
    ("postType", "page"): "/wp/v2/pages",
    ("postType", "post"): "/wp/v2/posts",
}


@dataclass(frozen=True, slots=True)
class WordPressBackendConfig:
    url: str = ""
    username: str = ""
    application_password: str = ""
    timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS
    per_page: int = _DEFAULT_PER_PAGE

    @property
    def configured(self) -> bool:
        return bool(self.url)

    @property
    def authenticated(self) -> bool:
        return bool(self.username and self.application_password)

    @classmethod
    def from_mapping(cls, value: Mapping[str, Any] | None) -> WordPressBackendConfig:
        raw = value or {}
        url = str(raw.get("url", "") or "").strip().rstrip("/")
        username = str(raw.get("username", "") or "").strip()
        # Application passwords are displayed with spaces; WordPress ignores them.
        application_password = str(raw.get("application_password", "") or "").replace(" ", "").strip()
        try:
            timeout_seconds = float(raw.get("timeout_seconds", _DEFAULT_TIMEOUT_SECONDS))
        except (TypeError, ValueError):
            timeout_seconds = _DEFAULT_TIMEOUT_SECONDS
        try:
            per_page = int(raw.get("per_page", _DEFAULT_PER_PAGE))
        except (TypeError, ValueError):
            per_page = _DEFAULT_PER_PAGE
        return cls(
            url=url,
            username=username,
            application_password=application_password,
            timeout_seconds=max(1.0, timeout_seconds),
            per_page=min(100, max(1, per_page)),
        )


class WordPressRestBackend:
    """Record backend for the WordPress REST API (``/wp-json/wp/v2``)."""

    def __init__(self, config: WordPressBackendConfig | None = None) -> None:
        self._config = config or WordPressBackendConfig()

    @property
    def config(self) -> WordPressBackendConfig:
        return self._config

    def fetch_records(self, entity: EntityConfig, query: Mapping[str, Any]) -> list[Record]:
        params: dict[str, Any] = {
            "context": "edit" if self._config.authenticated else "view",
            "per_page": self._config.per_page,
        }
        for key, value in query.items():
            if value is None or value == "":
                continue
            params[str(key)] = value
        rows = self._request_json(method="GET", path=self._base_path(entity), params=params)
        if not isinstance(rows, list):
            raise EntityStoreError("WordPress returned a non-list collection.", code="invalid_response")
        return [dict(row) for row in rows if isinstance(row, Mapping)]

    def create_record(self, entity: EntityConfig, fields: Mapping[str, Any]) -> Record:
        created = self._request_json(
            method="POST",
            path=self._base_path(entity),
            params={"context": "edit"},
            payload=dict(fields),
        )
        return _as_record(created)

    def update_record(self, entity: EntityConfig, key: RecordKey, fields: Mapping[str, Any]) -> Record:
        updated = self._request_json(
            method="POST",
            path=self._item_path(entity, key),
            params={"context": "edit"},
            payload=dict(fields),
        )
        return _as_record(updated)

    def delete_record(self, entity: EntityConfig, key: RecordKey) -> None:
        self._request_json(
            method="DELETE",
            path=self._item_path(entity, key),
            params={"force": "true"},
        )

    def _base_path(self, entity: EntityConfig) -> str:
        base = _REST_BASES.get((entity.kind, entity.name))
        if base is None:
            raise EntityStoreError(
                f"No REST route is known for {entity.kind}/{entity.name}.",
                code="unknown_route",
            )
        return base

    def _item_path(self, entity: EntityConfig, key: RecordKey) -> str:
        return f"{self._base_path(entity)}/{quote(str(key), safe='')}"

    def _require_config(self) -> WordPressBackendConfig:
        if self._config.configured:
            return self._config
        raise EntityStoreError(
            "WordPress backend is selected, but the site URL is missing.",
            code="not_configured",
        )

    def _request_json(
        self,
        *,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        payload: Any | None = None,
    ) -> Any:
        config = self._require_config()
        verb = method.upper()
        query = f"?{urlencode(params, doseq=True)}" if params else ""
        request_url = f"{config.url}{_REST_PREFIX}{path}{query}"
        request_data: bytes | None = None
        if payload is not None:
            request_data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers = {"Accept": "application/json"}
        if config.authenticated:
            token = base64.b64encode(
                f"{config.username}:{config.application_password}".encode("utf-8")
            ).decode("ascii")
            headers["Authorization"] = f"Basic {token}"
        if payload is not None:
            headers["Content-Type"] = "application/json"

        started_at = perf_counter()
        request = Request(request_url, data=request_data, headers=headers, method=verb)
        try:
            with urlopen(request, timeout=config.timeout_seconds) as response:
                status_code = int(response.getcode() or 0)
                body = response.read()
        except HTTPError as exc:
            try:
                raw_body = exc.read()
            except OSError:
                raw_body = b""
            error = _error_from_response(int(exc.code), str(exc.reason), raw_body)
            _trace_request(verb, path, started_at, status=error.status, error=error.code)
            raise error from exc
        except URLError as exc:
            _trace_request(verb, path, started_at, error=str(exc.reason))
            raise EntityStoreError(f"Could not reach {config.url}: {exc.reason}", code="network_error") from exc

        _trace_request(verb, path, started_at, status=status_code, body_bytes=len(body))
        if not body:
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise EntityStoreError(
                f"WordPress returned a non-JSON payload for {path} ({len(body)} bytes).",
                code="invalid_json",
            ) from exc


def _trace_request(method: str, path: str, started_at: float, **details: object) -> None:
    trace(
        "wordpress.request",
        method=method,
        path=path,
        outcome="error" if "error" in details else "ok",
        duration_ms=round((perf_counter() - started_at) * 1000.0, 2),
        **details,
    )


def _error_from_response(status: int, reason: str, body: bytes) -> EntityStoreError:
    message = ""
    code = ""
    if body:
        try:
            decoded = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            decoded = None
        if isinstance(decoded, Mapping):
            message = str(decoded.get("message", "") or "").strip()
            code = str(decoded.get("code", "") or "").strip()
    if not message:
        message = f"{status} {reason}".strip()
    return EntityStoreError(message, code=code or "http_error", status=status)


def _as_record(value: Any) -> Record:
    if isinstance(value, Mapping):
        return dict(value)
    raise EntityStoreError("WordPress returned an unexpected record payload.", code="invalid_response")
