from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from time import perf_counter
from typing import Hashable


TRACE_LOGGER_NAME = "pagedesk.store.trace"
_STORE_TRACE_ENV = "PAGEDESK_STORE_DEBUG"
_STORE_TRACE_LOG_ENV = "PAGEDESK_STORE_DEBUG_LOG"
_REDACTED_VALUE = "<redacted>"
_SECRET_KEYS = frozenset(
    {
        "application_password",
        "authorization",
        "password",
        "secret",
        "token",
    }
)

_LOGGER = logging.getLogger(TRACE_LOGGER_NAME)


def redact(value: object) -> object:
    """Copy of ``value`` with secret-looking mapping entries masked."""
    if isinstance(value, Mapping):
        return {
            str(key): _REDACTED_VALUE if str(key).strip().casefold() in _SECRET_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return [redact(item) for item in sorted(value, key=str)]
    return value


class RedactingFilter(logging.Filter):
    """Masks secrets in mapping arguments before any handler formats the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(redact(arg) if isinstance(arg, Mapping) else arg for arg in record.args)
        elif isinstance(record.args, Mapping):
            record.args = redact(record.args)
        return True


_LOGGER.addFilter(RedactingFilter())


def trace_enabled() -> bool:
    return _LOGGER.isEnabledFor(logging.DEBUG)


def trace(event: str, **details: object) -> None:
    if not trace_enabled():
        return
    _LOGGER.debug("%s %s", event, details)


class OperationTrace:
    """Times one store operation and logs its outcome once it settles."""

    __slots__ = ("operation", "kind", "name", "key", "_started_at", "_finished")

    def __init__(self, operation: str, *, kind: str, name: str, key: Hashable | None = None) -> None:
        self.operation = operation
        self.kind = kind
        self.name = name
        self.key = key
        self._started_at = perf_counter()
        self._finished = False

    @property
    def elapsed_ms(self) -> float:
        return round((perf_counter() - self._started_at) * 1000.0, 2)

    def succeeded(self, **details: object) -> None:
        self._finish("ok", details)

    def failed(self, error: str, **details: object) -> None:
        self._finish("error", {"error": error, **details})

    def _finish(self, outcome: str, details: dict[str, object]) -> None:
        if self._finished:
            return
        self._finished = True
        trace(
            f"store.{self.operation}",
            kind=self.kind,
            name=self.name,
            key=self.key,
            outcome=outcome,
            duration_ms=self.elapsed_ms,
            **details,
        )


def configure_store_trace(environ: Mapping[str, str] | None = None) -> logging.Handler | None:
    """Route the store trace to stderr or a file when ``PAGEDESK_STORE_DEBUG`` is on."""
    env = os.environ if environ is None else environ
    if str(env.get(_STORE_TRACE_ENV, "") or "").strip().casefold() not in {"1", "true", "yes", "on", "y"}:
        return None
    for existing in _LOGGER.handlers:
        if getattr(existing, "_pagedesk_trace", False):
            return existing
    target = str(env.get(_STORE_TRACE_LOG_ENV, "") or "").strip()
    handler: logging.Handler
    if target:
        destination = Path(target).expanduser()
        destination.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(destination, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[store-trace] %(asctime)s %(message)s"))
    handler._pagedesk_trace = True  # type: ignore[attr-defined]
    _LOGGER.addHandler(handler)
    _LOGGER.setLevel(logging.DEBUG)
    _LOGGER.propagate = False
    return handler
