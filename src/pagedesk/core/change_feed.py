from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Hashable


_LOGGER = logging.getLogger("pagedesk.store")


def _utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@dataclass(frozen=True, slots=True)
class StoreChange:
    sequence: int
    timestamp: str
    event_type: str
    kind: str
    name: str
    key: Hashable | None = None

    def concerns(self, kind: str, name: str, key: Hashable | None = None) -> bool:
        """True when the change touches ``kind/name`` (and ``key``, when given)."""
        if self.kind != kind or self.name != name:
            return False
        if key is None:
            return True
        # Query-level changes (no key) may affect any record of the type.
        return self.key is None or self.key == key


StoreListener = Callable[[StoreChange], None]


class ChangeFeed:
    """Sequenced change notifications for store subscribers."""

    def __init__(self, *, history_limit: int = 200) -> None:
        self._sequence = 0
        self._history: list[StoreChange] = []
        self._history_limit = max(1, int(history_limit))
        self._subscribers: list[StoreListener] = []
        self._lock = RLock()

    def record(
        self,
        event_type: str,
        *,
        kind: str,
        name: str,
        key: Hashable | None = None,
    ) -> StoreChange:
        with self._lock:
            self._sequence += 1
            change = StoreChange(
                sequence=self._sequence,
                timestamp=_utc_iso_now(),
                event_type=event_type,
                kind=kind,
                name=name,
                key=key,
            )
            self._history.append(change)
            if len(self._history) > self._history_limit:
                del self._history[: len(self._history) - self._history_limit]
            subscribers = tuple(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(change)
            except Exception:
                _LOGGER.exception("Store listener failed for %s (%s/%s)", event_type, kind, name)
        return change

    @property
    def sequence(self) -> int:
        with self._lock:
            return self._sequence

    def tail(self, *, limit: int = 50) -> tuple[StoreChange, ...]:
        safe_limit = max(1, int(limit))
        with self._lock:
            return tuple(self._history[-safe_limit:])

    def subscribe(self, callback: StoreListener) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._subscribers.remove(callback)
                except ValueError:
                    return

        return _unsubscribe
