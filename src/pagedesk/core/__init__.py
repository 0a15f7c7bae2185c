from __future__ import annotations

from pagedesk.core.change_feed import ChangeFeed, StoreChange, StoreListener
from pagedesk.core.entity_store import (
    DEFAULT_ENTITIES,
    EntityConfig,
    EntityRecordStore,
    EntityStoreError,
    RecordBackend,
)
from pagedesk.core.memory_backend import MemoryRecordBackend
from pagedesk.core.text import decode_entities, encode_entities
from pagedesk.core.wordpress_backend import WordPressBackendConfig, WordPressRestBackend

__all__ = [
    "ChangeFeed",
    "DEFAULT_ENTITIES",
    "EntityConfig",
    "EntityRecordStore",
    "EntityStoreError",
    "MemoryRecordBackend",
    "RecordBackend",
    "StoreChange",
    "StoreListener",
    "WordPressBackendConfig",
    "WordPressRestBackend",
    "decode_entities",
    "encode_entities",
]
