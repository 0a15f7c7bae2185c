from __future__ import annotations

from concurrent.futures import Executor

from pagedesk.app.collection_view import PAGE_KIND, PAGE_NAME
from pagedesk.app.settings_store import STORE_BACKEND_WORDPRESS, PanelSettings
from pagedesk.core.entity_store import EntityRecordStore, RecordBackend
from pagedesk.core.memory_backend import MemoryRecordBackend
from pagedesk.core.wordpress_backend import WordPressBackendConfig, WordPressRestBackend


_DEMO_PAGES: tuple[dict[str, str], ...] = (
    {"title": "Sample Page", "status": "publish"},
    {"title": "About us", "status": "publish"},
    {"title": "Hello & World", "status": "publish"},
)


def create_record_backend(settings: PanelSettings, *, seed_demo_pages: bool = False) -> RecordBackend:
    if settings.store_backend == STORE_BACKEND_WORDPRESS:
        wordpress = settings.wordpress
        return WordPressRestBackend(
            WordPressBackendConfig.from_mapping(
                {
                    "url": wordpress.url,
                    "username": wordpress.username,
                    "application_password": wordpress.application_password,
                    "timeout_seconds": wordpress.timeout_seconds,
                    "per_page": settings.pages_per_page,
                }
            )
        )
    seed = {(PAGE_KIND, PAGE_NAME): _DEMO_PAGES} if seed_demo_pages else None
    return MemoryRecordBackend(page_size=settings.pages_per_page, seed=seed)


def create_entity_store(
    settings: PanelSettings,
    *,
    executor: Executor | None = None,
    seed_demo_pages: bool = False,
) -> EntityRecordStore:
    backend = create_record_backend(settings, seed_demo_pages=seed_demo_pages)
    return EntityRecordStore(backend, executor=executor)
