import pytest

from pagedesk.core.entity_store import EntityConfig, EntityStoreError
from pagedesk.core.memory_backend import MemoryRecordBackend

PAGES = EntityConfig(kind="postType", name="page")


def _titles(rows):
    return [row["title"]["raw"] for row in rows]


def test_created_record_has_raw_and_rendered_fields():
    backend = MemoryRecordBackend()

    record = backend.create_record(PAGES, {"title": "Hello & World"})

    assert record["id"] == 1
    assert record["status"] == "draft"
    assert record["type"] == "page"
    assert record["title"] == {"raw": "Hello & World", "rendered": "Hello &amp; World"}


def test_create_rejects_empty_content():
    backend = MemoryRecordBackend()

    with pytest.raises(EntityStoreError) as excinfo:
        backend.create_record(PAGES, {"title": "   "})

    assert excinfo.value.code == "empty_content"
    assert excinfo.value.status == 400


def test_search_is_case_insensitive_over_title_and_content():
    backend = MemoryRecordBackend(
        seed={
            ("postType", "page"): [
                {"title": "Hello there", "date": "2024-01-01T00:00:00"},
                {"title": "Contact", "content": "say hello", "date": "2024-01-02T00:00:00"},
                {"title": "About", "date": "2024-01-03T00:00:00"},
            ]
        }
    )

    assert _titles(backend.fetch_records(PAGES, {"search": "HELLO"})) == ["Contact", "Hello there"]
    assert _titles(backend.fetch_records(PAGES, {})) == ["About", "Contact", "Hello there"]


def test_paging_and_status_filter():
    backend = MemoryRecordBackend(page_size=2)
    for index in range(5):
        backend.create_record(
            PAGES,
            {"title": f"Page {index}", "date": f"2024-01-0{index + 1}T00:00:00", "status": "publish"},
        )
    backend.create_record(PAGES, {"title": "Hidden", "date": "2024-02-01T00:00:00"})

    assert _titles(backend.fetch_records(PAGES, {"status": "publish"})) == ["Page 4", "Page 3"]
    assert _titles(backend.fetch_records(PAGES, {"status": "publish", "page": 3})) == ["Page 0"]
    assert len(backend.fetch_records(PAGES, {"per_page": 10})) == 6


def test_update_and_delete_unknown_ids():
    backend = MemoryRecordBackend()

    with pytest.raises(EntityStoreError) as update_error:
        backend.update_record(PAGES, 42, {"title": "x"})
    with pytest.raises(EntityStoreError) as delete_error:
        backend.delete_record(PAGES, 42)

    assert update_error.value.status == 404
    assert delete_error.value.code == "rest_post_invalid_id"


def test_update_re_renders_title():
    backend = MemoryRecordBackend()
    record = backend.create_record(PAGES, {"title": "Old"})

    updated = backend.update_record(PAGES, record["id"], {"title": "Fish & Chips", "id": 99})

    assert updated["id"] == record["id"]
    assert updated["title"]["rendered"] == "Fish &amp; Chips"
    assert backend.records("postType", "page")[0]["title"]["raw"] == "Fish & Chips"


def test_delete_removes_record():
    backend = MemoryRecordBackend()
    record = backend.create_record(PAGES, {"title": "Gone"})

    backend.delete_record(PAGES, record["id"])

    assert backend.records("postType", "page") == []
