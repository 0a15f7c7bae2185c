from pagedesk.app.collection_view import (
    CollectionStatus,
    CollectionView,
    build_query,
    display_title,
)
from pagedesk.core.entity_store import EntityConfig, EntityRecordStore


def test_empty_search_term_leaves_query_unconstrained():
    assert build_query("") == {}
    assert build_query("Hello") == {"search": "Hello"}


def test_display_title_decodes_entities():
    assert display_title({"title": {"rendered": "Hello &amp; World"}}) == "Hello & World"
    assert display_title({"title": {"raw": "Plain"}}) == "Plain"
    assert display_title({"title": "Tom &#8217;s"}) == "Tom ’s"
    assert display_title({}) == ""


def test_loading_then_ready(store, executor, add_page):
    page = add_page("About us")
    view = CollectionView(store)

    assert view.state().status is CollectionStatus.LOADING
    executor.run_pending()

    state = view.state()
    assert state.status is CollectionStatus.READY
    assert [(row.key, row.title) for row in state.rows] == [(page["id"], "About us")]


def test_search_renders_decoded_titles(store, executor, add_page):
    add_page("Hello & World")
    add_page("Contact")
    view = CollectionView(store)
    view.state()
    executor.run_pending()
    seen = []
    view.subscribe(seen.append)

    view.search("Hello")

    assert view.query() == {"search": "Hello"}
    assert seen[-1].status is CollectionStatus.LOADING
    assert seen[-1].search_term == "Hello"
    executor.run_pending()
    assert seen[-1].status is CollectionStatus.READY
    assert [row.title for row in seen[-1].rows] == ["Hello & World"]


def test_search_with_no_matches_is_empty(store, executor, add_page):
    add_page("Contact")
    view = CollectionView(store)

    view.search("zzz")
    view.state()
    executor.run_pending()

    state = view.state()
    assert state.is_empty
    assert state.rows == ()
    assert state.error_message == ""


def test_same_term_does_not_notify(store):
    view = CollectionView(store)
    seen = []
    view.subscribe(seen.append)

    view.search("")

    assert seen == []


def test_failed_load_is_empty_with_error(store, backend, executor):
    backend.failures["fetch"] = "Could not reach the site"
    view = CollectionView(store)

    view.state()
    executor.run_pending()

    state = view.state()
    assert state.is_empty
    assert state.error_message == "Could not reach the site"


def test_drafts_do_not_touch_the_list(store, executor, add_page):
    page = add_page("Old")
    view = CollectionView(store)
    view.state()
    executor.run_pending()
    seen = []
    view.subscribe(seen.append)

    store.edit_entity_record("postType", "page", page["id"], {"title": "Draft"})

    assert seen == []
    assert view.state().rows[0].title == "Old"


def test_deleted_record_leaves_the_list(store, executor, add_page):
    keep = add_page("Keep")
    drop = add_page("Drop")
    view = CollectionView(store)
    view.state()
    executor.run_pending()
    seen = []
    view.subscribe(seen.append)

    store.delete_entity_record("postType", "page", drop["id"])
    executor.run_pending()

    assert [row.key for row in seen[-1].rows] == [keep["id"]]


def test_close_stops_notifications(store, executor, add_page):
    add_page("Page")
    view = CollectionView(store)
    seen = []
    view.subscribe(seen.append)
    view.state()

    view.close()
    executor.run_pending()

    assert seen == []


def test_rows_use_the_entity_key_field(backend, executor):
    menus = EntityConfig(kind="root", name="menu", key="slug")
    store = EntityRecordStore(backend, entities=(menus,), executor=executor)
    backend.create_record(menus, {"title": "Main", "slug": "main"})
    view = CollectionView(store, kind="root", name="menu")

    view.state()
    executor.run_pending()

    assert [(row.key, row.title) for row in view.state().rows] == [("main", "Main")]
    store.close()
