import io
import json
from urllib.error import HTTPError, URLError

import pytest

from pagedesk.core import wordpress_backend
from pagedesk.core.entity_store import EntityConfig, EntityStoreError
from pagedesk.core.wordpress_backend import WordPressBackendConfig, WordPressRestBackend

PAGES = EntityConfig(kind="postType", name="page")


class _FakeResponse:
    def __init__(self, status, payload):
        self._status = status
        self._body = b"" if payload is None else json.dumps(payload).encode("utf-8")

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def getcode(self):
        return self._status

    def read(self):
        return self._body


@pytest.fixture
def requests(monkeypatch):
    sent = []
    responses = []

    def _fake_urlopen(request, timeout=None):
        sent.append((request, timeout))
        outcome = responses.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    monkeypatch.setattr(wordpress_backend, "urlopen", _fake_urlopen)
    return sent, responses


def _backend(**overrides):
    values = {
        "url": "https://example.test/",
        "username": "admin",
        "application_password": "abcd efgh ijkl",
        "timeout_seconds": 5,
    }
    values.update(overrides)
    return WordPressRestBackend(WordPressBackendConfig.from_mapping(values))


def test_config_normalizes_values():
    config = WordPressBackendConfig.from_mapping(
        {"url": " https://example.test/ ", "application_password": "ab cd", "per_page": 500, "timeout_seconds": "x"}
    )

    assert config.url == "https://example.test"
    assert config.application_password == "abcd"
    assert config.per_page == 100
    assert config.timeout_seconds == 10.0
    assert config.authenticated is False


def test_fetch_sends_search_with_edit_context(requests):
    sent, responses = requests
    responses.append(_FakeResponse(200, [{"id": 7, "title": {"rendered": "Hello &amp; World"}}]))

    rows = _backend().fetch_records(PAGES, {"search": "Hello"})

    request, timeout = sent[0]
    assert rows == [{"id": 7, "title": {"rendered": "Hello &amp; World"}}]
    assert request.get_method() == "GET"
    assert request.full_url.startswith("https://example.test/wp-json/wp/v2/pages?")
    assert "context=edit" in request.full_url
    assert "search=Hello" in request.full_url
    assert request.get_header("Authorization").startswith("Basic ")
    assert timeout == 5.0


def test_anonymous_fetch_uses_view_context(requests):
    sent, responses = requests
    responses.append(_FakeResponse(200, []))

    _backend(username="", application_password="").fetch_records(PAGES, {})

    request, _timeout = sent[0]
    assert "context=view" in request.full_url
    assert request.get_header("Authorization") is None


def test_create_posts_json_payload(requests):
    sent, responses = requests
    responses.append(_FakeResponse(201, {"id": 9, "title": {"raw": "New Page"}}))

    created = _backend().create_record(PAGES, {"title": "New Page", "status": "publish"})

    request, _timeout = sent[0]
    assert created["id"] == 9
    assert request.get_method() == "POST"
    assert json.loads(request.data.decode("utf-8")) == {"title": "New Page", "status": "publish"}
    assert request.get_header("Content-type") == "application/json"


def test_update_and_delete_target_the_item_route(requests):
    sent, responses = requests
    responses.append(_FakeResponse(200, {"id": 3}))
    responses.append(_FakeResponse(200, {"deleted": True}))
    backend = _backend()

    backend.update_record(PAGES, 3, {"title": "Renamed"})
    backend.delete_record(PAGES, 3)

    assert sent[0][0].full_url.startswith("https://example.test/wp-json/wp/v2/pages/3?")
    assert sent[1][0].get_method() == "DELETE"
    assert "force=true" in sent[1][0].full_url


def test_http_error_carries_server_message(requests):
    _sent, responses = requests
    body = json.dumps({"code": "rest_cannot_edit", "message": "Sorry, you are not allowed to edit this post."})
    responses.append(
        HTTPError("https://example.test", 403, "Forbidden", {}, io.BytesIO(body.encode("utf-8")))
    )

    with pytest.raises(EntityStoreError) as excinfo:
        _backend().update_record(PAGES, 3, {"title": "x"})

    assert excinfo.value.message == "Sorry, you are not allowed to edit this post."
    assert excinfo.value.code == "rest_cannot_edit"
    assert excinfo.value.status == 403


def test_http_error_without_body_uses_status(requests):
    _sent, responses = requests
    responses.append(HTTPError("https://example.test", 502, "Bad Gateway", {}, io.BytesIO(b"")))

    with pytest.raises(EntityStoreError) as excinfo:
        _backend().fetch_records(PAGES, {})

    assert excinfo.value.message == "502 Bad Gateway"
    assert excinfo.value.code == "http_error"


def test_network_error(requests):
    _sent, responses = requests
    responses.append(URLError("connection refused"))

    with pytest.raises(EntityStoreError) as excinfo:
        _backend().fetch_records(PAGES, {})

    assert excinfo.value.code == "network_error"


def test_missing_url_is_reported(requests):
    with pytest.raises(EntityStoreError) as excinfo:
        WordPressRestBackend().fetch_records(PAGES, {})

    assert excinfo.value.code == "not_configured"


def test_unknown_entity_has_no_route():
    with pytest.raises(EntityStoreError) as excinfo:
        _backend().fetch_records(EntityConfig(kind="root", name="menu"), {})

    assert excinfo.value.code == "unknown_route"
