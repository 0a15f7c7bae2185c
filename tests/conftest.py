import os
import sys
from collections import deque
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

TESTS_ROOT = Path(__file__).resolve().parent
SRC_ROOT = TESTS_ROOT.parent / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from pagedesk.core.entity_store import EntityConfig, EntityRecordStore, EntityStoreError
from pagedesk.core.memory_backend import MemoryRecordBackend

PAGE_ENTITY = EntityConfig(kind="postType", name="page")


class ManualExecutor(Executor):
    """Executor that queues work until the test drains it on the calling thread."""

    def __init__(self):
        self._pending = deque()
        self.shutdown_called = False

    @property
    def pending(self):
        return len(self._pending)

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self._pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self, limit=100):
        ran = 0
        while self._pending and ran < limit:
            future, fn, args, kwargs = self._pending.popleft()
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args, **kwargs)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
            ran += 1
        return ran

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.shutdown_called = True


class ScriptedBackend(MemoryRecordBackend):
    """Memory backend that records calls and fails the operations listed in ``failures``."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = []
        self.failures = {}

    def fetch_records(self, entity, query):
        self.calls.append(("fetch", dict(query)))
        self._maybe_fail("fetch")
        return super().fetch_records(entity, query)

    def create_record(self, entity, fields):
        self.calls.append(("create", dict(fields)))
        self._maybe_fail("create")
        return super().create_record(entity, fields)

    def update_record(self, entity, key, fields):
        self.calls.append(("update", key, dict(fields)))
        self._maybe_fail("update")
        return super().update_record(entity, key, fields)

    def delete_record(self, entity, key):
        self.calls.append(("delete", key))
        self._maybe_fail("delete")
        return super().delete_record(entity, key)

    def _maybe_fail(self, operation):
        message = self.failures.get(operation)
        if message:
            raise EntityStoreError(message, code=f"{operation}_failed", status=500)


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def store(backend, executor):
    entity_store = EntityRecordStore(backend, executor=executor)
    yield entity_store
    entity_store.close()


@pytest.fixture
def add_page(backend):
    def _add(title, **fields):
        payload = {"title": title, "status": "publish"}
        payload.update(fields)
        return MemoryRecordBackend.create_record(backend, PAGE_ENTITY, payload)

    return _add


@pytest.fixture
def load_pages(store, executor):
    """Resolve the unfiltered page query and return its records."""

    def _load(query=None):
        store.get_entity_records("postType", "page", query)
        executor.run_pending()
        return store.get_entity_records("postType", "page", query)

    return _load


@pytest.fixture(scope="session")
def qapp():
    widgets = pytest.importorskip("PySide6.QtWidgets")
    app = widgets.QApplication.instance()
    if app is None:
        app = widgets.QApplication([])
    return app
