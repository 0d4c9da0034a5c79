# tests/conftest.py
import json
import os

import pytest

# Must be set before the app (and its settings) are imported
os.environ.setdefault("TICK_ENABLED", "false")
os.environ.setdefault("ADMIN_SECRET", "testing-secret")
os.environ.setdefault("ADMIN_PASS", "testing-pass")

from fastapi.testclient import TestClient  # noqa: E402

from videomaker.jobs import store  # noqa: E402
from videomaker.log_buffer import buffer  # noqa: E402
from videomaker.main import app  # noqa: E402
from videomaker.scheduler import state  # noqa: E402
from videomaker.settings import settings  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=None, content=b"", headers=None):
        self.status_code = status_code
        self._data = data
        self.text = text if text is not None else (json.dumps(data) if data is not None else "")
        self.content = content or self.text.encode("utf-8")
        self.headers = headers or {}

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class Recorder:
    """Stands in for requests.Session.get/post and remembers every call."""

    def __init__(self, response=None, exc=None):
        self.response = response or FakeResponse()
        self.exc = exc
        self.calls = []

    # Installed as a class attribute; not a function, so it is not bound to the session
    def __call__(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.exc:
            raise self.exc
        return self.response


@pytest.fixture(autouse=True)
def reset_state():
    store.clear()
    buffer.clear()
    state.tick_count = 0
    state.last_tick_at = None
    state.last_error = None
    yield
    store.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": settings.ADMIN_SECRET}


@pytest.fixture
def fake_post(monkeypatch):
    def install(response=None, exc=None):
        rec = Recorder(response, exc)
        monkeypatch.setattr("requests.Session.post", rec)
        return rec
    return install


@pytest.fixture
def fake_get(monkeypatch):
    def install(response=None, exc=None):
        rec = Recorder(response, exc)
        monkeypatch.setattr("requests.Session.get", rec)
        return rec
    return install
