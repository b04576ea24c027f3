"""
Pytest configuration and shared fixtures for the Flora console tests.

The Flora backend is replaced by ``FakeFloraSession``, a stand-in for the
``requests.Session`` the client uses. Tests register canned answers per
``(method, path)`` where path is everything after ``/wp-json/``.
"""
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest
import requests

os.environ.setdefault("FLASK_ENV", "testing")

from flora_console import create_app  # noqa: E402
from flora_console.services.flora_client import FloraApiClient, init_flora_client  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: Optional[str] = None, reason: str = "OK"):
        self.status_code = status_code
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text
        self.reason = reason

    @property
    def ok(self) -> bool:
        return self.status_code < 400


@dataclass
class RecordedCall:
    method: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    json: Any = None


class FakeFloraSession:
    """Answers Flora API requests from a table of canned responses."""

    def __init__(self):
        self.headers: Dict[str, str] = {}
        self.routes: Dict[tuple, Any] = {}
        self.calls: List[RecordedCall] = []

    def add(self, method: str, path: str, json_data: Any = None, status: int = 200, text: Optional[str] = None):
        self.routes[(method.upper(), path)] = FakeResponse(status, json_data, text)

    def fail(self, method: str, path: str, exc: Exception):
        self.routes[(method.upper(), path)] = exc

    def request(self, method, url, params=None, json=None, timeout=None):
        path = url.split("/wp-json/", 1)[1]
        self.calls.append(RecordedCall(method.upper(), path, dict(params or {}), json))
        answer = self.routes.get((method.upper(), path))
        if answer is None:
            return FakeResponse(404, {"code": "rest_no_route", "message": "No route was found matching the URL and request method."})
        if isinstance(answer, Exception):
            raise answer
        return answer

    def calls_to(self, method: str, path: str) -> List[RecordedCall]:
        return [call for call in self.calls if call.method == method.upper() and call.path == path]


@pytest.fixture
def flora():
    """The fake Flora backend shared by the app and service fixtures."""
    return FakeFloraSession()


@pytest.fixture
def flora_client(flora):
    return FloraApiClient("https://flora.test", "ck_test", "cs_test", timeout=5, session=flora)


@pytest.fixture(scope='function')
def app(flora, tmp_path):
    """Create and configure a new app instance for each test."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'CACHE_TYPE': 'NullCache',
        'SESSION_TYPE': 'filesystem',
        'SESSION_FILE_DIR': str(tmp_path / 'sessions'),
        'FLORA_API_URL': 'https://flora.test',
        'FLORA_CONSUMER_KEY': 'ck_test',
        'FLORA_CONSUMER_SECRET': 'cs_test',
    })
    init_flora_client(app, session=flora)
    yield app


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def app_context(app):
    """Provide an application context for tests that need it."""
    with app.app_context():
        yield


@pytest.fixture
def network_error():
    return requests.ConnectionError("Connection refused")


RECIPE_PAYLOAD = {
    "id": 7,
    "name": "Flower to Pre-roll",
    "slug": "flower-to-preroll",
    "conversion_type": "simple",
    "input_category_ids": "[21, 22]",
    "output_category_id": "30",
    "base_ratio": "0.9",
    "ratio_unit": "g",
    "acceptable_variance": "0.05",
    "track_variance": "1",
    "status": "active",
}


@pytest.fixture
def recipe_payload():
    return dict(RECIPE_PAYLOAD)
