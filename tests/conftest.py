# tests/conftest.py
import json
import os
import tempfile
import threading
import time
from dataclasses import dataclass, field

import pytest

from modules.posting_sweep.lib import config as ps_config
from modules.posting_sweep.lib.errors import TransportFailure
from modules.posting_sweep.lib.models import FailureKind, FetchFailure

API_URL = "http://api.test/jobsearch/v1/simple.json"


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="ps-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("POSTING_SWEEP_BASE_URL", raising=False)
    monkeypatch.delenv("POSTING_SWEEP_SQLITE_PATH", raising=False)
    yield


# ---------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------
def listing(n, **overrides):
    item = {
        "detailUrl": f"http://x/{n}",
        "jobTitle": f"Engineer {n}",
        "company": "Acme",
        "location": "NYC",
        "date": "2014-01-01",
    }
    item.update(overrides)
    return item


def search_payload(items, count=None, last_document=None):
    return {
        "count": len(items) if count is None else count,
        "lastDocument": len(items) if last_document is None else last_document,
        "resultItemList": items,
    }


@pytest.fixture
def make_settings(tmp_path):
    """Settings factory pointing at the mocked API and a per-test SQLite file."""

    def _make(**overrides):
        kw = {
            "keyword": "java",
            "base_url": API_URL,
            "sqlite_path": str(tmp_path / "postings.db"),
            "sheet": "Test Sheet",
            "pool_size": 4,
        }
        kw.update(overrides)
        return ps_config.Settings.from_env_and_kwargs(kw)

    return _make


# ---------------------------------------------------------------------
# In-memory HttpClient stand-in for concurrency/ordering tests
# ---------------------------------------------------------------------
@dataclass
class FakeResponse:
    url: str
    text: str
    status_code: int = 200

    def json(self):
        return json.loads(self.text)


@dataclass
class FakeClient:
    """
    routes: url -> body str | dict (JSON) | Exception | FetchFailure
    Search pages are keyed as f"{url}#page={n}".
    Tracks call order and the peak number of concurrent fetches.
    """

    routes: dict = field(default_factory=dict)
    delay: float = 0.0
    calls: list = field(default_factory=list)
    peak_in_flight: int = 0
    _in_flight: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def fetch(self, url, params=None):
        key = f"{url}#page={params['page']}" if params and "page" in params else url
        with self._lock:
            self.calls.append(key)
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            route = self.routes.get(key)
            if route is None:
                return FetchFailure(url=url, kind=FailureKind.HTTP_STATUS, detail="HTTP 404", status_code=404)
            if isinstance(route, FetchFailure):
                return route
            if isinstance(route, TransportFailure):
                raise route
            if isinstance(route, dict):
                return FakeResponse(url=url, text=json.dumps(route))
            return FakeResponse(url=url, text=route)
        finally:
            with self._lock:
                self._in_flight -= 1

    def close(self):
        pass


@pytest.fixture
def fake_client():
    return FakeClient()
