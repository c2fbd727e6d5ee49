"""
Shared fixtures for the test suite.

Graph traffic never leaves the process: FakeGraphSession stands in for
requests.Session and answers by Graph path (the URL part after the version).
"""

import json
import re
import threading

import pytest

from pageleads import create_app
from pageleads.config import TestingConfig
from pageleads.services.error_reporter import ErrorReporter
from pageleads.services.graph.client import GraphClient
from pageleads.utils.retry import RetryPolicy


GRAPH_URL_PREFIX_RE = re.compile(r"^https?://[^/]+/v[\d.]+/")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)


def graph_ok(data=None, paging=None, **extra):
    payload = dict(extra)
    if data is not None:
        payload["data"] = data
    if paging is not None:
        payload["paging"] = paging
    return FakeResponse(200, payload)


def graph_error(code, message="error", subcode=None, status=400, error_type="OAuthException"):
    error = {"message": message, "type": error_type, "code": code, "fbtrace_id": "Atrace123"}
    if subcode is not None:
        error["error_subcode"] = subcode
    return FakeResponse(status, {"error": error})


class FakeGraphSession:
    """
    Queue of responses per Graph path. The last queued item repeats, so a
    single failure response models a permanently failing endpoint. Queued
    exceptions are raised instead of returned.
    """

    def __init__(self, routes=None):
        self.routes = {}
        self.calls = []
        self._lock = threading.Lock()
        for path, responses in (routes or {}).items():
            self.add(path, *responses)

    def add(self, path, *responses):
        self.routes.setdefault(path, []).extend(responses)
        return self

    def request(self, method, url, params=None, headers=None, timeout=None):
        path = GRAPH_URL_PREFIX_RE.sub("", url)
        with self._lock:
            self.calls.append({
                "method": method,
                "url": url,
                "path": path,
                "params": dict(params or {}),
                "headers": dict(headers or {}),
                "timeout": timeout,
            })
            queue = self.routes.get(path)
            if not queue:
                raise AssertionError(f"unexpected Graph call: {method} {path}")
            item = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(item, BaseException):
            raise item
        return item

    def calls_to(self, path):
        return [c for c in self.calls if c["path"] == path]


class RecordingSink:
    def __init__(self, fail_times=0):
        self.batches = []
        self.fail_times = fail_times

    def __call__(self, batch):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("collector unavailable")
        self.batches.append(list(batch))


@pytest.fixture
def fake_session():
    return FakeGraphSession()


@pytest.fixture
def reporter():
    return ErrorReporter(max_queue_size=50, flush_interval=60, environment="testing")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def graph_client(fake_session, reporter, sleeps):
    return GraphClient(
        retry_policy=RetryPolicy(max_attempts=3, initial_delay=1.0, max_delay=10.0),
        reporter=reporter,
        session=fake_session,
        sleep=sleeps.append,
        rng=lambda: 0.0,
    )


@pytest.fixture
def app(fake_session):
    app = create_app(TestingConfig, graph_session=fake_session)
    app.extensions["pageleads"]["graph_client"]._sleep = lambda seconds: None
    yield app
    app.extensions["pageleads"]["error_reporter"].stop(flush=False)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer EAAusertoken123"}
