import io
import json
import urllib.error
import urllib.parse

import pytest

from core.catalog import build_registry
from core.config import Settings
from core.gateway import QuoGateway
from core.redaction import Redactor

API_KEY = "sk_live_quo_0123456789abcdef"
BASE_URL = "https://api.quo.test/v1"


class FakeResponse:
    def __init__(self, status=200, body=b""):
        self.status = status
        self._stream = io.BytesIO(body)

    def read(self, amt=-1):
        return self._stream.read(amt)

    def read1(self, amt=-1):
        return self._stream.read1(amt)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeOpener:
    """Stands in for urllib.request.urlopen and records every request."""

    def __init__(self):
        self.requests = []
        self.timeouts = []
        self._queue = []

    def reply(self, payload=None, status=200):
        body = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self._queue.append(FakeResponse(status, body))
        return self

    def reply_raw(self, body: bytes, status=200):
        self._queue.append(FakeResponse(status, body))
        return self

    def fail(self, status, reason, body=b""):
        def raise_http_error(request):
            raise urllib.error.HTTPError(request.full_url, status, reason, {}, io.BytesIO(body))

        self._queue.append(raise_http_error)
        return self

    def raise_(self, exc):
        def raise_exc(request):
            raise exc

        self._queue.append(raise_exc)
        return self

    def __call__(self, request, timeout=None):
        self.requests.append(request)
        self.timeouts.append(timeout)
        if not self._queue:
            raise AssertionError(f"Unexpected request: {request.get_method()} {request.full_url}")
        action = self._queue.pop(0)
        if callable(action):
            return action(request)
        return action

    @property
    def call_count(self):
        return len(self.requests)

    @property
    def last(self):
        return self.requests[-1]

    def last_path(self):
        return urllib.parse.urlsplit(self.last.full_url).path

    def last_query(self):
        return urllib.parse.parse_qsl(urllib.parse.urlsplit(self.last.full_url).query)

    def last_body(self):
        return json.loads(self.last.data.decode("utf-8")) if self.last.data else None


@pytest.fixture
def settings():
    return Settings(api_key=API_KEY, timeout_ms=5000, base_url=BASE_URL)


@pytest.fixture
def redactor():
    return Redactor(API_KEY)


@pytest.fixture
def opener():
    return FakeOpener()


@pytest.fixture
def gateway(settings, redactor, opener):
    return QuoGateway(settings, redactor, opener=opener)


@pytest.fixture
def registry(gateway, redactor):
    return build_registry(gateway, redactor)
