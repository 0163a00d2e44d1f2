import http.client
import io
import json
import socket
import threading
import time
import urllib.error
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from core.catalog import build_registry
from core.config import Settings
from core.errors import GatewayError, GatewayTimeoutError
from core.gateway import NO_CONTENT, QuoGateway, build_query, extract_error_message, read_within
from core.redaction import Redactor

from tests.conftest import API_KEY, BASE_URL


class TestBuildQuery:
    def test_lists_repeat_the_key_in_order(self):
        assert build_query({"participants": ["+15550001", "+15550002"]}) == (
            "participants=%2B15550001&participants=%2B15550002"
        )

    def test_none_values_are_omitted(self):
        assert build_query({"a": None, "b": "x", "c": [None, "y"]}) == "b=x&c=y"

    def test_booleans_are_lowercase(self):
        assert build_query({"excludeInactive": True, "other": False}) == "excludeInactive=true&other=false"

    def test_numbers_use_str(self):
        assert build_query({"maxResults": 20}) == "maxResults=20"

    def test_empty(self):
        assert build_query(None) == ""
        assert build_query({}) == ""


class TestExtractErrorMessage:
    @pytest.mark.parametrize(
        "body,expected",
        [
            ('{"message":"Contact not found"}', "Contact not found"),
            ('{"error":{"message":"Bad phone"}}', "Bad phone"),
            ('{"error":"Unauthorized"}', "Unauthorized"),
            ('{"message":"  ","error":"Fallback"}', "Fallback"),
            ('{"unexpected":true}', '{"unexpected":true}'),
            ("Service Unavailable", "Service Unavailable"),
            ('["a"]', '["a"]'),
            ("", "No response body"),
        ],
        ids=["message", "error.message", "error-string", "blank-message", "no-known-field", "plain-text", "array", "empty"],
    )
    def test_priority_order(self, body, expected):
        assert extract_error_message(body) == expected


class TestExecute:
    def test_get_builds_url_and_headers(self, gateway, opener):
        opener.reply({"data": []})
        gateway.execute("/calls", params={"phoneNumberId": "PN1", "participants": ["+1", "+2"], "pageToken": None})

        request = opener.last
        assert request.get_method() == "GET"
        assert request.full_url == f"{BASE_URL}/calls?phoneNumberId=PN1&participants=%2B1&participants=%2B2"
        assert request.get_header("Authorization") == API_KEY
        assert request.get_header("Content-type") == "application/json"
        assert request.data is None

    def test_timeout_is_passed_in_seconds(self, gateway, opener):
        opener.reply({})
        gateway.execute("/users")
        assert opener.timeouts == [5.0]

    def test_post_serialises_body(self, gateway, opener):
        opener.reply({"data": {"id": "MSG1"}})
        result = gateway.execute("/messages", method="POST", body={"content": "hi", "to": ["+1"]})

        assert opener.last.get_method() == "POST"
        assert opener.last_body() == {"content": "hi", "to": ["+1"]}
        assert result == {"data": {"id": "MSG1"}}

    def test_204_returns_success_marker(self, gateway, opener):
        opener.reply(status=204)
        assert gateway.execute("/contacts/C1", method="DELETE") == NO_CONTENT

    def test_empty_200_returns_success_marker(self, gateway, opener):
        opener.reply_raw(b"", status=200)
        assert gateway.execute("/contacts/C1", method="DELETE") == {"success": True}

    def test_http_error_message(self, gateway, opener):
        opener.fail(404, "Not Found", b'{"message":"Contact not found"}')
        with pytest.raises(GatewayError) as exc_info:
            gateway.execute("/contacts/missing")
        assert str(exc_info.value) == "Quo API 404 Not Found: Contact not found"
        assert exc_info.value.status == 404

    def test_http_error_without_body(self, gateway, opener):
        opener.fail(502, "Bad Gateway")
        with pytest.raises(GatewayError, match="Quo API 502 Bad Gateway: No response body"):
            gateway.execute("/users")

    def test_http_error_detail_is_redacted(self, gateway, opener):
        body = ('{"message":"Invalid key %s","headers":{"Authorization":"%s"}}' % (API_KEY, API_KEY)).encode()
        opener.fail(401, "Unauthorized", body)
        with pytest.raises(GatewayError) as exc_info:
            gateway.execute("/users")
        assert API_KEY not in str(exc_info.value)
        assert "Invalid key ***REDACTED_API_KEY***" in str(exc_info.value)

    def test_raw_error_body_is_redacted(self, gateway, opener):
        opener.fail(500, "Internal Server Error", f'upstream said Authorization: {API_KEY}'.encode())
        with pytest.raises(GatewayError) as exc_info:
            gateway.execute("/users")
        assert API_KEY not in str(exc_info.value)

    @pytest.mark.parametrize(
        "exc",
        [socket.timeout("timed out"), TimeoutError("timed out"), urllib.error.URLError(socket.timeout("timed out"))],
        ids=["socket-timeout", "timeout-error", "wrapped"],
    )
    def test_timeout_is_reported_with_configured_duration(self, gateway, opener, exc):
        opener.raise_(exc)
        with pytest.raises(GatewayTimeoutError, match="timed out after 5000ms"):
            gateway.execute("/users")

    def test_transport_failure_is_redacted(self, gateway, opener):
        opener.raise_(urllib.error.URLError(f"connection refused for {API_KEY}"))
        with pytest.raises(GatewayError) as exc_info:
            gateway.execute("/users")
        assert not isinstance(exc_info.value, GatewayTimeoutError)
        assert "connection refused" in str(exc_info.value)
        assert API_KEY not in str(exc_info.value)

    def test_invalid_json_is_a_gateway_error(self, gateway, opener):
        opener.reply_raw(b"<html>oops</html>")
        with pytest.raises(GatewayError, match="Invalid JSON"):
            gateway.execute("/users")

    def test_no_retry_after_failure(self, gateway, opener):
        opener.fail(503, "Service Unavailable", b"down")
        with pytest.raises(GatewayError):
            gateway.execute("/users")
        assert opener.call_count == 1

    def test_error_body_timeout_is_reported_as_timeout(self, gateway, opener):
        class StalledBody(io.BytesIO):
            def read1(self, amt=-1):
                raise socket.timeout("timed out")

        opener.raise_(urllib.error.HTTPError(f"{BASE_URL}/users", 500, "Internal Server Error", {}, StalledBody()))
        with pytest.raises(GatewayTimeoutError, match="timed out after 5000ms"):
            gateway.execute("/users")

    def test_protocol_error_is_a_gateway_error(self, gateway, opener):
        opener.raise_(http.client.IncompleteRead(b"partial", 93))
        with pytest.raises(GatewayError, match="IncompleteRead") as exc_info:
            gateway.execute("/users")
        assert not isinstance(exc_info.value, GatewayTimeoutError)


class TestReadWithin:
    def test_reads_in_chunks_until_eof(self):
        body = b"x" * 20000
        assert read_within(io.BytesIO(body), time.monotonic() + 5) == body

    def test_expired_deadline_raises_timeout(self):
        with pytest.raises(TimeoutError):
            read_within(io.BytesIO(b"{}"), time.monotonic() - 1)


class _QuoStub(BaseHTTPRequestHandler):
    """Local stand-in for the API with deliberately misbehaving routes."""

    def log_message(self, format, *args):
        pass

    def do_GET(self):
        route = self.path.split("?", 1)[0]
        try:
            if route == "/users":
                self._send(200, json.dumps({"data": [{"id": "US1"}]}).encode())
            elif route == "/trickle":
                self._trickle(200, b'{"data":"slowly"}')
            elif route == "/trickle-error":
                self._trickle(500, b'{"message":"slow"}')
            elif route in ("/truncated", "/users/truncated"):
                self.send_response(200)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", "100")
                self.end_headers()
                self.wfile.write(b'{"data"')
        except (BrokenPipeError, ConnectionResetError):
            pass

    def _send(self, status, body):
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _trickle(self, status, body):
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        for i in range(len(body)):
            self.wfile.write(body[i:i + 1])
            time.sleep(0.5)


@pytest.fixture
def live_gateway():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _QuoStub)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    settings = Settings(api_key=API_KEY, timeout_ms=1000, base_url=f"http://127.0.0.1:{server.server_port}")
    try:
        yield QuoGateway(settings, Redactor(API_KEY))
    finally:
        server.shutdown()
        server.server_close()


class TestAgainstLocalServer:
    def test_well_behaved_response(self, live_gateway):
        assert live_gateway.execute("/users") == {"data": [{"id": "US1"}]}

    def test_trickled_body_hits_the_deadline(self, live_gateway):
        started = time.monotonic()
        with pytest.raises(GatewayTimeoutError, match="timed out after 1000ms"):
            live_gateway.execute("/trickle")
        assert time.monotonic() - started < 2.5

    def test_trickled_error_body_hits_the_deadline(self, live_gateway):
        started = time.monotonic()
        with pytest.raises(GatewayTimeoutError, match="timed out after 1000ms"):
            live_gateway.execute("/trickle-error")
        assert time.monotonic() - started < 2.5

    def test_truncated_body_is_a_gateway_error(self, live_gateway):
        with pytest.raises(GatewayError, match="IncompleteRead") as exc_info:
            live_gateway.execute("/truncated")
        assert not isinstance(exc_info.value, GatewayTimeoutError)

    def test_truncated_body_reaches_the_caller_as_gateway_text(self, live_gateway):
        registry = build_registry(live_gateway, Redactor(API_KEY))
        result = registry.dispatch("get_user", {"userId": "truncated"})

        assert result.is_error
        assert "IncompleteRead" in result.first_text
        assert "Unexpected error" not in result.first_text
