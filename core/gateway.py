# =============================================================================
# core/gateway.py  —  HTTP Gateway to the Quo REST API
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   The only place in the package that talks to the network.  One call to
#   QuoGateway.execute() is one HTTP request:
#
#     execute("/messages", params={"participants": ["+1555...", "+1666..."]})
#       → GET {base}/messages?participants=%2B1555...&participants=%2B1666...
#
# REQUEST RULES:
#   - List values repeat the query key once per element, in order.
#   - None values are left out entirely (never sent as "None").
#   - Authorization carries the raw API key, no "Bearer" prefix.
#
# FAILURE RULES (all raise GatewayError, message already redacted):
#   - timeout           → GatewayTimeoutError naming the configured ms
#   - non-2xx status    → "Quo API <status> <reason>: <detail>"
#   - anything else     → the underlying error text
#
# DEADLINE:
#   The configured timeout is one deadline for the whole call.  urlopen()
#   gets it as the connect timeout, then the body is read in chunks and the
#   socket timeout shrinks to the time left before every read.  A server
#   that trickles bytes is cut off once the deadline passes.
#
#   There are no retries.  One failed attempt is one reported failure.
# =============================================================================

import http.client
import json
import logging
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Mapping, Optional

from core import __version__
from core.config import Settings
from core.errors import GatewayError, GatewayTimeoutError
from core.redaction import Redactor

logger = logging.getLogger(__name__)

SERVICE_NAME = "Quo API"
NO_CONTENT = {"success": True}
CHUNK_SIZE = 8192

Opener = Callable[..., Any]


def build_query(params: Optional[Mapping[str, Any]]) -> str:
    """Encode query parameters, repeating keys for list values."""
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _query_value(item)) for item in value if item is not None)
        else:
            pairs.append((key, _query_value(value)))
    return urllib.parse.urlencode(pairs)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_error_message(raw_body: str) -> str:
    """Pull a human-readable message out of an error response body.

    Tries, in order: a top-level "message", "error.message", a string
    "error", then the raw body.  An empty body gives "No response body".
    """
    if not raw_body:
        return "No response body"
    try:
        parsed = json.loads(raw_body)
    except ValueError:
        return raw_body
    if not isinstance(parsed, dict):
        return raw_body

    message = parsed.get("message")
    if isinstance(message, str) and message.strip():
        return message
    error = parsed.get("error")
    if isinstance(error, dict):
        nested = error.get("message")
        if isinstance(nested, str) and nested.strip():
            return nested
    if isinstance(error, str) and error.strip():
        return error
    return raw_body


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, (socket.timeout, TimeoutError)):
        return True
    reason = getattr(error, "reason", None)
    return isinstance(reason, (socket.timeout, TimeoutError))


def _socket_of(response: Any) -> Optional[socket.socket]:
    # http.client.HTTPResponse keeps its socket behind fp (BufferedReader -> SocketIO).
    raw = getattr(getattr(response, "fp", None), "raw", None)
    return getattr(raw, "_sock", None)


def read_within(response: Any, deadline: float) -> bytes:
    """Read a whole response body, raising TimeoutError once `deadline` passes.

    `deadline` is a time.monotonic() value.  A body shorter than its
    Content-Length raises http.client.IncompleteRead.
    """
    sock = _socket_of(response)
    read = getattr(response, "read1", None) or response.read
    chunks = []
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("deadline exceeded while reading response")
        if sock is not None:
            sock.settimeout(remaining)
        chunk = read(CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
    body = b"".join(chunks)
    missing = getattr(response, "length", None)
    if isinstance(missing, int) and missing > 0:
        raise http.client.IncompleteRead(body, missing)
    return body


def _read_error_body(error: urllib.error.HTTPError, deadline: float) -> str:
    """Body of an HTTP error response.  Timeouts propagate; other read failures give ""."""
    if getattr(error, "fp", None) is None:
        return ""
    try:
        return read_within(error.fp, deadline).decode("utf-8", errors="replace")
    except (OSError, http.client.HTTPException) as e:
        if _is_timeout(e):
            raise
        logger.debug("error body unreadable: %s", type(e).__name__)
        return ""


class QuoGateway:
    """Issues single, independent requests against the Quo API.

    Holds only read-only configuration, so one instance can serve
    concurrent tool calls from several threads.
    """

    def __init__(self, settings: Settings, redactor: Redactor, opener: Optional[Opener] = None):
        self._settings = settings
        self._redactor = redactor
        self._opener = opener or urllib.request.urlopen

    def build_url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        url = f"{self._settings.base_url}{path}"
        query = build_query(params)
        return f"{url}?{query}" if query else url

    def execute(
        self,
        path: str,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> Any:
        """Perform one request and return the decoded JSON body.

        Args:
            path: API path starting with "/", e.g. "/contacts/abc".
            method: HTTP method.
            params: Query parameters (lists repeat the key, None is skipped).
            body: JSON-serialisable request body, or None for no body.

        Returns:
            The decoded JSON value, or {"success": True} for 204 / empty
            responses.

        Raises:
            GatewayTimeoutError: the request exceeded the configured timeout.
            GatewayError: any other failure, with a redacted message.
        """
        url = self.build_url(path, params)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(
            url,
            data=data,
            method=method,
            headers={
                "Authorization": self._settings.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": f"quo-mcp/{__version__}",
            },
        )

        deadline = time.monotonic() + self._settings.timeout_seconds
        try:
            status, raw = self._send(request, deadline)
        except urllib.error.HTTPError as e:
            raise self._status_error(e, method, path, deadline) from None
        except (urllib.error.URLError, OSError, http.client.HTTPException) as e:
            raise self._transport_error(e, method, path) from None

        logger.debug("%s %s -> %s", method, path, status)
        if status == 204 or not raw:
            return dict(NO_CONTENT)
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise GatewayError(self._redactor.redact(f"Invalid JSON in response: {e}")) from None

    def _send(self, request: urllib.request.Request, deadline: float):
        with self._opener(request, timeout=self._settings.timeout_seconds) as response:
            return response.status, read_within(response, deadline)

    def _status_error(
        self, error: urllib.error.HTTPError, method: str, path: str, deadline: float
    ) -> GatewayError:
        try:
            body = _read_error_body(error, deadline)
        except (OSError, http.client.HTTPException) as e:
            return self._transport_error(e, method, path)
        detail = self._redactor.redact(extract_error_message(body))
        logger.debug("%s %s -> %s", method, path, error.code)
        return GatewayError(f"{SERVICE_NAME} {error.code} {error.reason}: {detail}", status=error.code)

    def _transport_error(self, error: BaseException, method: str, path: str) -> GatewayError:
        if _is_timeout(error):
            logger.debug("%s %s -> timeout", method, path)
            return GatewayTimeoutError(f"{SERVICE_NAME} request timed out after {self._settings.timeout_ms}ms")
        logger.debug("%s %s -> transport failure (%s)", method, path, type(error).__name__)
        return GatewayError(self._redactor.redact(str(error) or type(error).__name__))
