# =============================================================================
# core/errors.py  —  Exception Types
# =============================================================================
#
# Every failure a tool call can hit maps onto one of these classes.  The
# dispatch layer (core/registry.py) turns all of them except ConfigError
# into an error *result* so the MCP session stays alive.
#
#   QuoError
#     ├── ConfigError          startup only, fatal
#     ├── ValidationError      bad parameters, never reaches the API
#     ├── PreconditionError    handler refused before calling the API
#     ├── NotFoundError        unknown tool name
#     └── GatewayError         the HTTP call failed
#           └── GatewayTimeoutError
# =============================================================================

from typing import Optional


class QuoError(Exception):
    """Base class for everything raised by this package."""


class ConfigError(QuoError):
    """A required environment variable is missing or malformed."""


class ValidationError(QuoError):
    """A tool parameter violated its declared constraint."""

    def __init__(self, param: str, constraint: str):
        self.param = param
        self.constraint = constraint
        super().__init__(f"{param}: {constraint}")


class PreconditionError(QuoError):
    """A handler declined to call the API (e.g. nothing to update)."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(QuoError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class GatewayError(QuoError):
    """An outbound request failed.

    The message is always redacted before the exception is constructed, so
    it is safe to hand back to the caller or write to a log.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class GatewayTimeoutError(GatewayError):
    """The request was aborted after the configured timeout."""
