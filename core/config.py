# =============================================================================
# core/config.py  —  Process Configuration
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Reads the environment ONCE at startup and freezes the result into a
#   Settings value.  The gateway receives Settings explicitly;
#   nothing else in the package reads os.environ.
#
# ENVIRONMENT VARIABLES:
#   QUO_API_KEY                      required, sent verbatim as Authorization
#   QUO_HTTP_TIMEOUT_MS              optional, integer >= 1000 (default 30000)
#   QUO_BASE_URL                     optional, defaults to the public API
#   QUO_REQUIRE_DELETE_CONFIRMATION  optional, makes delete_contact demand
#                                    confirm=true
#   QUO_LOG_LEVEL                    optional, standard logging level name
#
#   main.py calls python-dotenv's load_dotenv() first, so a .env file in the
#   working directory works the same as exported variables.
# =============================================================================

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from core.errors import ConfigError

DEFAULT_BASE_URL = "https://api.openphone.com/v1"
DEFAULT_TIMEOUT_MS = 30000
MIN_TIMEOUT_MS = 1000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class Settings:
    """Immutable, process-wide configuration."""

    api_key: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    base_url: str = DEFAULT_BASE_URL
    require_delete_confirmation: bool = False
    log_level: str = "INFO"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def __repr__(self) -> str:
        # The key never appears in a repr (tracebacks, debug logs).
        return (
            f"Settings(api_key='***', timeout_ms={self.timeout_ms}, "
            f"base_url={self.base_url!r}, "
            f"require_delete_confirmation={self.require_delete_confirmation}, "
            f"log_level={self.log_level!r})"
        )


def _parse_timeout(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_MS
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError("QUO_HTTP_TIMEOUT_MS must be a number >= 1000") from None
    if value < MIN_TIMEOUT_MS:
        raise ConfigError("QUO_HTTP_TIMEOUT_MS must be a number >= 1000")
    return value


def _parse_flag(name: str, raw: Optional[str]) -> bool:
    value = (raw or "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be one of true/false, yes/no, on/off, 1/0")


def _parse_base_url(raw: Optional[str]) -> str:
    value = (raw or "").strip() or DEFAULT_BASE_URL
    if not value.startswith(("http://", "https://")):
        raise ConfigError("QUO_BASE_URL must start with http:// or https://")
    return value.rstrip("/")


def _parse_log_level(raw: Optional[str]) -> str:
    value = (raw or "").strip().upper() or "INFO"
    if value not in _LOG_LEVELS:
        raise ConfigError(f"QUO_LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment.

    Args:
        environ: Mapping to read from.  Defaults to os.environ; tests pass a
                 plain dict so they never touch the real environment.

    Returns:
        A frozen Settings instance.

    Raises:
        ConfigError: if any variable is missing or malformed.  The caller
            (main.py) prints the message and exits without starting.
    """
    env = os.environ if environ is None else environ

    api_key = (env.get("QUO_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("QUO_API_KEY environment variable is required")

    return Settings(
        api_key=api_key,
        timeout_ms=_parse_timeout(env.get("QUO_HTTP_TIMEOUT_MS")),
        base_url=_parse_base_url(env.get("QUO_BASE_URL")),
        require_delete_confirmation=_parse_flag(
            "QUO_REQUIRE_DELETE_CONFIRMATION", env.get("QUO_REQUIRE_DELETE_CONFIRMATION")
        ),
        log_level=_parse_log_level(env.get("QUO_LOG_LEVEL")),
    )
