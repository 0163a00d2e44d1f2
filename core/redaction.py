# =============================================================================
# core/redaction.py  —  Secret Redactor
# =============================================================================
#
# Anything that leaves the process (error text in a tool result, a log line)
# goes through Redactor.redact() first.  Two passes:
#   1. every literal occurrence of the configured API key
#   2. anything shaped like  Authorization: <value>  in any quoting style,
#      which catches tokens that are not the configured key
# =============================================================================

import json
import re
from typing import Any

REDACTED_API_KEY = "***REDACTED_API_KEY***"
REDACTED = "***REDACTED***"

_AUTHORIZATION_PATTERN = re.compile(
    r"""(Authorization["']?\s*:\s*["']?)[^"',\s}]+""",
    re.IGNORECASE,
)


class Redactor:
    """Scrubs the API key and Authorization values out of arbitrary values."""

    def __init__(self, api_key: str):
        self._api_key = api_key

    def redact(self, value: Any) -> Any:
        """Return `value` as a string with secrets replaced.

        Strings are scrubbed as-is.  Other values are serialised to compact
        JSON first (falling back to str() when they aren't serialisable).
        None passes through unchanged.
        """
        if value is None:
            return None
        if isinstance(value, str):
            text = value
        else:
            try:
                text = json.dumps(value, separators=(",", ":"))
            except (TypeError, ValueError):
                text = str(value)

        if self._api_key:
            text = text.replace(self._api_key, REDACTED_API_KEY)
        return _AUTHORIZATION_PATTERN.sub(lambda m: m.group(1) + REDACTED, text)
