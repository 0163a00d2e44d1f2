# =============================================================================
# core/registry.py  —  Tool Registry & Dispatch
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Maps a tool name to its ToolDescriptor (description, parameter schema,
#   handler, envelope shape) and runs one tool call end to end:
#
#     dispatch("get_call", {"callId": "AC1"})
#       → validate params        (core/schema.py)
#       → handler(gateway, params)
#       → unwrap per Envelope    ({"data": ...} or verbatim)
#       → ToolCallResult         (one pretty-printed JSON text block)
#
# ERRORS ARE DATA:
#   Apart from an unknown tool name (NotFoundError), nothing raised during a
#   call escapes dispatch().  Validation failures, precondition refusals and
#   gateway failures all come back as a ToolCallResult with is_error=True,
#   so the MCP session survives and the caller can try again.
# =============================================================================

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from core.errors import GatewayError, NotFoundError, PreconditionError, ValidationError
from core.redaction import Redactor
from core.schema import Schema, validate

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


class Envelope(enum.Enum):
    """How a handler's raw API response becomes the tool result."""

    DATA = "data"        # unwrap {"data": ...}
    RAW = "raw"          # verbatim, keeps pagination tokens
    MESSAGE = "message"  # handler already returned the final text


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    schema: Schema
    handler: Handler
    envelope: Envelope = Envelope.DATA
    destructive: bool = False
    read_only: bool = False


@dataclass
class ToolCallResult:
    """One tool-call response: a single text block plus an error flag."""

    content: List[Dict[str, str]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text(cls, text: str) -> "ToolCallResult":
        return cls(content=[{"type": "text", "text": text}])

    @classmethod
    def error(cls, text: str) -> "ToolCallResult":
        return cls(content=[{"type": "text", "text": text}], is_error=True)

    @property
    def first_text(self) -> str:
        return self.content[0]["text"] if self.content else ""

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"content": list(self.content)}
        if self.is_error:
            payload["isError"] = True
        return payload


def pretty_json(payload: Any) -> str:
    return json.dumps(payload, indent=2)


def error_payload(message: str, details: Optional[str] = None) -> str:
    error: Dict[str, Any] = {"message": message}
    if details:
        error["details"] = details
    return pretty_json({"error": error})


def unwrap(envelope: Envelope, result: Any) -> Any:
    if envelope is Envelope.DATA and isinstance(result, Mapping) and "data" in result:
        return result["data"]
    return result


class ToolRegistry:
    """Process-wide table of tools, built once at startup."""

    def __init__(self, redactor: Redactor):
        self._redactor = redactor
        self._tools: Dict[str, ToolDescriptor] = {}

    def register(
        self,
        name: str,
        description: str,
        schema: Schema,
        handler: Handler,
        envelope: Envelope = Envelope.DATA,
        destructive: bool = False,
        read_only: bool = False,
    ) -> ToolDescriptor:
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        descriptor = ToolDescriptor(
            name=name,
            description=description,
            schema=schema,
            handler=handler,
            envelope=envelope,
            destructive=destructive,
            read_only=read_only,
        )
        self._tools[name] = descriptor
        return descriptor

    def get(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise NotFoundError(name) from None

    def names(self) -> List[str]:
        return list(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def dispatch(self, name: str, raw_params: Optional[Mapping[str, Any]] = None) -> ToolCallResult:
        """Run one tool call.

        Raises:
            NotFoundError: if `name` is not registered.  Every other failure
                is returned as an error result.
        """
        tool = self.get(name)
        redact = self._redactor.redact

        try:
            params = validate(tool.schema, raw_params)
        except ValidationError as e:
            logger.info("%s rejected: %s", name, redact(str(e)))
            return ToolCallResult.error(
                error_payload(f"Invalid parameters for {name}", redact(str(e)))
            )

        logger.debug("%s params: %s", name, redact(params))

        try:
            result = tool.handler(params)
        except PreconditionError as e:
            logger.info("%s refused: %s", name, redact(e.message))
            return ToolCallResult.error(error_payload(redact(e.message), redact(e.details)))
        except GatewayError as e:
            # Gateway messages are redacted when they are built.
            logger.warning("%s failed: %s", name, e)
            return ToolCallResult.error(str(e))
        except Exception as e:
            logger.error("%s raised %s: %s", name, type(e).__name__, redact(str(e)))
            return ToolCallResult.error(redact(f"Unexpected error in {name}: {e}"))

        logger.info("%s succeeded", name)
        if tool.envelope is Envelope.MESSAGE:
            return ToolCallResult.text(str(result))
        return ToolCallResult.text(pretty_json(unwrap(tool.envelope, result)))
