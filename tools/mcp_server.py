# =============================================================================
# tools/mcp_server.py  —  FastMCP Tool Server
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Exposes every tool in the core/ registry over MCP.  The tools themselves
#   (schemas, handlers, descriptions) live in core/catalog.py; this file only
#   adapts them to FastMCP.
#
# HOW IT WORKS (the flow):
#   1. The client lists tools; each RegistryTool advertises the JSON Schema
#      rendered from its parameter descriptors.
#   2. The client calls a tool by name (e.g. "get_contact").
#   3. RegistryTool.run() hands the raw arguments to ToolRegistry.dispatch()
#      on a worker thread (the gateway blocks on urllib).
#   4. Success → one TextContent block.  Error result → ToolError, which the
#      MCP layer turns into {"isError": true} with the same text.
#
# RUNNING THIS SERVER:
#   python main.py          (stdio transport)
#   python -m tools.mcp_server
# =============================================================================

import asyncio
import logging
import sys
from typing import Any, Callable, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent, ToolAnnotations
from pydantic import Field

from core import __version__
from core.catalog import build_registry
from core.config import Settings
from core.gateway import Opener, QuoGateway
from core.redaction import Redactor
from core.registry import ToolCallResult, ToolDescriptor, ToolRegistry
from core.schema import to_json_schema

SERVER_NAME = "quo-mcp"

logger = logging.getLogger("quo.mcp")

# =============================================================================
# Logging Setup
# =============================================================================
# STDOUT carries the MCP JSON stream, so every log line goes to STDERR.
#
#   CYAN   → incoming tool calls
#   GREEN  → successful responses
#   YELLOW → error results
# =============================================================================
_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [MCP] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _log_request(redactor: Redactor, tool_name: str, arguments: Dict[str, Any]) -> None:
    keys = ", ".join(sorted(arguments)) or "no arguments"
    logger.info(f"{_CYAN}{tool_name} called with: {redactor.redact(keys)}{_RESET}")


def _log_response(tool_name: str, result: ToolCallResult) -> ToolCallResult:
    if result.is_error:
        # Result text is already redacted by the registry.
        logger.info(f"{_YELLOW}  ← {tool_name} error: {result.first_text}{_RESET}")
    else:
        logger.info(f"{_GREEN}  ← {tool_name} ok ({len(result.first_text)} chars){_RESET}")
    return result


# =============================================================================
# RegistryTool: one MCP tool backed by a ToolDescriptor
# =============================================================================
class RegistryTool(Tool):
    """FastMCP tool that delegates to ToolRegistry.dispatch()."""

    dispatcher: Callable[[str, Dict[str, Any]], ToolCallResult] = Field(exclude=True)
    redactor: Redactor = Field(exclude=True)

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def from_descriptor(cls, descriptor: ToolDescriptor, registry: ToolRegistry,
                        redactor: Redactor) -> "RegistryTool":
        return cls(
            name=descriptor.name,
            description=descriptor.description,
            parameters=to_json_schema(descriptor.schema),
            annotations=ToolAnnotations(
                readOnlyHint=descriptor.read_only,
                destructiveHint=descriptor.destructive,
                idempotentHint=descriptor.read_only,
                openWorldHint=True,
            ),
            dispatcher=registry.dispatch,
            redactor=redactor,
        )

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        _log_request(self.redactor, self.name, arguments)
        result = await asyncio.to_thread(self.dispatcher, self.name, arguments)
        _log_response(self.name, result)
        if result.is_error:
            raise ToolError(result.first_text)
        return ToolResult(content=[TextContent(type="text", text=result.first_text)])


# =============================================================================
# Server construction
# =============================================================================
def create_server(settings: Settings, opener: Optional[Opener] = None) -> FastMCP:
    """Build a FastMCP server exposing every Quo tool.

    Args:
        settings: Frozen process configuration (see core/config.py).
        opener: Replacement for urllib.request.urlopen, used by tests.

    Returns:
        A FastMCP instance ready for run().
    """
    redactor = Redactor(settings.api_key)
    gateway = QuoGateway(settings, redactor, opener=opener)
    registry = build_registry(
        gateway,
        redactor,
        require_delete_confirmation=settings.require_delete_confirmation,
    )

    mcp = FastMCP(SERVER_NAME, version=__version__)
    for descriptor in registry:
        mcp.add_tool(RegistryTool.from_descriptor(descriptor, registry, redactor))

    logger.debug("Registered %d tools against %s", len(registry), settings.base_url)
    return mcp


if __name__ == "__main__":
    from main import main

    sys.exit(main())
