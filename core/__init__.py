# =============================================================================
# core/__init__.py
# =============================================================================
# This package contains ALL the logic for talking to the Quo REST API:
# configuration, secret redaction, the HTTP gateway, parameter schemas,
# the tool registry and the tool catalogue.
#
# Nothing in this package imports FastMCP.  tools/mcp_server.py is the only
# module that knows about the MCP protocol; everything here can be driven
# directly from a test or a REPL.
# =============================================================================

__version__ = "1.0.0"
