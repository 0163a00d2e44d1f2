# =============================================================================
# tools/__init__.py
# =============================================================================
# The MCP layer.  mcp_server.py turns each ToolDescriptor from
# core/catalog.py into a FastMCP tool and translates error results into
# MCP error responses.
#
# WHAT TOOLS DO NOT DO:
#   - They do NOT validate parameters (core/schema.py does)
#   - They do NOT make HTTP calls (core/gateway.py does)
#   - They do NOT hold state between calls
# =============================================================================
