# =============================================================================
# main.py  —  Entry Point for the Quo MCP Server
# =============================================================================
#
# HOW TO RUN:
#   QUO_API_KEY=... python main.py
#   (or put QUO_API_KEY in a .env file next to this script)
#
# WHAT HAPPENS:
#   1. Loads .env (python-dotenv) into the environment
#   2. Reads and validates configuration ONCE (core/config.py)
#   3. Refuses to start, with a message on stderr, if anything is wrong
#   4. Builds the FastMCP server (tools/mcp_server.py)
#   5. Serves tool calls over stdio until the client disconnects
# =============================================================================

import sys

from dotenv import load_dotenv

from core.config import load_settings
from core.errors import ConfigError
from core.redaction import Redactor


def main() -> int:
    """Start the server.  Returns the process exit status."""
    load_dotenv()

    try:
        settings = load_settings()
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 1

    # Imported late so a bad configuration is reported before FastMCP loads.
    from tools.mcp_server import SERVER_NAME, configure_logging, create_server

    configure_logging(settings.log_level)
    redactor = Redactor(settings.api_key)

    try:
        server = create_server(settings)
        server.run()
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"Failed to start {SERVER_NAME}: {redactor.redact(str(e))}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
