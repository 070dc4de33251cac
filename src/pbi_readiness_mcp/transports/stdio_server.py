# Power BI Readiness MCP Server
# File: transports/stdio_server.py
# Version: v2

"""STDIO entrypoint for the Power BI Readiness MCP server.

This is the script behind the ``pbi-readiness-mcp`` console command.

It:

- configures logging on stderr (stdout carries the MCP protocol),
- creates a FastMCP server,
- registers the readiness tools, and
- runs the built-in stdio transport.
"""

from __future__ import annotations

import logging
import os
import sys

from mcp.server.fastmcp import FastMCP

from ..tools import tasks


def _configure_logging() -> None:
    level_name = (os.getenv("PBI_LOG_LEVEL") or "WARNING").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    _configure_logging()

    mcp = FastMCP("pbi-readiness-mcp")

    # Register readiness tools (ping, list_capacities, run_readiness_assessment, …)
    tasks.register_tools(mcp)

    # Let FastMCP handle stdio + event loop setup.
    mcp.run()


if __name__ == "__main__":
    main()
