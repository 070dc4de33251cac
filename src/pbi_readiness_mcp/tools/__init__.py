# Power BI Readiness MCP Server
# File: tools/__init__.py
# Version: v2

"""MCP tool definitions for the readiness server."""

from __future__ import annotations

from .tasks import register_tools

__all__ = ["register_tools"]
