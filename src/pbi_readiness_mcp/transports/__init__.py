# Power BI Readiness MCP Server
# File: transports/__init__.py
# Version: v1

"""MCP transports."""
