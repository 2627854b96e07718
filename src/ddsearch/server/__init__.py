"""MCP serving sidecar for ddsearch."""

from ddsearch.server.mcp_server import create_mcp_server

__all__ = ["create_mcp_server"]
