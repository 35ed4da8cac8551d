"""MCP transport for the tool catalog."""

from .server import create_server

__all__ = ["create_server"]
