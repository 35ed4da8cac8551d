"""API route handlers."""

from . import graph, tools

__all__ = ["graph", "tools"]
