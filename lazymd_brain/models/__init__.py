"""Pydantic models for data validation and serialization."""

from .graph import GraphData, GraphLink, GraphNode
from .responses import ErrorEnvelope, ToolResponse
from .tools import TOOL_ARGUMENTS, ToolArguments

__all__ = [
    "GraphData",
    "GraphLink",
    "GraphNode",
    "ErrorEnvelope",
    "ToolResponse",
    "TOOL_ARGUMENTS",
    "ToolArguments",
]
