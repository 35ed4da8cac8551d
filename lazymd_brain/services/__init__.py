"""Service layer: buffers, structure indexing, link graph and tool dispatch."""

from __future__ import annotations

from .buffer import Document, normalize_newlines, split_lines
from .config import AppConfig, get_config, reload_config
from .dispatcher import DispatcherState, ToolDispatcher
from .errors import (
    AmbiguousPathError,
    DocumentIOError,
    DocumentServiceError,
    InvalidArgumentsError,
    InvalidMoveError,
    NoPathError,
    NotFoundError,
    OutOfRangeError,
    SectionNotFoundError,
    UnknownToolError,
)
from .graph import GraphSnapshot, LinkGraph
from .graph_query import GraphQueryEngine, TargetResolver
from .links import Link, extract_links, normalize_slug, normalize_target
from .registry import DocumentRegistry, sanitize_path, validate_document_path
from .structure import Section, StructureIndexer, TaskItem, parse_structure


def create_dispatcher(config: AppConfig | None = None) -> ToolDispatcher:
    """Wire a registry, graph and dispatcher for one workspace."""
    config = config or get_config()
    registry = DocumentRegistry(config)
    if config.preload:
        registry.load_all()
    return ToolDispatcher(registry)


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "Document",
    "normalize_newlines",
    "split_lines",
    "StructureIndexer",
    "Section",
    "TaskItem",
    "parse_structure",
    "Link",
    "extract_links",
    "normalize_slug",
    "normalize_target",
    "LinkGraph",
    "GraphSnapshot",
    "GraphQueryEngine",
    "TargetResolver",
    "DocumentRegistry",
    "sanitize_path",
    "validate_document_path",
    "ToolDispatcher",
    "DispatcherState",
    "create_dispatcher",
    "DocumentServiceError",
    "NotFoundError",
    "OutOfRangeError",
    "SectionNotFoundError",
    "AmbiguousPathError",
    "InvalidMoveError",
    "NoPathError",
    "UnknownToolError",
    "InvalidArgumentsError",
    "DocumentIOError",
]
