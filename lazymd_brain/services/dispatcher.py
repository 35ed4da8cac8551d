"""Tool Dispatcher - routes catalog tool calls to document and graph services.

Requests are handled one at a time: each call validates its arguments
against the tool's closed schema, runs exactly one component operation and,
for mutations, re-indexes the document and refreshes its graph edges before
the response is built.
"""

from __future__ import annotations

from enum import Enum
from itertools import groupby
import json
import logging
import re
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..models.responses import ToolResponse
from ..models.tools import (
    TOOL_ARGUMENTS,
    EditSectionArgs,
    FindPathArgs,
    GetBacklinksArgs,
    GetBreadcrumbArgs,
    GetGraphArgs,
    GetHubNotesArgs,
    GetNeighborsArgs,
    GetOrphansArgs,
    GetStructureArgs,
    ListHeadingsArgs,
    ListLinksArgs,
    ListTasksArgs,
    MoveSectionArgs,
    OpenFileArgs,
    ReadDocumentArgs,
    ReadSectionArgs,
    SearchContentArgs,
    ToolArguments,
    UpdateTaskArgs,
    WriteDocumentArgs,
)
from .buffer import Document
from .errors import DocumentServiceError, InvalidArgumentsError, UnknownToolError
from .graph_query import GraphQueryEngine
from .registry import DocumentRegistry

logger = logging.getLogger(__name__)

INTERNAL_ERROR_KIND = "Internal"


class DispatcherState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class ToolDispatcher:
    """
    Executes catalog tools against a document registry.

    The registry is passed in by the caller; the dispatcher holds no global
    state of its own beyond its request lock.
    """

    def __init__(
        self,
        registry: DocumentRegistry,
        *,
        query_engine: Optional[GraphQueryEngine] = None,
        autosave: Optional[bool] = None,
    ) -> None:
        self.registry = registry
        self.indexer = registry.indexer
        self.graph = registry.graph
        self.queries = query_engine or GraphQueryEngine(registry.graph)
        self.autosave = registry.config.autosave if autosave is None else autosave
        self.state = DispatcherState.IDLE
        self._lock = threading.Lock()

        # Tool registry mapping tool names to handler methods
        self._tools: Dict[str, Callable[[Any], Any]] = {
            # Document tools
            "open_file": self._open_file,
            "read_document": self._read_document,
            "write_document": self._write_document,
            "search_content": self._search_content,
            "edit_section": self._edit_section,
            "read_section": self._read_section,
            "get_structure": self._get_structure,
            # Navigation tools
            "list_headings": self._list_headings,
            "get_breadcrumb": self._get_breadcrumb,
            "move_section": self._move_section,
            "list_tasks": self._list_tasks,
            "update_task": self._update_task,
            # Graph tools
            "list_links": self._list_links,
            "get_backlinks": self._get_backlinks,
            "get_graph": self._get_graph,
            "get_neighbors": self._get_neighbors,
            "find_path": self._find_path,
            "get_orphans": self._get_orphans,
            "get_hub_notes": self._get_hub_notes,
        }

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def catalog(self) -> List[Dict[str, Any]]:
        """Tool names, descriptions and JSON schemas for discovery."""
        return [
            {
                "name": name,
                "description": TOOL_ARGUMENTS[name].description,
                "mutates": TOOL_ARGUMENTS[name].mutates,
                "inputSchema": TOOL_ARGUMENTS[name].model_json_schema(),
            }
            for name in self._tools
        ]

    def dispatch(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResponse:
        """
        Execute one tool call and return its response envelope.

        Component failures come back as error envelopes; they never escape
        and never leave the dispatcher in the processing state.
        """
        start_time = time.time()
        with self._lock:
            self.state = DispatcherState.PROCESSING
            try:
                result = self._invoke(name, {} if arguments is None else arguments)
                response = ToolResponse.success(name, result)
            except DocumentServiceError as exc:
                logger.warning(
                    f"Tool {name} failed: {exc.message}",
                    extra={"tool_name": name, "kind": exc.kind, "field": exc.field},
                )
                response = ToolResponse.failure(name, exc.kind, exc.message, exc.field)
            except Exception as exc:
                logger.exception(f"Tool {name} execution failed: {exc}")
                response = ToolResponse.failure(
                    name, INTERNAL_ERROR_KIND, f"Tool execution failed: {exc}"
                )
            finally:
                self.state = DispatcherState.IDLE

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Tool dispatched",
            extra={
                "tool_name": name,
                "ok": response.ok,
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return response

    def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """JSON string form of :meth:`dispatch`."""
        response = self.dispatch(name, arguments)
        return json.dumps(response.model_dump(mode="json", exclude_none=True), default=str)

    def _invoke(self, name: str, arguments: Any) -> Any:
        handler = self._tools.get(name)
        if handler is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        if not isinstance(arguments, dict):
            raise InvalidArgumentsError("Tool arguments must be an object")
        args = self._validate(TOOL_ARGUMENTS[name], arguments)
        return handler(args)

    @staticmethod
    def _validate(model: type[ToolArguments], arguments: Dict[str, Any]) -> ToolArguments:
        try:
            return model.model_validate(arguments)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = [str(part) for part in first.get("loc", ())]
            field = location[0] if location else None
            where = ".".join(location) or "arguments"
            raise InvalidArgumentsError(
                f"Invalid argument '{where}': {first.get('msg', 'invalid value')}",
                field=field,
            ) from exc

    def _commit(self, doc: Document) -> bool:
        """Re-index a mutated document, then persist it when autosave is on."""
        self.registry.reindex(doc)
        if not self.autosave:
            return False
        doc.save()
        return True

    def _graph_document(self, identifier: str) -> str:
        """Resolve a path or note name to a document id, opening files on demand."""
        if identifier.endswith(".md"):
            doc_id, absolute_path = self.registry.resolve_path(identifier)
            if doc_id in self.graph or absolute_path.is_file():
                return self.registry.require(identifier).doc_id
        return self.queries.resolve_document(identifier)

    @staticmethod
    def _summary(doc: Document) -> Dict[str, Any]:
        with doc.lock:
            headings = sum(1 for _ in doc.structure.walk()) - 1 if doc.structure else 0
            return {
                "path": doc.doc_id,
                "title": doc.title,
                "line_count": doc.line_count,
                "version": doc.version,
                "dirty": doc.dirty,
                "heading_count": headings,
                "task_count": len(doc.tasks),
                "link_count": len(doc.links),
            }

    # =========================================================================
    # Document Tool Implementations
    # =========================================================================

    def _open_file(self, args: OpenFileArgs) -> Dict[str, Any]:
        return self._summary(self.registry.open(args.path))

    def _read_document(self, args: ReadDocumentArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        with doc.lock:
            end_line = doc.line_count if args.end_line is None else args.end_line
            content = doc.read_range(args.start_line, end_line)
            return {
                "path": doc.doc_id,
                "start_line": args.start_line,
                "end_line": end_line,
                "line_count": doc.line_count,
                "content": content,
            }

    def _write_document(self, args: WriteDocumentArgs) -> Dict[str, Any]:
        self.registry.check_size(args.content)
        doc = self.registry.get(args.path)
        created = False
        if doc is None:
            _, absolute_path = self.registry.resolve_path(args.path)
            if absolute_path.exists():
                doc = self.registry.open(args.path)
            else:
                doc = self.registry.create(args.path)
                created = True
        doc.set_text(args.content)
        saved = self._commit(doc)
        return {**self._summary(doc), "created": created, "saved": saved}

    def _search_content(self, args: SearchContentArgs) -> Dict[str, Any]:
        flags = 0 if args.case_sensitive else re.IGNORECASE
        try:
            pattern = re.compile(args.query if args.regex else re.escape(args.query), flags)
        except re.error as exc:
            raise InvalidArgumentsError(f"Invalid regular expression: {exc}", field="query") from exc

        documents = [self.registry.require(args.path)] if args.path else self.registry.documents()
        results: List[Dict[str, Any]] = []
        truncated = False
        for doc in documents:
            for index, line in enumerate(doc.lines):
                if not pattern.search(line):
                    continue
                if len(results) >= args.limit:
                    truncated = True
                    break
                crumbs = self.indexer.get_breadcrumb(doc, index)
                results.append(
                    {
                        "path": doc.doc_id,
                        "line": index,
                        "text": line,
                        "section": [section.title for section in crumbs],
                    }
                )
            if truncated:
                break
        return {
            "query": args.query,
            "results": results,
            "count": len(results),
            "truncated": truncated,
        }

    def _edit_section(self, args: EditSectionArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        start_line, end_line = self.indexer.edit_section(
            doc,
            args.section,
            args.content,
            include_heading=args.include_heading,
            strict=args.strict,
        )
        saved = self._commit(doc)
        return {
            "path": doc.doc_id,
            "start_line": start_line,
            "end_line": end_line,
            "version": doc.version,
            "saved": saved,
        }

    def _read_section(self, args: ReadSectionArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        section, content = self.indexer.read_section(
            doc, args.section, include_children=args.include_children, strict=args.strict
        )
        return {
            "path": doc.doc_id,
            "section": section.to_dict(include_children=False),
            "content": content,
        }

    def _get_structure(self, args: GetStructureArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        root = self.indexer.get_structure(doc)
        return {
            "path": doc.doc_id,
            "title": doc.title,
            "line_count": doc.line_count,
            "root": root.to_dict(),
            "task_count": len(doc.tasks),
        }

    # =========================================================================
    # Navigation Tool Implementations
    # =========================================================================

    def _list_headings(self, args: ListHeadingsArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        headings = [
            {
                "level": section.level,
                "title": section.title,
                "line": section.heading_line,
                "path": list(section.path),
            }
            for section in self.indexer.list_headings(doc)
        ]
        return {"path": doc.doc_id, "headings": headings, "count": len(headings)}

    def _get_breadcrumb(self, args: GetBreadcrumbArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        chain = self.indexer.get_breadcrumb(doc, args.line)
        return {
            "path": doc.doc_id,
            "line": args.line,
            "breadcrumb": [section.title for section in chain],
            "sections": [
                {"level": section.level, "title": section.title, "line": section.heading_line}
                for section in chain
            ],
        }

    def _move_section(self, args: MoveSectionArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        start_line, end_line = self.indexer.move_section(
            doc, args.section, args.target, args.position, strict=args.strict
        )
        saved = self._commit(doc)
        chain = self.indexer.get_breadcrumb(doc, start_line)
        return {
            "path": doc.doc_id,
            "start_line": start_line,
            "end_line": end_line,
            "breadcrumb": [section.title for section in chain],
            "version": doc.version,
            "saved": saved,
        }

    def _list_tasks(self, args: ListTasksArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        tasks = self.indexer.list_tasks(doc, args.section, completed=args.completed)
        return {
            "path": doc.doc_id,
            "tasks": [task.to_dict() for task in tasks],
            "count": len(tasks),
            "completed_count": sum(1 for task in tasks if task.completed),
        }

    def _update_task(self, args: UpdateTaskArgs) -> Dict[str, Any]:
        doc = self.registry.require(args.path)
        task = self.indexer.update_task(doc, args.task, args.completed)
        saved = self._commit(doc)
        return {"path": doc.doc_id, "task": task.to_dict(), "saved": saved}

    # =========================================================================
    # Graph Tool Implementations
    # =========================================================================

    def _list_links(self, args: ListLinksArgs) -> Dict[str, Any]:
        doc_id = self._graph_document(args.path)
        links = [
            {**link.to_dict(), "resolved": target}
            for link, target in self.queries.outgoing_links(doc_id)
        ]
        return {
            "path": doc_id,
            "links": links,
            "count": len(links),
            "broken_count": sum(1 for entry in links if entry["resolved"] is None),
        }

    def _get_backlinks(self, args: GetBacklinksArgs) -> Dict[str, Any]:
        doc_id = self._graph_document(args.path)
        titles = self.graph.snapshot().nodes
        backlinks = []
        for source, group in groupby(self.queries.backlinks(doc_id), key=lambda link: link.source):
            backlinks.append(
                {
                    "source": source,
                    "title": titles.get(source, source),
                    "links": [
                        {"section": list(link.section_path), "line": link.line, "text": link.raw}
                        for link in group
                    ],
                }
            )
        return {"path": doc_id, "backlinks": backlinks, "count": len(backlinks)}

    def _get_graph(self, args: GetGraphArgs) -> Dict[str, Any]:
        return self.queries.graph_snapshot().model_dump()

    def _get_neighbors(self, args: GetNeighborsArgs) -> Dict[str, Any]:
        doc_id = self._graph_document(args.path)
        neighbors = self.queries.neighbors(doc_id)
        return {"path": doc_id, "neighbors": neighbors, "count": len(neighbors)}

    def _find_path(self, args: FindPathArgs) -> Dict[str, Any]:
        source = self._graph_document(args.source)
        target = self._graph_document(args.target)
        path = self.queries.find_path(source, target, args.max_depth)
        return {"source": source, "target": target, "path": path, "length": len(path) - 1}

    def _get_orphans(self, args: GetOrphansArgs) -> Dict[str, Any]:
        orphans = self.queries.orphans()
        return {"orphans": orphans, "count": len(orphans)}

    def _get_hub_notes(self, args: GetHubNotesArgs) -> Dict[str, Any]:
        titles = self.graph.snapshot().nodes
        hubs = [
            {
                "path": doc_id,
                "title": titles.get(doc_id, doc_id),
                "degree": in_degree + out_degree,
                "in_degree": in_degree,
                "out_degree": out_degree,
            }
            for doc_id, in_degree, out_degree in self.queries.hub_notes(args.limit)
        ]
        return {"hubs": hubs, "count": len(hubs)}


__all__ = ["ToolDispatcher", "DispatcherState"]
