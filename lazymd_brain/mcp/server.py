"""FastMCP server exposing document, navigation and graph tools."""

from __future__ import annotations

import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from ..services import ToolDispatcher, create_dispatcher, get_config

logger = logging.getLogger(__name__)

SERVER_NAME = "lazymd-brain"
INSTRUCTIONS = (
    "Markdown document and knowledge-graph tools. Paths are workspace-relative '.md' files "
    "under 256 chars without '..' or '\\'. Lines, tasks and ranges are 0-based and half-open. "
    "Sections are addressed by heading titles from the top level down ('Intro > Setup'); "
    "duplicate sibling titles resolve to the first match unless strict=true. Writes, section "
    "edits, moves and task updates re-index the document and its [[wiki-links]] before "
    "responding. Links resolve by path, file name or title; unresolved targets show up as "
    "missing nodes and heal when the note is opened. Every response is {tool, ok, result} or "
    "{tool, ok, error: {kind, message, offending_field}}."
)

PATH_FIELD = "Workspace-relative '.md' path ≤256 chars (no '..' or '\\')."
SECTION_FIELD = "Heading titles from the top level down, as a list or 'A > B'."

SectionArg = Union[str, List[str]]


def create_server(dispatcher: ToolDispatcher) -> FastMCP:
    """Build a FastMCP server whose tools forward to ``dispatcher``."""
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

    def _call(tool_name: str, **arguments: Any) -> Dict[str, Any]:
        start_time = time.time()
        payload = {key: value for key, value in arguments.items() if value is not None}
        response = dispatcher.dispatch(tool_name, payload)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "MCP tool called",
            extra={
                "tool_name": tool_name,
                "ok": response.ok,
                "args_keys": sorted(payload),
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return response.model_dump(mode="json")

    # ------------------------------------------------------------------ documents

    @mcp.tool(name="open_file", description="Open a markdown document and index its structure and links.")
    def open_file(path: str = Field(..., description=PATH_FIELD)) -> Dict[str, Any]:
        return _call("open_file", path=path)

    @mcp.tool(name="read_document", description="Read a document or the line range [start_line, end_line).")
    def read_document(
        path: str = Field(..., description=PATH_FIELD),
        start_line: int = Field(default=0, ge=0, description="First line (0-based)."),
        end_line: Optional[int] = Field(default=None, ge=0, description="Exclusive end line."),
    ) -> Dict[str, Any]:
        return _call("read_document", path=path, start_line=start_line, end_line=end_line)

    @mcp.tool(
        name="write_document",
        description="Replace a document's content (creating it if needed) and re-index it.",
    )
    def write_document(
        path: str = Field(..., description=PATH_FIELD),
        content: str = Field(..., description="Full markdown content."),
    ) -> Dict[str, Any]:
        return _call("write_document", path=path, content=content)

    @mcp.tool(name="search_content", description="Search open documents line by line.")
    def search_content(
        query: str = Field(..., description="Text or regular expression to find."),
        path: Optional[str] = Field(default=None, description="Restrict to one document."),
        regex: bool = Field(default=False, description="Treat query as a regular expression."),
        case_sensitive: bool = Field(default=False),
        limit: int = Field(50, ge=1, le=500, description="Result cap between 1 and 500."),
    ) -> Dict[str, Any]:
        return _call(
            "search_content",
            query=query,
            path=path,
            regex=regex,
            case_sensitive=case_sensitive,
            limit=limit,
        )

    @mcp.tool(name="edit_section", description="Replace the body of a section, keeping its heading.")
    def edit_section(
        path: str = Field(..., description=PATH_FIELD),
        section: SectionArg = Field(..., description=SECTION_FIELD),
        content: str = Field(..., description="Replacement markdown."),
        include_heading: bool = Field(default=False, description="Replace the heading line too."),
        strict: bool = Field(default=False, description="Fail on duplicate sibling titles."),
    ) -> Dict[str, Any]:
        return _call(
            "edit_section",
            path=path,
            section=section,
            content=content,
            include_heading=include_heading,
            strict=strict,
        )

    @mcp.tool(name="read_section", description="Read one section by its heading path.")
    def read_section(
        path: str = Field(..., description=PATH_FIELD),
        section: SectionArg = Field(..., description=SECTION_FIELD),
        include_children: bool = Field(default=True, description="Include nested subsections."),
        strict: bool = Field(default=False, description="Fail on duplicate sibling titles."),
    ) -> Dict[str, Any]:
        return _call(
            "read_section",
            path=path,
            section=section,
            include_children=include_children,
            strict=strict,
        )

    @mcp.tool(name="get_structure", description="Heading tree of a document with line and byte ranges.")
    def get_structure(path: str = Field(..., description=PATH_FIELD)) -> Dict[str, Any]:
        return _call("get_structure", path=path)

    # ----------------------------------------------------------------- navigation

    @mcp.tool(name="list_headings", description="List headings in document order.")
    def list_headings(path: str = Field(..., description=PATH_FIELD)) -> Dict[str, Any]:
        return _call("list_headings", path=path)

    @mcp.tool(name="get_breadcrumb", description="Heading path enclosing a line.")
    def get_breadcrumb(
        path: str = Field(..., description=PATH_FIELD),
        line: int = Field(..., ge=0, description="Line number (0-based)."),
    ) -> Dict[str, Any]:
        return _call("get_breadcrumb", path=path, line=line)

    @mcp.tool(
        name="move_section",
        description="Move a section and its subsections before, after or inside another section.",
    )
    def move_section(
        path: str = Field(..., description=PATH_FIELD),
        section: SectionArg = Field(..., description=SECTION_FIELD),
        target: SectionArg = Field(..., description="Reference section path; empty for the root."),
        position: str = Field(..., description="'before', 'after' or 'inside'."),
        strict: bool = Field(default=False, description="Fail on duplicate sibling titles."),
    ) -> Dict[str, Any]:
        return _call(
            "move_section",
            path=path,
            section=section,
            target=target,
            position=position,
            strict=strict,
        )

    @mcp.tool(name="list_tasks", description="List checkbox tasks, optionally by section or state.")
    def list_tasks(
        path: str = Field(..., description=PATH_FIELD),
        section: Optional[SectionArg] = Field(default=None, description=SECTION_FIELD),
        completed: Optional[bool] = Field(default=None, description="Filter by completion."),
    ) -> Dict[str, Any]:
        return _call("list_tasks", path=path, section=section, completed=completed)

    @mcp.tool(name="update_task", description="Check, uncheck or toggle one task by ordinal.")
    def update_task(
        path: str = Field(..., description=PATH_FIELD),
        task: int = Field(..., ge=0, description="Task ordinal from list_tasks."),
        completed: Optional[bool] = Field(default=None, description="New state; omit to toggle."),
    ) -> Dict[str, Any]:
        return _call("update_task", path=path, task=task, completed=completed)

    # ---------------------------------------------------------------------- graph

    @mcp.tool(name="list_links", description="Outgoing [[wiki-links]] with resolved targets.")
    def list_links(path: str = Field(..., description=PATH_FIELD)) -> Dict[str, Any]:
        return _call("list_links", path=path)

    @mcp.tool(name="get_backlinks", description="Documents and sections linking to a document.")
    def get_backlinks(path: str = Field(..., description=PATH_FIELD)) -> Dict[str, Any]:
        return _call("get_backlinks", path=path)

    @mcp.tool(name="get_graph", description="All nodes and edges of the link graph.")
    def get_graph() -> Dict[str, Any]:
        return _call("get_graph")

    @mcp.tool(name="get_neighbors", description="Documents linked to or from a document.")
    def get_neighbors(path: str = Field(..., description=PATH_FIELD)) -> Dict[str, Any]:
        return _call("get_neighbors", path=path)

    @mcp.tool(name="find_path", description="Shortest link path between two documents.")
    def find_path(
        source: str = Field(..., description="Start document path or note name."),
        target: str = Field(..., description="End document path or note name."),
        max_depth: Optional[int] = Field(default=None, ge=0, description="Maximum hops."),
    ) -> Dict[str, Any]:
        return _call("find_path", source=source, target=target, max_depth=max_depth)

    @mcp.tool(name="get_orphans", description="Documents without resolved links in or out.")
    def get_orphans() -> Dict[str, Any]:
        return _call("get_orphans")

    @mcp.tool(name="get_hub_notes", description="Documents ranked by link degree.")
    def get_hub_notes(
        limit: int = Field(10, ge=1, le=1000, description="Number of documents returned."),
    ) -> Dict[str, Any]:
        return _call("get_hub_notes", limit=limit)

    return mcp


def main() -> None:
    load_dotenv()
    config = get_config()
    # stdout carries JSON-RPC in stdio mode
    logging.basicConfig(
        level=config.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mcp = create_server(create_dispatcher(config))

    transport = os.getenv("MCP_TRANSPORT", "stdio").strip().lower() or "stdio"
    if transport == "http":
        port = int(os.getenv("MCP_PORT", "8001"))
        host = os.getenv("MCP_HOST", "127.0.0.1")
        logger.info(
            "Starting MCP server",
            extra={"transport": transport, "host": host, "port": port},
        )
        mcp.run(transport=transport, host=host, port=port)
    else:
        logger.info(
            "Starting MCP server",
            extra={"transport": transport, "workspace": str(config.workspace_root)},
        )
        mcp.run(transport=transport)


if __name__ == "__main__":
    main()
