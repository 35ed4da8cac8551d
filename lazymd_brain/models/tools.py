"""Argument schemas for the tool catalog, one closed model per tool."""

from __future__ import annotations

from typing import ClassVar, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

SectionPathArg = Union[str, List[str]]

PATH_DESCRIPTION = "Workspace-relative '.md' path ≤256 chars (no '..' or '\\')."
SECTION_DESCRIPTION = (
    "Heading titles from the top level down, as a list or a string joined "
    "with '/' or ' > ' (e.g. 'Intro > Setup')."
)


class ToolArguments(BaseModel):
    """Base class for tool arguments; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    tool_name: ClassVar[str]
    description: ClassVar[str]
    mutates: ClassVar[bool] = False


class DocumentArguments(ToolArguments):
    path: str = Field(..., min_length=1, max_length=256, description=PATH_DESCRIPTION)


class OpenFileArgs(DocumentArguments):
    tool_name: ClassVar[str] = "open_file"
    description: ClassVar[str] = "Open a markdown document and index its structure and links."


class ReadDocumentArgs(DocumentArguments):
    tool_name: ClassVar[str] = "read_document"
    description: ClassVar[str] = "Read a document, optionally limited to lines [start_line, end_line)."

    start_line: int = Field(default=0, ge=0, description="First line (0-based).")
    end_line: Optional[int] = Field(
        default=None, ge=0, description="Line after the last one returned; omit for end of document."
    )


class WriteDocumentArgs(DocumentArguments):
    tool_name: ClassVar[str] = "write_document"
    description: ClassVar[str] = "Replace a document's content, creating the file if needed."
    mutates: ClassVar[bool] = True

    content: str = Field(..., description="Full markdown content.")


class SearchContentArgs(ToolArguments):
    tool_name: ClassVar[str] = "search_content"
    description: ClassVar[str] = "Search open documents line by line for text or a regex."

    query: str = Field(..., min_length=1, description="Text (or regular expression) to find.")
    path: Optional[str] = Field(
        default=None, max_length=256, description="Restrict the search to one document."
    )
    regex: bool = Field(default=False, description="Treat query as a regular expression.")
    case_sensitive: bool = Field(default=False)
    limit: int = Field(default=50, ge=1, le=500, description="Result cap between 1 and 500.")


class EditSectionArgs(DocumentArguments):
    tool_name: ClassVar[str] = "edit_section"
    description: ClassVar[str] = "Replace the body of a section (heading kept unless include_heading)."
    mutates: ClassVar[bool] = True

    section: SectionPathArg = Field(..., description=SECTION_DESCRIPTION)
    content: str = Field(..., description="Replacement markdown.")
    include_heading: bool = Field(
        default=False, description="Replace the heading line too."
    )
    strict: bool = Field(default=False, description="Fail when a title matches several siblings.")


class ReadSectionArgs(DocumentArguments):
    tool_name: ClassVar[str] = "read_section"
    description: ClassVar[str] = "Read one section by its heading path."

    section: SectionPathArg = Field(..., description=SECTION_DESCRIPTION)
    include_children: bool = Field(default=True, description="Include nested subsections.")
    strict: bool = Field(default=False, description="Fail when a title matches several siblings.")


class GetStructureArgs(DocumentArguments):
    tool_name: ClassVar[str] = "get_structure"
    description: ClassVar[str] = "Return the heading tree of a document with line ranges."


class ListHeadingsArgs(DocumentArguments):
    tool_name: ClassVar[str] = "list_headings"
    description: ClassVar[str] = "List headings in document order."


class GetBreadcrumbArgs(DocumentArguments):
    tool_name: ClassVar[str] = "get_breadcrumb"
    description: ClassVar[str] = "Return the heading path enclosing a line."

    line: int = Field(..., ge=0, description="Line number (0-based).")


class MoveSectionArgs(DocumentArguments):
    tool_name: ClassVar[str] = "move_section"
    description: ClassVar[str] = "Move a section with its subsections before, after or inside another."
    mutates: ClassVar[bool] = True

    section: SectionPathArg = Field(..., description=SECTION_DESCRIPTION)
    target: SectionPathArg = Field(
        ..., description="Heading path of the reference section; empty means the document root."
    )
    position: Literal["before", "after", "inside"] = Field(
        ..., description="Placement relative to target; 'inside' appends as last child."
    )
    strict: bool = Field(default=False, description="Fail when a title matches several siblings.")


class ListTasksArgs(DocumentArguments):
    tool_name: ClassVar[str] = "list_tasks"
    description: ClassVar[str] = "List checkbox tasks, optionally within a section or by state."

    section: Optional[SectionPathArg] = Field(default=None, description=SECTION_DESCRIPTION)
    completed: Optional[bool] = Field(default=None, description="Only completed (or open) tasks.")


class UpdateTaskArgs(DocumentArguments):
    tool_name: ClassVar[str] = "update_task"
    description: ClassVar[str] = "Check, uncheck or toggle a task by its ordinal."
    mutates: ClassVar[bool] = True

    task: int = Field(..., ge=0, description="Task ordinal from list_tasks (0-based).")
    completed: Optional[bool] = Field(default=None, description="New state; omit to toggle.")


class ListLinksArgs(DocumentArguments):
    tool_name: ClassVar[str] = "list_links"
    description: ClassVar[str] = "List outgoing [[wiki-links]] with their resolved targets."


class GetBacklinksArgs(DocumentArguments):
    tool_name: ClassVar[str] = "get_backlinks"
    description: ClassVar[str] = "List documents and sections that link to a document."


class GetGraphArgs(ToolArguments):
    tool_name: ClassVar[str] = "get_graph"
    description: ClassVar[str] = "Return every node and edge of the link graph."


class GetNeighborsArgs(DocumentArguments):
    tool_name: ClassVar[str] = "get_neighbors"
    description: ClassVar[str] = "List documents linked to or from a document."


class FindPathArgs(ToolArguments):
    tool_name: ClassVar[str] = "find_path"
    description: ClassVar[str] = "Shortest link path between two documents, ignoring direction."

    source: str = Field(..., min_length=1, max_length=256, description="Start document or note name.")
    target: str = Field(..., min_length=1, max_length=256, description="End document or note name.")
    max_depth: Optional[int] = Field(default=None, ge=0, description="Maximum number of hops.")


class GetOrphansArgs(ToolArguments):
    tool_name: ClassVar[str] = "get_orphans"
    description: ClassVar[str] = "List documents with no resolved links in or out."


class GetHubNotesArgs(ToolArguments):
    tool_name: ClassVar[str] = "get_hub_notes"
    description: ClassVar[str] = "Rank documents by combined incoming and outgoing links."

    limit: int = Field(default=10, ge=1, le=1000, description="Number of documents returned.")


TOOL_ARGUMENTS: Dict[str, Type[ToolArguments]] = {
    model.tool_name: model
    for model in (
        OpenFileArgs,
        ReadDocumentArgs,
        WriteDocumentArgs,
        SearchContentArgs,
        EditSectionArgs,
        ReadSectionArgs,
        GetStructureArgs,
        ListHeadingsArgs,
        GetBreadcrumbArgs,
        MoveSectionArgs,
        ListTasksArgs,
        UpdateTaskArgs,
        ListLinksArgs,
        GetBacklinksArgs,
        GetGraphArgs,
        GetNeighborsArgs,
        FindPathArgs,
        GetOrphansArgs,
        GetHubNotesArgs,
    )
}


__all__ = [
    "ToolArguments",
    "DocumentArguments",
    "SectionPathArg",
    "TOOL_ARGUMENTS",
    "OpenFileArgs",
    "ReadDocumentArgs",
    "WriteDocumentArgs",
    "SearchContentArgs",
    "EditSectionArgs",
    "ReadSectionArgs",
    "GetStructureArgs",
    "ListHeadingsArgs",
    "GetBreadcrumbArgs",
    "MoveSectionArgs",
    "ListTasksArgs",
    "UpdateTaskArgs",
    "ListLinksArgs",
    "GetBacklinksArgs",
    "GetGraphArgs",
    "GetNeighborsArgs",
    "FindPathArgs",
    "GetOrphansArgs",
    "GetHubNotesArgs",
]
