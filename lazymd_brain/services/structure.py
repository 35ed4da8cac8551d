"""Heading hierarchy and task-list indexing for markdown documents."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from pathlib import Path
import re
import time
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import frontmatter

from .buffer import Document
from .errors import (
    AmbiguousPathError,
    InvalidArgumentsError,
    InvalidMoveError,
    OutOfRangeError,
    SectionNotFoundError,
)

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
CLOSING_HASHES_PATTERN = re.compile(r"(?:^|[ \t]+)#+$")
FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
TASK_PATTERN = re.compile(r"^(\s*)([-*+]|\d{1,9}[.)])(\s+)\[([ xX])\](?=\s|$)[ \t]?(.*)$")
HEADING_MARK_PATTERN = re.compile(r"^( {0,3})#{1,6}")
FRONT_MATTER_FENCES = {"---"}
FRONT_MATTER_CLOSERS = {"---", "..."}
MAX_HEADING_LEVEL = 6
MOVE_POSITIONS = ("before", "after", "inside")

SectionPath = Union[str, Sequence[str], None]


@dataclass
class Section:
    """A heading and the span of lines it owns, including its descendants."""

    level: int
    title: str
    heading_line: Optional[int]
    start_line: int
    end_line: int
    path: Tuple[str, ...] = ()
    start_byte: int = 0
    end_byte: int = 0
    children: List["Section"] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.heading_line is None

    @property
    def content_end(self) -> int:
        """End of the lines that belong to this section but to no child."""
        return self.children[0].start_line if self.children else self.end_line

    def walk(self) -> Iterator["Section"]:
        """Pre-order traversal, this section first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line < self.end_line

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "level": self.level,
            "title": self.title,
            "path": list(self.path),
            "heading_line": self.heading_line,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "start_byte": self.start_byte,
            "end_byte": self.end_byte,
        }
        if include_children:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dataclass(frozen=True)
class TaskItem:
    """A checkbox list entry."""

    ordinal: int
    line: int
    completed: bool
    text: str
    checkbox_column: int
    section_path: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.ordinal,
            "line": self.line,
            "completed": self.completed,
            "text": self.text,
            "section": list(self.section_path),
        }


def _front_matter_end(lines: Sequence[str]) -> int:
    """Return the first line after a leading YAML block, or 0."""
    if not lines or lines[0].strip() not in FRONT_MATTER_FENCES:
        return 0
    for index in range(1, len(lines)):
        if lines[index].strip() in FRONT_MATTER_CLOSERS:
            return index + 1
    return 0


def _heading_title(raw: Optional[str]) -> str:
    title = (raw or "").strip()
    title = CLOSING_HASHES_PATTERN.sub("", title)
    return title.strip()


def _default_offsets(lines: Sequence[str]) -> List[int]:
    offsets = [0]
    for line in lines:
        offsets.append(offsets[-1] + len(line.encode("utf-8")) + 1)
    return offsets


def iter_content_lines(lines: Sequence[str]) -> Iterator[Tuple[int, str]]:
    """Yield ``(index, line)`` for lines outside front matter and fenced code."""
    fence: Optional[Tuple[str, int]] = None
    for index in range(_front_matter_end(lines), len(lines)):
        line = lines[index]
        match = FENCE_PATTERN.match(line)
        if fence is not None:
            if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= fence[1] and not match.group(2).strip():
                fence = None
            continue
        if match:
            marker = match.group(1)
            # Backtick fences may not carry backticks in their info string.
            if marker[0] == "~" or "`" not in match.group(2):
                fence = (marker[0], len(marker))
                continue
        yield index, line


def parse_structure(
    lines: Sequence[str], offsets: Optional[Sequence[int]] = None
) -> Tuple[Section, List[TaskItem]]:
    """
    Build the section tree and task list for a buffer.

    Headings nest under the nearest preceding shallower heading; lines before
    the first heading belong to the implicit level-0 root.
    """
    count = len(lines)
    offsets = offsets if offsets is not None else _default_offsets(lines)
    root = Section(level=0, title="", heading_line=None, start_line=0, end_line=count)
    stack: List[Section] = [root]
    tasks: List[TaskItem] = []

    for index, line in iter_content_lines(lines):
        heading = HEADING_PATTERN.match(line)
        if heading:
            level = len(heading.group(1))
            while stack[-1].level >= level:
                stack.pop().end_line = index
            parent = stack[-1]
            title = _heading_title(heading.group(2))
            section = Section(
                level=level,
                title=title,
                heading_line=index,
                start_line=index,
                end_line=count,
                path=parent.path + (title,),
            )
            parent.children.append(section)
            stack.append(section)
            continue

        task = TASK_PATTERN.match(line)
        if task:
            indent, marker, gap, mark, text = task.groups()
            tasks.append(
                TaskItem(
                    ordinal=len(tasks),
                    line=index,
                    completed=mark in "xX",
                    text=text.strip(),
                    checkbox_column=len(indent) + len(marker) + len(gap) + 1,
                    section_path=stack[-1].path,
                )
            )

    for section in root.walk():
        section.start_byte = offsets[section.start_line]
        section.end_byte = offsets[section.end_line]
    return root, tasks


def derive_title(doc_id: str, text: str, root: Section) -> str:
    """Front matter title, else first level-1 heading, else the file name."""
    try:
        metadata = frontmatter.loads(text).metadata
    except Exception as exc:
        logger.debug("Unreadable front matter", extra={"doc_id": doc_id, "error": str(exc)})
        metadata = {}
    title = metadata.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    for section in root.walk():
        if section.level == 1 and section.title:
            return section.title
    stem = Path(doc_id).stem
    return stem.replace("-", " ").replace("_", " ").strip() or stem


def parse_section_path(path: SectionPath) -> Tuple[str, ...]:
    """
    Normalise a breadcrumb path.

    Accepts a list of titles or a string separated by ``" > "`` or ``"/"``.
    Leading heading marks (``"## Setup"``) are ignored.
    """
    if path is None:
        return ()
    if isinstance(path, str):
        separator = " > " if " > " in path else "/"
        segments: Sequence[str] = path.split(separator)
    else:
        segments = path
    cleaned = []
    for segment in segments:
        if not isinstance(segment, str):
            raise InvalidArgumentsError("Section path segments must be strings", field="section")
        title = _heading_title(HEADING_MARK_PATTERN.sub("", segment.strip()))
        if title:
            cleaned.append(title)
    return tuple(cleaned)


def _relevel_heading(line: str, level: int) -> str:
    return HEADING_MARK_PATTERN.sub(lambda match: match.group(1) + "#" * level, line, count=1)


class StructureIndexer:
    """Maintain and query the heading tree and task list of documents."""

    def reindex(self, doc: Document) -> Section:
        """Rescan the whole buffer; deterministic and idempotent."""
        start_time = time.time()
        with doc.lock:
            lines = doc.lines
            root, tasks = parse_structure(lines, doc.line_byte_offsets())
            doc.structure = root
            doc.tasks = tasks
            doc.title = derive_title(doc.doc_id, doc.text, root)

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Document structure indexed",
            extra={
                "doc_id": doc.doc_id,
                "line_count": len(lines),
                "section_count": sum(1 for _ in root.walk()) - 1,
                "task_count": len(tasks),
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return root

    def get_structure(self, doc: Document) -> Section:
        """Return the current section tree; callers must treat it as read-only."""
        if doc.structure is None:
            return self.reindex(doc)
        return doc.structure

    def list_headings(self, doc: Document) -> List[Section]:
        return [section for section in self.get_structure(doc).walk() if not section.is_root]

    def get_breadcrumb(self, doc: Document, line: int) -> List[Section]:
        """Sections enclosing ``line``, outermost first, root excluded."""
        with doc.lock:
            root = self.get_structure(doc)
            if line < 0 or line >= doc.line_count:
                raise OutOfRangeError(
                    f"Line {line} is outside {doc.doc_id} ({doc.line_count} lines)",
                    field="line",
                )
        chain: List[Section] = []
        node = root
        while True:
            child = next((c for c in node.children if c.contains_line(line)), None)
            if child is None:
                return chain
            chain.append(child)
            node = child

    def find_section(self, doc: Document, path: SectionPath, *, strict: bool = False) -> Section:
        """
        Resolve a breadcrumb path of heading titles.

        Duplicate sibling titles resolve to the first occurrence unless
        ``strict`` is set, in which case they raise AmbiguousPathError.
        """
        segments = parse_section_path(path)
        node = self.get_structure(doc)
        for depth, segment in enumerate(segments):
            matches = [child for child in node.children if child.title == segment]
            if not matches:
                trail = " > ".join(segments[:depth]) or "(root)"
                raise SectionNotFoundError(
                    f"No heading '{segment}' under {trail} in {doc.doc_id}",
                    field="section",
                )
            if len(matches) > 1 and strict:
                lines = ", ".join(str(match.heading_line) for match in matches)
                raise AmbiguousPathError(
                    f"Heading '{segment}' appears {len(matches)} times (lines {lines}) in {doc.doc_id}",
                    field="section",
                )
            node = matches[0]
        return node

    def read_section(
        self,
        doc: Document,
        path: SectionPath,
        *,
        include_children: bool = True,
        strict: bool = False,
    ) -> Tuple[Section, str]:
        with doc.lock:
            section = self.find_section(doc, path, strict=strict)
            end = section.end_line if include_children else section.content_end
            return section, doc.read_range(section.start_line, end)

    def edit_section(
        self,
        doc: Document,
        path: SectionPath,
        content: str,
        *,
        include_heading: bool = False,
        strict: bool = False,
    ) -> Tuple[int, int]:
        """Replace a section body (or the whole span with ``include_heading``)."""
        with doc.lock:
            section = self.find_section(doc, path, strict=strict)
            start = section.start_line
            if not section.is_root and not include_heading:
                start = section.heading_line + 1
            return doc.replace_range(start, section.end_line, content)

    def move_section(
        self,
        doc: Document,
        section_path: SectionPath,
        target_path: SectionPath,
        position: str,
        *,
        strict: bool = False,
    ) -> Tuple[int, int]:
        """
        Relocate a section and its descendants relative to ``target_path``.

        Heading levels are shifted so the moved section sits at the target's
        level (before/after) or one below it (inside). The buffer is rewritten
        with a single replacement covering the old and new locations.
        """
        if position not in MOVE_POSITIONS:
            raise InvalidArgumentsError(
                f"Position must be one of {', '.join(MOVE_POSITIONS)}", field="position"
            )
        with doc.lock:
            source = self.find_section(doc, section_path, strict=strict)
            if source.is_root:
                raise InvalidMoveError("The document root cannot be moved")
            target = self.find_section(doc, target_path, strict=strict)
            if target is source:
                raise InvalidMoveError(f"Section '{source.title}' cannot be moved relative to itself")
            if any(target is descendant for descendant in source.walk()):
                raise InvalidMoveError(
                    f"Section '{source.title}' cannot be moved inside its own descendant '{target.title}'"
                )
            if target.is_root and position != "inside":
                raise InvalidMoveError("Only 'inside' is allowed when the target is the document root")

            new_level = target.level + 1 if position == "inside" else target.level
            delta = new_level - source.level
            lines = doc.lines
            moved = list(lines[source.start_line:source.end_line])
            if delta:
                for section in source.walk():
                    level = section.level + delta
                    if level > MAX_HEADING_LEVEL:
                        raise InvalidMoveError(
                            f"Moving '{source.title}' would push '{section.title}' below heading level {MAX_HEADING_LEVEL}"
                        )
                    offset = section.heading_line - source.start_line
                    moved[offset] = _relevel_heading(moved[offset], level)

            insert_at = target.start_line if position == "before" else target.end_line
            if insert_at <= source.start_line:
                span = (insert_at, source.end_line)
                replacement = moved + list(lines[insert_at:source.start_line])
                new_start = insert_at
            else:
                span = (source.start_line, insert_at)
                replacement = list(lines[source.end_line:insert_at]) + moved
                new_start = insert_at - len(moved)

            doc.replace_lines(span[0], span[1], replacement)

        logger.info(
            "Section moved",
            extra={
                "doc_id": doc.doc_id,
                "section": " > ".join(source.path),
                "target": " > ".join(target.path) or "(root)",
                "position": position,
                "level_delta": delta,
            },
        )
        return new_start, new_start + len(moved)

    def list_tasks(
        self,
        doc: Document,
        section_path: SectionPath = None,
        *,
        completed: Optional[bool] = None,
        strict: bool = False,
    ) -> List[TaskItem]:
        with doc.lock:
            self.get_structure(doc)
            tasks = list(doc.tasks)
            if parse_section_path(section_path):
                section = self.find_section(doc, section_path, strict=strict)
                tasks = [task for task in tasks if section.contains_line(task.line)]
        if completed is not None:
            tasks = [task for task in tasks if task.completed == completed]
        return tasks

    def update_task(
        self, doc: Document, ordinal: int, completed: Optional[bool] = None
    ) -> TaskItem:
        """
        Set or toggle one checkbox.

        Only the checkbox character of the task's line changes.
        """
        with doc.lock:
            self.get_structure(doc)
            if ordinal < 0 or ordinal >= len(doc.tasks):
                raise OutOfRangeError(
                    f"Task {ordinal} does not exist in {doc.doc_id} ({len(doc.tasks)} tasks)",
                    field="task",
                )
            task = doc.tasks[ordinal]
            new_state = (not task.completed) if completed is None else completed
            if new_state != task.completed:
                line = doc.lines[task.line]
                column = task.checkbox_column
                mark = "x" if new_state else " "
                doc.replace_lines(task.line, task.line + 1, [line[:column] + mark + line[column + 1:]])
        return replace(task, completed=new_state)


__all__ = [
    "Section",
    "TaskItem",
    "StructureIndexer",
    "parse_structure",
    "parse_section_path",
    "derive_title",
    "iter_content_lines",
    "MOVE_POSITIONS",
]
