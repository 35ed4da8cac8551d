"""Wiki-link extraction and target normalisation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import PurePosixPath
import re
import unicodedata
from typing import Any, Dict, List, Optional, Tuple

from .buffer import Document
from .structure import Section, iter_content_lines, parse_structure

logger = logging.getLogger(__name__)

WIKILINK_PATTERN = re.compile(r"(!?)\[\[([^\[\]]+)\]\]")
INLINE_CODE_PATTERN = re.compile(r"(`+)(?:(?!\1).)+?\1")


def normalize_slug(text: str | None) -> str:
    """
    Normalize text into a slug suitable for wikilink matching.

    Letters and digits of any script are kept; ``"Café"`` becomes ``"café"``
    and ``"日本"`` stays ``"日本"``.
    """
    if not text:
        return ""
    slug = unicodedata.normalize("NFC", text).casefold()
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^\w-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def normalize_target(text: str | None) -> str:
    """
    Normalize a link target or document id into a graph identifier.

    ``"Folder/My Note.md"`` and ``"folder/my-note"`` both become
    ``"folder/my-note"``.
    """
    if not text:
        return ""
    cleaned = text.strip().replace("\\", "/")
    if cleaned.lower().endswith(".md"):
        cleaned = cleaned[:-3]
    segments = [normalize_slug(part) for part in cleaned.split("/")]
    return "/".join(segment for segment in segments if segment)


def document_identifier(doc_id: str) -> str:
    return normalize_target(doc_id)


def stem_identifier(doc_id: str) -> str:
    return normalize_slug(PurePosixPath(doc_id).stem)


@dataclass(frozen=True, order=True)
class Link:
    """A directed ``[[wiki-link]]`` from one document section to a target."""

    source: str
    line: int
    target: str
    raw: str
    alias: Optional[str] = None
    anchor: Optional[str] = None
    embed: bool = False
    section_path: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "text": self.raw,
            "alias": self.alias,
            "anchor": self.anchor,
            "embed": self.embed,
            "section": list(self.section_path),
            "line": self.line,
        }


def parse_wikilink(inner: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Split ``target#anchor|alias`` into its parts."""
    target, _, alias = inner.partition("|")
    target, _, anchor = target.partition("#")
    return target.strip(), (anchor.strip() or None), (alias.strip() or None)


def _owning_sections(root: Section) -> List[Tuple[int, int, Section]]:
    spans = []
    for section in root.walk():
        start = section.start_line
        end = section.content_end
        if end > start:
            spans.append((start, end, section))
    return spans


def extract_links(doc: Document, root: Optional[Section] = None) -> List[Link]:
    """
    Collect wiki-links from every section of a freshly indexed document.

    Each section contributes the lines it owns directly (heading through the
    first child heading), so every link is attributed to exactly one section.
    Links in fenced code blocks or inline code spans are ignored.
    """
    lines = doc.lines
    if root is None:
        root = doc.structure if doc.structure is not None else parse_structure(lines)[0]
    content_lines = dict(iter_content_lines(lines))
    found: Dict[Tuple[str, int, Tuple[str, ...], str], Link] = {}

    for start, end, section in _owning_sections(root):
        for index in range(start, end):
            line = content_lines.get(index)
            if not line or "[[" not in line:
                continue
            visible = INLINE_CODE_PATTERN.sub(lambda match: " " * len(match.group(0)), line)
            for match in WIKILINK_PATTERN.finditer(visible):
                raw = match.group(2).strip()
                target_text, anchor, alias = parse_wikilink(raw)
                target = normalize_target(target_text)
                if not target:
                    continue
                key = (target, index, section.path, raw)
                if key in found:
                    continue
                found[key] = Link(
                    source=doc.doc_id,
                    line=index,
                    target=target,
                    raw=raw,
                    alias=alias,
                    anchor=anchor,
                    embed=bool(match.group(1)),
                    section_path=section.path,
                )

    links = sorted(found.values())
    logger.debug(
        "Links extracted",
        extra={"doc_id": doc.doc_id, "link_count": len(links)},
    )
    return links


__all__ = [
    "Link",
    "extract_links",
    "normalize_slug",
    "normalize_target",
    "document_identifier",
    "stem_identifier",
    "parse_wikilink",
    "WIKILINK_PATTERN",
]
