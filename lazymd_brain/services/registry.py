"""Owning collection of open documents within a workspace."""

from __future__ import annotations

import logging
from pathlib import Path
import threading
import time
from typing import Dict, List, Optional, Tuple

from .buffer import Document
from .config import AppConfig, get_config
from .errors import InvalidArgumentsError, NotFoundError
from .graph import LinkGraph
from .links import extract_links
from .structure import StructureIndexer

logger = logging.getLogger(__name__)

INVALID_PATH_CHARS = {'<', '>', ':', '"', '|', '?', '*'}
MAX_PATH_LENGTH = 256


def validate_document_path(doc_path: str) -> Tuple[bool, str]:
    """
    Validate a relative Markdown path.

    Returns (is_valid, message). Message is empty when valid.
    """
    if not doc_path or len(doc_path) > MAX_PATH_LENGTH:
        return False, f"Path must be 1-{MAX_PATH_LENGTH} characters"
    if not doc_path.endswith(".md"):
        return False, "Path must end with .md"
    if ".." in doc_path:
        return False, "Path must not contain '..'"
    if "\\" in doc_path:
        return False, "Path must use Unix separators (/)"
    if doc_path.startswith("/"):
        return False, "Path must be relative (no leading /)"
    if any(char in INVALID_PATH_CHARS for char in doc_path):
        return False, "Path contains invalid characters"
    return True, ""


def sanitize_path(workspace_root: Path, doc_path: str) -> Path:
    """
    Resolve a document path within the workspace.

    Raises ValueError if the resolved path escapes the workspace root.
    """
    root = workspace_root.resolve()
    full_path = (root / doc_path).resolve()
    if full_path != root and root not in full_path.parents:
        raise ValueError(f"Path escapes workspace root: {doc_path}")
    return full_path


class DocumentRegistry:
    """
    Map document ids to open Documents and keep their derived state current.

    The registry is the only owner of Document objects. The link graph only
    learns document ids and titles from it.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        graph: LinkGraph | None = None,
        indexer: StructureIndexer | None = None,
    ) -> None:
        self.config = config or get_config()
        self.root = self.config.workspace_root
        self.graph = graph or LinkGraph()
        self.indexer = indexer or StructureIndexer()
        self._documents: Dict[str, Document] = {}
        self._lock = threading.Lock()

    def resolve_path(self, doc_path: str) -> Tuple[str, Path]:
        """
        Validate a document path and return ``(doc_id, absolute_path)``.

        Raises InvalidArgumentsError for invalid paths.
        """
        is_valid, message = validate_document_path(doc_path)
        if not is_valid:
            raise InvalidArgumentsError(message, field="path")
        try:
            absolute_path = sanitize_path(self.root, doc_path)
        except ValueError as exc:
            raise InvalidArgumentsError(str(exc), field="path") from exc
        return absolute_path.relative_to(self.root.resolve()).as_posix(), absolute_path

    def get(self, doc_path: str) -> Optional[Document]:
        doc_id, _ = self.resolve_path(doc_path)
        with self._lock:
            return self._documents.get(doc_id)

    def documents(self) -> List[Document]:
        with self._lock:
            return [self._documents[doc_id] for doc_id in sorted(self._documents)]

    def open(self, doc_path: str) -> Document:
        """Load a document from disk, or return it if already open."""
        doc_id, absolute_path = self.resolve_path(doc_path)
        with self._lock:
            existing = self._documents.get(doc_id)
        if existing is not None:
            return existing

        start_time = time.time()
        if not absolute_path.is_file():
            raise NotFoundError(f"Document not found: {doc_id}", field="path")
        try:
            size_bytes = absolute_path.stat().st_size
            if size_bytes > self.config.max_document_bytes:
                raise InvalidArgumentsError(
                    f"Document exceeds {self.config.max_document_bytes} byte limit: {doc_id}",
                    field="path",
                )
            text = absolute_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise NotFoundError(f"Document unreadable: {doc_id} ({exc})", field="path") from exc

        document = Document(doc_id, absolute_path, text)
        with self._lock:
            document = self._documents.setdefault(doc_id, document)
        self.reindex(document)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Document opened",
            extra={
                "doc_id": doc_id,
                "line_count": document.line_count,
                "size_bytes": size_bytes,
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return document

    def require(self, doc_path: str) -> Document:
        """Return the open document for ``doc_path``, opening it on demand."""
        return self.get(doc_path) or self.open(doc_path)

    def create(self, doc_path: str, text: str = "") -> Document:
        """Register a new in-memory document that has no backing file yet."""
        doc_id, absolute_path = self.resolve_path(doc_path)
        self.check_size(text)
        document = Document(doc_id, absolute_path, text)
        document.dirty = True
        with self._lock:
            document = self._documents.setdefault(doc_id, document)
        self.reindex(document)
        logger.info("Document created", extra={"doc_id": doc_id})
        return document

    def close(self, doc_path: str) -> None:
        """Forget a document; links pointing at it become missing again."""
        doc_id, _ = self.resolve_path(doc_path)
        with self._lock:
            if self._documents.pop(doc_id, None) is None:
                raise NotFoundError(f"Document is not open: {doc_id}", field="path")
        self.graph.remove_node(doc_id)
        logger.info("Document closed", extra={"doc_id": doc_id})

    def check_size(self, text: str) -> None:
        if len(text.encode("utf-8")) > self.config.max_document_bytes:
            raise InvalidArgumentsError(
                f"Content exceeds {self.config.max_document_bytes} byte limit",
                field="content",
            )

    def reindex(self, doc: Document) -> None:
        """Rebuild structure and outgoing links, then replace the graph edges."""
        with doc.lock:
            root = self.indexer.reindex(doc)
            links = extract_links(doc, root)
            doc.links = links
            title = doc.title
        self.graph.add_node(doc.doc_id, title)
        self.graph.update_graph(doc.doc_id, links)

    def list_files(self) -> List[str]:
        """Workspace-relative paths of markdown files on disk."""
        root = self.root.resolve()
        results: List[str] = []
        for file_path in root.rglob("*.md"):
            relative = file_path.relative_to(root)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if file_path.is_file():
                results.append(relative.as_posix())
        return sorted(results, key=str.lower)

    def load_all(self) -> List[Document]:
        """Open every readable markdown file in the workspace."""
        loaded: List[Document] = []
        for doc_path in self.list_files():
            try:
                loaded.append(self.open(doc_path))
            except (NotFoundError, InvalidArgumentsError) as exc:
                logger.warning(
                    "Skipping document during preload",
                    extra={"doc_path": doc_path, "error": exc.message},
                )
        logger.info("Workspace loaded", extra={"document_count": len(loaded)})
        return loaded


__all__ = ["DocumentRegistry", "validate_document_path", "sanitize_path"]
