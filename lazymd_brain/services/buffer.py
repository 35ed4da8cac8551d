"""Line-oriented text buffer owned by a single document."""

from __future__ import annotations

from contextlib import suppress
import logging
import os
from pathlib import Path
import threading
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from .errors import DocumentIOError, OutOfRangeError

if TYPE_CHECKING:
    from .links import Link
    from .structure import Section, TaskItem

logger = logging.getLogger(__name__)


def normalize_newlines(text: str) -> str:
    """Convert CRLF and bare CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> Tuple[List[str], bool]:
    """Split text into lines, reporting whether it ended with a newline."""
    text = normalize_newlines(text or "")
    if not text:
        return [], True
    trailing = text.endswith("\n")
    if trailing:
        text = text[:-1]
    return text.split("\n"), trailing


def _replacement_lines(new_text: str) -> List[str]:
    if new_text == "":
        return []
    new_text = normalize_newlines(new_text)
    if new_text.endswith("\n"):
        new_text = new_text[:-1]
    return new_text.split("\n")


class Document:
    """
    An open markdown document.

    The line list is the only copy of the document bytes in memory. Every
    mutation builds a new list and swaps it in under ``lock`` so concurrent
    readers in the same process never observe a half-applied edit.
    """

    def __init__(self, doc_id: str, path: Path, text: str = "") -> None:
        self.doc_id = doc_id
        self.path = path
        self.lock = threading.RLock()
        self._lines, self.trailing_newline = split_lines(text)
        self.version = 1
        self.dirty = False
        self.title = Path(doc_id).stem
        # Derived state, rebuilt by the registry after each accepted mutation.
        self.structure: Optional["Section"] = None
        self.tasks: List["TaskItem"] = []
        self.links: List["Link"] = []

    def __repr__(self) -> str:
        return f"Document({self.doc_id!r}, lines={self.line_count}, version={self.version})"

    @property
    def lines(self) -> Tuple[str, ...]:
        return tuple(self._lines)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def text(self) -> str:
        """Full document text as it would be written to disk."""
        with self.lock:
            body = "\n".join(self._lines)
            if self._lines and self.trailing_newline:
                body += "\n"
            return body

    def _check_range(self, line_start: int, line_end: int) -> None:
        count = len(self._lines)
        if line_start < 0 or line_end < line_start or line_end > count:
            raise OutOfRangeError(
                f"Line range [{line_start}, {line_end}) is outside {self.doc_id} ({count} lines)",
                field="start_line" if line_start < 0 or line_start > count else "end_line",
            )

    def read_range(self, line_start: int = 0, line_end: Optional[int] = None) -> str:
        """Return lines ``[line_start, line_end)`` joined with newlines."""
        with self.lock:
            if line_end is None:
                line_end = len(self._lines)
            self._check_range(line_start, line_end)
            return "\n".join(self._lines[line_start:line_end])

    def replace_range(self, line_start: int, line_end: int, new_text: str) -> Tuple[int, int]:
        """
        Replace whole lines ``[line_start, line_end)`` with ``new_text``.

        Returns the half-open line range now occupied by the replacement.
        """
        return self.replace_lines(line_start, line_end, _replacement_lines(new_text))

    def replace_lines(
        self, line_start: int, line_end: int, replacement: Sequence[str]
    ) -> Tuple[int, int]:
        """Line-list form of :meth:`replace_range`."""
        replacement = list(replacement)
        with self.lock:
            self._check_range(line_start, line_end)
            self._lines = self._lines[:line_start] + replacement + self._lines[line_end:]
            self.version += 1
            self.dirty = True
        logger.debug(
            "Buffer range replaced",
            extra={
                "doc_id": self.doc_id,
                "line_start": line_start,
                "line_end": line_end,
                "new_line_count": len(replacement),
            },
        )
        return line_start, line_start + len(replacement)

    def set_text(self, text: str) -> Tuple[int, int]:
        """Replace the whole buffer."""
        lines, trailing = split_lines(text)
        with self.lock:
            self._lines = lines
            self.trailing_newline = trailing
            self.version += 1
            self.dirty = True
        return 0, len(lines)

    def line_byte_offsets(self) -> List[int]:
        """Cumulative UTF-8 offsets; line ``i`` spans ``[off[i], off[i + 1])``."""
        with self.lock:
            offsets = [0]
            last = len(self._lines) - 1
            for index, line in enumerate(self._lines):
                size = len(line.encode("utf-8"))
                if index < last or self.trailing_newline:
                    size += 1
                offsets.append(offsets[-1] + size)
            return offsets

    def save(self) -> None:
        """
        Write the buffer to its backing file.

        Raises DocumentIOError on failure; the buffer and dirty flag are kept
        so the caller can retry.
        """
        with self.lock:
            payload = self.text
            tmp_path = self.path.with_name(f".{self.path.name}.tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8", newline="\n") as handle:
                    handle.write(payload)
                os.replace(tmp_path, self.path)
            except OSError as exc:
                with suppress(OSError):
                    tmp_path.unlink()
                logger.warning(
                    "Document save failed",
                    extra={"doc_id": self.doc_id, "error": str(exc)},
                )
                raise DocumentIOError(f"Failed to save {self.doc_id}: {exc}") from exc
            self.dirty = False
        logger.info(
            "Document saved",
            extra={"doc_id": self.doc_id, "size_bytes": len(payload.encode("utf-8"))},
        )


__all__ = ["Document", "normalize_newlines", "split_lines"]
