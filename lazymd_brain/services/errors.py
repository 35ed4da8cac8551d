"""Typed failures raised by the document and graph components."""

from __future__ import annotations

from typing import Optional


class DocumentServiceError(Exception):
    """Base class for component failures that map onto an error envelope."""

    kind = "Internal"

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(DocumentServiceError):
    """Document or path missing."""

    kind = "NotFound"


class OutOfRangeError(DocumentServiceError):
    """Line indices or ordinals outside the buffer."""

    kind = "OutOfRange"


class SectionNotFoundError(DocumentServiceError):
    kind = "SectionNotFound"


class AmbiguousPathError(DocumentServiceError):
    kind = "AmbiguousPath"


class InvalidMoveError(DocumentServiceError):
    """Cyclic or self-nesting section move."""

    kind = "InvalidMove"


class NoPathError(DocumentServiceError):
    kind = "NoPath"


class UnknownToolError(DocumentServiceError):
    kind = "UnknownTool"


class InvalidArgumentsError(DocumentServiceError):
    kind = "InvalidArguments"


class DocumentIOError(DocumentServiceError):
    """Persistence failure; in-memory state is left untouched."""

    kind = "IOError"


ERROR_KINDS: tuple[str, ...] = (
    NotFoundError.kind,
    OutOfRangeError.kind,
    SectionNotFoundError.kind,
    AmbiguousPathError.kind,
    InvalidMoveError.kind,
    NoPathError.kind,
    UnknownToolError.kind,
    InvalidArgumentsError.kind,
    DocumentIOError.kind,
)


__all__ = [
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
    "ERROR_KINDS",
]
