"""FastAPI exception handlers and the error-kind to status mapping."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

DEFAULT_ERRORS: Dict[int, Tuple[str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("InvalidArguments", "Invalid request payload"),
    status.HTTP_404_NOT_FOUND: ("NotFound", "Resource not found"),
    status.HTTP_405_METHOD_NOT_ALLOWED: ("InvalidArguments", "Method not allowed"),
    status.HTTP_500_INTERNAL_SERVER_ERROR: ("Internal", "Internal server error"),
}

KIND_STATUS: Dict[str, int] = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "SectionNotFound": status.HTTP_404_NOT_FOUND,
    "UnknownTool": status.HTTP_404_NOT_FOUND,
    "NoPath": status.HTTP_404_NOT_FOUND,
    "OutOfRange": status.HTTP_400_BAD_REQUEST,
    "AmbiguousPath": status.HTTP_400_BAD_REQUEST,
    "InvalidMove": status.HTTP_400_BAD_REQUEST,
    "InvalidArguments": status.HTTP_400_BAD_REQUEST,
    "IOError": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "Internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_kind(kind: Optional[str]) -> int:
    return KIND_STATUS.get(kind or "", status.HTTP_500_INTERNAL_SERVER_ERROR)


def _normalize_error(status_code: int, detail: Any) -> Tuple[str, str, Optional[str]]:
    default_kind, default_message = DEFAULT_ERRORS.get(
        status_code, DEFAULT_ERRORS[status.HTTP_500_INTERNAL_SERVER_ERROR]
    )
    if isinstance(detail, dict):
        return (
            detail.get("kind", default_kind),
            detail.get("message", default_message),
            detail.get("offending_field"),
        )
    if isinstance(detail, str) and detail:
        return default_kind, detail, None
    return default_kind, default_message, None


def _response(status_code: int, detail: Any) -> JSONResponse:
    kind, message, field = _normalize_error(status_code, detail)
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": {"kind": kind, "message": message, "offending_field": field},
        },
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "path", "query")]
    detail = {
        "kind": "InvalidArguments",
        "message": first.get("msg", "Invalid request payload"),
        "offending_field": location[0] if location else None,
    }
    return _response(status.HTTP_400_BAD_REQUEST, detail)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _response(exc.status_code, exc.detail)


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.args[0] if exc.args else None)


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "register_error_handlers",
    "status_for_kind",
    "validation_exception_handler",
    "http_exception_handler",
    "internal_exception_handler",
]
