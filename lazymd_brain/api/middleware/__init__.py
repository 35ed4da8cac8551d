"""Middleware and dependencies shared by the API routes."""

from fastapi import Request

from ...services import ToolDispatcher
from .error_handlers import register_error_handlers


def get_dispatcher(request: Request) -> ToolDispatcher:
    """Dispatcher bound to the running application."""
    return request.app.state.dispatcher


__all__ = ["get_dispatcher", "register_error_handlers"]
