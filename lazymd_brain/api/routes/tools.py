"""Tool catalog and dispatch endpoints."""

from __future__ import annotations

import logging
import time
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ...services import ToolDispatcher
from ..middleware import get_dispatcher
from ..middleware.error_handlers import status_for_kind

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/tools")
async def list_tools(
    dispatcher: Annotated[ToolDispatcher, Depends(get_dispatcher)],
) -> List[Dict[str, Any]]:
    """Tool names, descriptions and input schemas."""
    return dispatcher.catalog()


@router.post("/api/tools/{name}")
def call_tool(
    name: str,
    dispatcher: Annotated[ToolDispatcher, Depends(get_dispatcher)],
    arguments: Optional[Dict[str, Any]] = Body(default=None),
) -> JSONResponse:
    """Dispatch one tool call; error envelopes carry a matching status code."""
    start_time = time.time()
    response = dispatcher.dispatch(name, arguments or {})
    status_code = 200 if response.ok else status_for_kind(response.error.kind)

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP tool called",
        extra={
            "tool_name": name,
            "status_code": status_code,
            "duration_ms": f"{duration_ms:.2f}",
        },
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
