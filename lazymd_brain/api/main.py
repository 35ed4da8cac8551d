"""FastAPI application main entry point."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from .. import __version__
from ..services import ToolDispatcher, create_dispatcher, get_config
from .middleware import register_error_handlers
from .routes import graph, tools

logger = logging.getLogger(__name__)


def create_app(dispatcher: Optional[ToolDispatcher] = None) -> FastAPI:
    """Build the HTTP app around ``dispatcher`` (one per workspace)."""
    app = FastAPI(
        title="LazyMD Brain API",
        description="Markdown document structure and wiki-link graph tools",
        version=__version__,
    )
    app.state.dispatcher = dispatcher or create_dispatcher()
    register_error_handlers(app)

    app.include_router(tools.router, tags=["tools"])
    app.include_router(graph.router, tags=["graph"])

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "documents": len(app.state.dispatcher.registry.documents())}

    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "8000"))
    logger.info(
        "Starting HTTP API",
        extra={"host": host, "port": port, "workspace": str(config.workspace_root)},
    )
    uvicorn.run(create_app(create_dispatcher(config)), host=host, port=port)


if __name__ == "__main__":
    main()


__all__ = ["create_app"]
