"""
FastAPI application for the TaskNotes chat service.

Usage:
    # Development server with auto-reload
    uvicorn tasknotes_chat.api.main:app --reload --host 0.0.0.0 --port 8000

    # Production server
    uvicorn tasknotes_chat.api.main:app --host 0.0.0.0 --port 8000 --workers 4

    # Debug mode (verbose logging)
    LOG_LEVEL=DEBUG uvicorn tasknotes_chat.api.main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import config
from ..errors import ChatError, ConversationNotFoundError
from ..tools import ToolRegistry
from ..tracing import init_tracing_client, shutdown_tracing
from .dependencies import get_store
from .routes import chat, conversations, health


def configure_logging():
    """Configure logging based on LOG_LEVEL environment variable."""
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Set level for our modules
    logging.getLogger("tasknotes_chat").setLevel(log_level)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting TaskNotes chat API server")

    logger.info("=" * 60)
    logger.info("MODEL CONFIGURATION")
    logger.info(f"  Base URL: {config.model.base_url}")
    logger.info(f"  Default Model: {config.model.default_model}")
    logger.info(f"  Allowed Models: {', '.join(config.model.allowed_models)}")
    logger.info(f"  Max Tool Rounds: {config.model.max_tool_rounds}")
    logger.info(f"  Timeout: {config.model.timeout}s")

    logger.info("-" * 60)
    logger.info("CONVERSATION STORE")
    store = get_store()
    logger.info(f"  Database: {store.db_path}")
    logger.info(f"  History Limit: {config.store.history_limit} messages")

    logger.info("-" * 60)
    logger.info("TOOL ENDPOINTS")
    logger.info(f"  Workspace API: {config.tools.workspace_api_url}")
    logger.info(f"  Meilisearch: {config.tools.meilisearch_url}")
    logger.info(f"  SearXNG: {config.tools.searxng_endpoint}")
    logger.info(f"  Vector Search: {config.tools.vector_search_url}")

    logger.info("-" * 60)
    logger.info("REGISTERED TOOLS")
    for name, tool in ToolRegistry.all_tools().items():
        suffix = " (collection only)" if tool.requires_collection else ""
        logger.info(f"  - {name}: {tool.description[:60]}...{suffix}")

    logger.info("-" * 60)
    logger.info("LANGFUSE OBSERVABILITY")
    tracing_client = init_tracing_client(config.langfuse)
    if tracing_client.enabled:
        logger.info("  Status: ENABLED")
        logger.info(f"  Host: {config.langfuse.host or 'https://cloud.langfuse.com'}")
    else:
        logger.info("  Status: DISABLED")
        if tracing_client.error:
            logger.info(f"  Reason: {tracing_client.error}")

    logger.info("=" * 60)

    yield

    logger.info("Shutting down TaskNotes chat API server")
    shutdown_tracing()
    logger.info("Tracing client shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="TaskNotes Chat API",
        description=(
            "Streaming chat over TaskNotes notes: ask and agent turns as Server-Sent "
            "Events, plus conversation management."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router, tags=["Chat"])
    app.include_router(conversations.router, tags=["Conversations"])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Log validation errors before returning 400 response."""
        logger.warning(
            f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
        )
        body = await request.body()
        logger.debug(f"Request body: {body.decode('utf-8', errors='replace')[:1000]}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Invalid request",
                "detail": jsonable_errors(exc),
            },
        )

    @app.exception_handler(ConversationNotFoundError)
    async def not_found_handler(
        request: Request, exc: ConversationNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "Conversation not found"},
        )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors reduced to JSON-safe location/message pairs."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


# Create the application instance
app = create_app()


def run_server():
    """
    Run the server using uvicorn.

    This is the entry point for running the server programmatically.
    """
    import uvicorn

    uvicorn.run(
        "tasknotes_chat.api.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        workers=1 if config.server.reload else config.server.workers,
    )


if __name__ == "__main__":
    run_server()
