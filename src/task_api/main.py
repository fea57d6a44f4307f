from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import MalformedIdentifier, StoreFailure, TaskValidationError
from .logging_config import setup_logging
from .repositories import Repository, open_repository
from .routers import tasks as tasks_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service liveness endpoint."},
    {
        "name": "tasks",
        "description": "CRUD operations for Task items.",
    },
]

_INTERNAL_ERROR = "Internal server error"


def _error(status_code: int, message: str) -> JSONResponse:
    """Every non-2xx body is a single `error` field."""
    return JSONResponse(status_code=status_code, content={"error": message})


def _describe_validation_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """
    Flatten pydantic error details into one readable line, e.g.
    "title: Field required; completed: completed must be a boolean (true/false)".
    """
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        msg = str(err.get("msg", "Invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(parts) or "Request validation failed"


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors:
            {"error": "title: Field required"}
        """
        return _error(422, _describe_validation_errors(exc.errors()))

    @app.exception_handler(TaskValidationError)
    async def task_validation_handler(request: Request, exc: TaskValidationError) -> JSONResponse:
        return _error(422, str(exc))

    @app.exception_handler(MalformedIdentifier)
    async def malformed_id_handler(request: Request, exc: MalformedIdentifier) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid task ID format")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(StoreFailure)
    async def store_failure_handler(request: Request, exc: StoreFailure) -> JSONResponse:
        logger.error("%s %s: %s", request.method, request.url.path, exc, exc_info=exc.cause or exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, _INTERNAL_ERROR)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, _INTERNAL_ERROR)


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, repository: Optional[Repository] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: configuration; read from the environment when omitted.
        repository: an explicit store handle. When omitted, the lifespan handler
            opens one with open_repository(settings) and releases it at shutdown.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.repository is not None:
            yield
            return
        with open_repository(settings) as repo:
            app.state.repository = repo
            try:
                yield
            finally:
                app.state.repository = None

    app = FastAPI(
        title="Task Tracker API",
        description="REST API for creating, listing, updating and deleting tasks.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.repository = repository

    # Configure CORS based on settings (CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Liveness", tags=["health"], response_class=PlainTextResponse)
    def liveness() -> str:
        """
        Liveness endpoint; not part of the task resource contract.
        """
        return "API Server is running"

    app.include_router(tasks_router.router)
    return app


app = create_app()
