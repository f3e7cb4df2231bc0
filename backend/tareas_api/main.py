import logging
import os
import signal
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import sentry_sdk
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from tareas_api.api.main import api_router
from tareas_api.core.config import settings
from tareas_api.core.db import build_connection_manager
from tareas_api.core.exceptions import (
    ConnectionFailedError,
    StorageError,
    TareasError,
)
from tareas_api.core.logging import configure_logging

_logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


def _on_connection_failure(err: ConnectionFailedError) -> None:
    _logger.critical("Database unreachable after retries: %s", err.details)
    if settings.DB_EXIT_ON_FAILURE:
        _logger.critical("DB_EXIT_ON_FAILURE is set; stopping the server")
        os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Own the connection manager for the lifetime of the app.

    By default the server starts listening right away and connects in the
    background (requests get 503 until connected). With DB_WAIT_FOR_CONNECTION
    startup blocks until the first connection succeeds or retries run out.
    """
    manager = build_connection_manager(on_failure=_on_connection_failure)
    app.state.db_manager = manager
    if settings.DB_WAIT_FOR_CONNECTION:
        try:
            await manager.connect()
        except ConnectionFailedError:
            _logger.error("Starting without a database; task endpoints will return 503")
    else:
        manager.start_connecting()
    manager.start_monitor()
    try:
        yield
    finally:
        await manager.close()


if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Exception handlers: every error body is {"error": ..., "details"?: ...}
# ---------------------------------------------------------------------------


@app.exception_handler(TareasError)
async def tareas_exception_handler(request: Request, exc: TareasError) -> JSONResponse:
    if isinstance(exc, StorageError):
        _logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            exc.details,
        )
    elif exc.status_code >= 500:
        _logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    else:
        _logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are a 400, like handler-level validation errors."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(l) for l in err.get("loc", []) if l != "body")
        msg = err.get("msg", "Invalid value")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return JSONResponse(
        status_code=400,
        content={
            "error": "Cuerpo de la solicitud inválido",
            "details": "; ".join(messages),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Any verb + path without a handler is an unknown route, including 405s.
    if exc.status_code in (404, 405):
        _logger.warning("Route not found: %s %s", request.method, request.url.path)
        return JSONResponse(status_code=404, content={"error": "Ruta no encontrada"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Catch-all for unhandled exceptions: log and return 500 with the error detail."""
    _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Error interno del servidor", "details": str(exc)},
    )


if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_PREFIX)


def mount_frontend(application: FastAPI, directory: str | Path) -> bool:
    """Serve *directory* at / when it exists. Must run after the API routes are added."""
    path = Path(directory)
    if not path.is_dir():
        _logger.info("No static front-end at %s; serving the API only", path)
        return False
    application.mount("/", StaticFiles(directory=path, html=True), name="frontend")
    return True


mount_frontend(app, settings.STATIC_DIR)


def run() -> None:
    """Entry point for ``tareas-api``."""
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
