"""
Greenlight — FastAPI Application Factory
=========================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       uvicorn serves the module-level ``app`` (``greenlight.main:app``).

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware Chain:                                           │
    │  Req ID → Logging → Recover → Rate Limit → CORS → Body Limit │
    │                                                              │
    │  Routes:                                                     │
    │  GET /v1/healthcheck   GET|POST /v1/movies                   │
    │  GET|PATCH|DELETE /v1/movies/{id}                            │
    │                                                              │
    │  Exception Handlers:                                         │
    │  400 bad body │ 404 │ 405 │ 409 conflict │ 422 │ 500         │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, ping the database (5s timeout, logged on failure)
    Shutdown: dispose the engine's connection pool
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from greenlight import __version__
from greenlight.config import settings
from greenlight.database import dispose_engine, ping_database
from greenlight.exceptions import (
    NOT_FOUND_MESSAGE,
    SERVER_ERROR_MESSAGE,
    BadRequestError,
    DatabaseError,
    EditConflictError,
    FailedValidationError,
    GreenlightError,
    NotFoundError,
    error_payload,
)
from greenlight.middleware.body_limit import BodySizeLimitMiddleware
from greenlight.middleware.logging import RequestLoggingMiddleware
from greenlight.middleware.rate_limit import RateLimitMiddleware
from greenlight.middleware.recover import RecoverPanicMiddleware
from greenlight.middleware.request_id import RequestIDMiddleware, request_id_var
from greenlight.routes import health, movies
from greenlight.routes.params import describe_body_errors

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: 2024-01-15T12:00:00 [INFO] greenlight.access: GET /v1/movies 200 4.1ms ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # greenlight.access already records every request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Greenlight %s starting (env=%s)", __version__, settings.env)

    try:
        await ping_database(timeout=5.0)
        logger.info("Database connection pool established")
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        # Keep serving: /v1/healthcheck reports the outage.
        logger.error("Database is unreachable at startup: %s", e)

    logger.info("Listening on http://%s:%d", settings.host, settings.port)

    yield

    logger.info("Greenlight shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to ``{"error": ..., "request_id": ...}`` responses.

    Handler hierarchy:
        RequestValidationError  → 400 (body could not be decoded)
        BadRequestError         → 400
        NotFoundError           → 404
        HTTPException 404/405   → 404 unknown route / 405 wrong method
        EditConflictError       → 409
        FailedValidationError   → 422 (field → message map)
        DatabaseError           → 500 (generic message, context logged)
        GreenlightError (base)  → its status_code

    429 and oversized-body 400s are written by their middleware and never
    reach these handlers. Anything else propagates to RecoverPanicMiddleware.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        message = describe_body_errors(exc.errors())
        logger.info("[%s] Bad request body: %s", rid, message)
        return JSONResponse(status_code=400, content=error_payload(message, rid))

    @app.exception_handler(BadRequestError)
    async def handle_bad_request(request: Request, exc: BadRequestError):
        rid = request_id_var.get("")
        return JSONResponse(status_code=400, content=error_payload(exc.message, rid))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(status_code=404, content=error_payload(exc.message, rid))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        rid = request_id_var.get("")
        if exc.status_code == 404:
            message = NOT_FOUND_MESSAGE
        elif exc.status_code == 405:
            message = f"the {request.method} method is not supported for this resource"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(message, rid),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(EditConflictError)
    async def handle_edit_conflict(request: Request, exc: EditConflictError):
        rid = request_id_var.get("")
        logger.info("[%s] Edit conflict: %s", rid, exc.context)
        return JSONResponse(status_code=409, content=error_payload(exc.message, rid))

    @app.exception_handler(FailedValidationError)
    async def handle_failed_validation(request: Request, exc: FailedValidationError):
        rid = request_id_var.get("")
        return JSONResponse(status_code=422, content=error_payload(exc.errors, rid))

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_payload(SERVER_ERROR_MESSAGE, rid))

    @app.exception_handler(GreenlightError)
    async def handle_greenlight_error(request: Request, exc: GreenlightError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s | Context: %s", rid, exc.message, exc.context)
            return JSONResponse(
                status_code=exc.status_code,
                content=error_payload(SERVER_ERROR_MESSAGE, rid),
            )
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc.message, rid))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Greenlight API",
        description="Movie catalog API with filtering, sorting, pagination and optimistic locking.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition (last added = outermost).
    app.add_middleware(BodySizeLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Expected-Version", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Location", "Retry-After"],
    )
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RecoverPanicMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(movies.router)

    return app


app = create_app()
