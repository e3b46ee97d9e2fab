"""FastAPI application for the StitchDesk portal API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import uuid4

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from stitchdesk import __version__
from stitchdesk.config import get_config
from stitchdesk.core.logging import configure_logging
from stitchdesk.db.connection import close_db, get_session
from stitchdesk.errors import PortalError, UnknownSymbol, ValidationError
from stitchdesk.startup_validation import run_all_validations
from stitchdesk.web.dependencies import get_symbol_cache
from stitchdesk.web.routes import admin, files, health, lookups, orders, quotes

# Initialize structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    configure_logging(config.log_level, config.log_format)
    async with get_session() as session:
        await run_all_validations(session)
        await get_symbol_cache().refresh(session)
    yield
    await close_db()


app = FastAPI(
    title="StitchDesk Portal API",
    description="Order and quote management for digitizing and embroidery work",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                status_code=response.status_code,
            )
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise


app.add_middleware(RequestLoggingMiddleware)

# Prometheus Metrics
Instrumentator().instrument(app).expose(app)


def _error_body(message: str, **extra) -> dict:
    return {
        "status": "error",
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


# Exception Handlers
@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Map domain errors onto their HTTP status."""
    if isinstance(exc, UnknownSymbol):
        logger.error("symbol_table_incomplete", error=exc.message, missing=exc.missing)
    elif exc.status_code == 403:
        logger.warning("request_forbidden", path=request.url.path, error=exc.message)

    extra = {}
    if isinstance(exc, ValidationError) and exc.errors:
        extra["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, **extra))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are 400; 422 is kept for domain validation."""
    errors = [
        {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Validation failed", errors=errors))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=exc.headers,
    )


# Include Routers
app.include_router(health.router)
app.include_router(lookups.router)
app.include_router(orders.router)
app.include_router(quotes.router)
app.include_router(files.router)
app.include_router(admin.router)
