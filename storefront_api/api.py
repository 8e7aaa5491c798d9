"""FastAPI application, lifecycle and global handlers."""

import asyncio
import contextlib
import signal
import sys
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .dependencies import Services, get_services, set_services
from .exceptions import StorefrontError
from .middleware import add_request_id, enforce_request_timeout
from .ratelimit import limiter, rate_limit_exceeded_handler
from .responses import failure
from .routes import routers
from .storage import create_cache, create_database

API_NAME = "FK Designers API Server"
API_VERSION = "1.0.0"
ENDPOINT_GROUPS = {
    "health": "/health",
    "auth": "/api/auth",
    "products": "/api/products",
    "users": "/api/users",
    "contact": "/api/contact",
}

_started_at = time.monotonic()


def configure_logging() -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=False,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log an unhandled task error and ask the server to shut down gracefully."""
    error = context.get("exception")
    logger.opt(exception=error).critical(
        f"Unhandled error in event loop: {context.get('message', error)}"
    )
    logger.warning("Requesting graceful shutdown")
    signal.raise_signal(signal.SIGTERM)


async def bootstrap_admin(services: Services) -> None:
    """Create or refresh the configured admin; failures are logged, not fatal."""
    if not (settings.admin_email and settings.admin_password):
        logger.info("No admin credentials configured, skipping admin bootstrap")
        return
    try:
        await services.accounts.bootstrap_admin(settings.admin_email, settings.admin_password)
    except StorefrontError as e:
        logger.error(f"Error initializing admin user: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    configure_logging()
    logger.info(f"Starting {API_NAME} ({settings.environment}) on port {settings.port}")

    # Fail fast on a missing signing key outside development
    settings.signing_key()

    database = create_database()
    cache = create_cache()
    await database.startup()

    services = Services.build(database, cache)
    set_services(services)
    await bootstrap_admin(services)

    maintenance = asyncio.create_task(
        database.run_maintenance(settings.maintenance_interval_seconds)
    )
    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    if settings.install_crash_handler:
        loop.set_exception_handler(handle_loop_exception)

    logger.info("Application started successfully")

    yield

    loop.set_exception_handler(previous_handler)
    maintenance.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await maintenance

    await database.shutdown(settings.shutdown_drain_seconds)
    set_services(None)
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Storefront API",
    version=API_VERSION,
    description="Storefront and admin backend for a clothing retailer",
    lifespan=lifespan,
)

app.middleware("http")(enforce_request_timeout)
app.middleware("http")(add_request_id)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    max_age=86400,
)

app.state.limiter = limiter  # Required by slowapi
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors with clean messages."""
    errors = []

    for error in exc.errors():
        location = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        errors.append({"field": field, "message": message})

    logger.info(f"Validation failed for {request.method} {request.url.path}: {errors}")
    return failure("Validation failed", status.HTTP_400_BAD_REQUEST, errors=errors)


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Handle domain-specific errors."""
    if exc.status_code >= 500:
        logger.error(f"Storefront error on {request.url.path}: {exc}")
    else:
        logger.info(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")

    return failure(exc.message, exc.status_code, errors=getattr(exc, "errors", None))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown paths, wrong methods) in the envelope."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.info(f"404 - Not found: {request.method} {request.url.path}")
        return failure(
            "API endpoint not found",
            status.HTTP_404_NOT_FOUND,
            path=request.url.path,
            method=request.method,
            available_endpoints=list(ENDPOINT_GROUPS.values()),
        )
    return failure(str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: hide details outside development."""
    logger.opt(exception=exc).error(
        f"Server error on {request.method} {request.url.path} "
        f"(user agent {request.headers.get('User-Agent')})"
    )
    message = str(exc) if settings.is_development else "Internal server error"
    return failure(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


for router in routers:
    app.include_router(router)


@app.get("/health", tags=["health"])
async def health_endpoint(response: Response) -> dict[str, Any]:
    """Check health status of the API and its database."""
    try:
        database = await get_services().database.health_check()
    except RuntimeError as e:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "ERROR", "timestamp": datetime.now(UTC).isoformat(), "error": str(e)}

    healthy = database["status"] == "healthy"
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "OK" if healthy else "ERROR",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "environment": settings.environment,
        "database": database["status"],
        "version": API_VERSION,
    }


@app.get("/", tags=["health"])
async def root_endpoint() -> dict[str, Any]:
    """API information endpoint."""
    return {
        "success": True,
        "message": API_NAME,
        "version": API_VERSION,
        "endpoints": ENDPOINT_GROUPS,
    }


app.openapi_tags = [
    {"name": "auth", "description": "Registration, login and profile"},
    {"name": "products", "description": "Product catalogue"},
    {"name": "users", "description": "User administration and audit trail"},
    {"name": "contact", "description": "Contact and customization requests"},
    {"name": "health", "description": "Health checks"},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    return app
