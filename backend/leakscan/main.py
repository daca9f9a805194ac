"""
LeakScan FastAPI application entry point.

Creates and configures the FastAPI app with:
- CORS middleware (outermost, so every response carries CORS headers)
- Security headers middleware
- Error envelope middleware and exception handlers
- API v1 router
- Health check endpoint
- Startup / shutdown lifecycle hooks for the database engine
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from leakscan.api.v1.router import router as v1_router
from leakscan.config import get_settings
from leakscan.core.database import engine
from leakscan.core.exceptions import ApiError
from leakscan.core.logging import configure_logging, get_logger

logger = get_logger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

_HEALTH_CHECK_PATH: str = "/health"
_APP_VERSION: str = "1.0.0"

_DOMAIN_REQUIRED_MESSAGE: str = "Domain is required in the request body."
_INTERNAL_ERROR_MESSAGE: str = "Internal server error."

_SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


# ── Middleware ───────────────────────────────────────────────────────────────

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Injects the headers in ``_SECURITY_HEADERS`` into every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response: Response = await call_next(request)
        for header_name, header_value in _SECURITY_HEADERS.items():
            response.headers[header_name] = header_value
        return response


class ErrorEnvelopeMiddleware(BaseHTTPMiddleware):
    """Turns any unhandled exception into a ``{"error": ...}`` 500 response.

    Starlette renders unhandled errors outside of all user middleware, which
    would strip the CORS headers from the response.  Catching them here keeps
    the response inside the CORS middleware.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error on %s %s",
                request.method,
                request.url.path,
                extra={"action": "request_error", "target": request.url.path},
            )
            return error_response(_INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)


# ── Error Envelope ───────────────────────────────────────────────────────────

def error_response(message: str, status_code: int) -> JSONResponse:
    """Build the uniform error envelope ``{"error": message}``."""
    return JSONResponse({"error": message}, status_code=status_code)


def _validation_message(exc: RequestValidationError) -> str:
    """Collapse pydantic validation errors into one human-readable message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request."

    first = errors[0]
    location: tuple[Any, ...] = tuple(first.get("loc", ()))
    if location[-1:] in (("domain",), ("body",)) and first.get("type") in (
        "missing",
        "value_error",
    ):
        return _DOMAIN_REQUIRED_MESSAGE

    field = ".".join(str(part) for part in location if part != "body") or "body"
    return f"Invalid request: {field}: {first.get('msg', 'invalid value')}"


def _install_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                "Request failed: %s",
                exc.message,
                extra={"action": "request_error", "target": request.url.path},
            )
        return error_response(exc.message, exc.status_code)

    @application.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(_validation_message(exc), status.HTTP_400_BAD_REQUEST)

    @application.exception_handler(StarletteHTTPException)
    async def handle_http_error(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        response = error_response(str(exc.detail), exc.status_code)
        if exc.headers:
            response.headers.update(exc.headers)
        return response


# ── Application Factory ─────────────────────────────────────────────────────

def create_app() -> FastAPI:
    """Build and return the configured FastAPI application instance.

    Returns:
        A fully configured ``FastAPI`` app ready to serve requests.
    """
    settings = get_settings()

    application = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Exposure probing -- checks a domain for commonly leaked "
            "sensitive paths such as .env files and VCS metadata."
        ),
        version=_APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json",
    )

    # ── Middleware (order matters: added last runs outermost) ─────────────

    application.add_middleware(ErrorEnvelopeMiddleware)
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    _install_exception_handlers(application)

    # ── Routers ──────────────────────────────────────────────────────────

    application.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    # ── Health Check ─────────────────────────────────────────────────────

    @application.get(
        _HEALTH_CHECK_PATH,
        tags=["health"],
        summary="Application health check",
        response_class=JSONResponse,
    )
    async def health_check() -> dict[str, Any]:
        """Return the current health status of the application."""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": _APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # ── Lifecycle Events ─────────────────────────────────────────────────

    @application.on_event("startup")
    async def on_startup() -> None:
        """Configure logging and verify that the database is reachable."""
        configure_logging()
        logger.info(
            "Application starting",
            extra={"action": "startup", "target": settings.APP_NAME},
        )

        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connection verified",
            extra={"action": "db_check", "target": settings.DATABASE_URL.split("@")[-1]},
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        """Dispose of the async database engine and its connection pool."""
        logger.info(
            "Application shutting down",
            extra={"action": "shutdown", "target": settings.APP_NAME},
        )
        await engine.dispose()

    return application


# ── Module-Level App Instance ────────────────────────────────────────────────

app: FastAPI = create_app()
