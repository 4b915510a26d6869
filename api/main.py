"""
api/main.py -- FastAPI application entry point for the registry.

Exposes the program registry over HTTP and guards its write endpoints with
the single-admin session issued by auth/.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. log_requests          -- one log line per request with latency

Lifespan handles startup (credential load, registry open, seed files) and
shutdown (registry close) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.programs import router as programs_router
from auth.errors import AuthNotInitialized
from auth.manager import AuthManager
from auth.store import CredentialStore
from core.config import Settings, get_settings
from registry.store import RegistryStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("registry.api")


# ---------------------------------------------------------------------------
# Component factories -- shared by the lifespan and the CLI (main.py)
# ---------------------------------------------------------------------------


def build_auth_manager(settings: Settings) -> AuthManager:
    return AuthManager(
        CredentialStore(settings.credential_file),
        session_ttl=timedelta(seconds=settings.session_ttl_seconds),
        min_password_length=settings.min_password_length,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


def build_registry(settings: Settings) -> RegistryStore:
    registry = RegistryStore(settings.registry_db_url)
    for path in settings.seed_files:
        registry.load_from_json_file(path)
    return registry


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The AuthManager is built first so the setup state is logged
    before the registry (which may load seed files) starts.
    """
    settings = get_settings()
    logger.info("Registry API %s starting up", __version__)
    app.state.auth = build_auth_manager(settings)
    logger.info("Auth initialized (setup_required=%s)", not app.state.auth.is_configured())
    app.state.registry = build_registry(settings)
    logger.info("Registry initialized (%d programs)", app.state.registry.count_programs())

    yield

    app.state.registry.close()
    logger.info("Registry API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Registry API",
    description="Program and vulnerability registry with a single-admin write interface.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=get_settings().allowed_hosts)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(programs_router, prefix="/api", tags=["Programs"])
app.include_router(admin_router, tags=["Admin"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail=ErrorDetail(...).model_dump()
    (a dict). When detail is already a structured dict, use it directly as the
    error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(AuthNotInitialized)
async def auth_not_initialized_handler(request: Request, exc: AuthNotInitialized) -> JSONResponse:
    """A session was requested before setup -- the route skipped its is_configured() check."""
    logger.error("Session requested before admin setup on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=ErrorDetail(code="setup_required", message="Admin setup has not been completed."),
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, registry reachability and setup state."""
    registry: RegistryStore = request.app.state.registry
    auth: AuthManager = request.app.state.auth
    return HealthResponse(
        version=__version__,
        components={
            "app": "ok",
            "database": "ok" if registry.ping() else "error",
            "auth": "configured" if auth.is_configured() else "setup_required",
        },
    )
