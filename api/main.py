"""
api/main.py -- FastAPI application entry point for TransConnect.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- lets the web client (FRONTEND_URL) call the API
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every collaborator from Settings exactly once and hangs it on
app.state: the community store, the session issuer, the identity-provider
client, and the auth service that ties them together. Route handlers read
them from request.app.state; tests swap the lifespan to inject fakes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.mentors import router as mentors_router
from api.routes.messages import router as messages_router
from auth.errors import ServiceError
from auth.identity import SupabaseAuthClient
from auth.provisioning import AuthService, ProfileProvisioner
from auth.tokens import SessionIssuer
from community.store import CommunityStore
from core.config import get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("transconnect.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level resources on startup and release them on shutdown.

    Startup order matters:
      1. Store first -- the provisioner and the auth service write through it.
      2. Session issuer -- fails fast if the signing secret is missing.
      3. Identity client -- fails fast if the provider is not configured.
      4. Auth service last -- composes the three above.
    """
    logger.info("TransConnect API starting up")
    app.state.settings = _settings
    app.state.store = CommunityStore(_settings.database_url)
    logger.info("Community store initialized")
    app.state.session_issuer = SessionIssuer.from_settings(_settings)
    app.state.identity = SupabaseAuthClient.from_settings(_settings)
    app.state.auth_service = AuthService(
        verifier=app.state.identity,
        issuer=app.state.session_issuer,
        store=app.state.store,
        provisioner=ProfileProvisioner(app.state.store),
        role_resolution=_settings.role_resolution,
    )
    logger.info("Auth initialized (role_resolution=%s)", _settings.role_resolution)

    yield

    app.state.identity.close()
    app.state.store.close()
    logger.info("TransConnect API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TransConnect API",
    description="Accounts, profiles, mentor directory, and peer messages for the TransConnect community.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(mentors_router, prefix="/api", tags=["Mentors"])
app.include_router(messages_router, prefix="/api", tags=["Messages"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {"error": "<message>"} envelope so the web
# client can show the message without inspecting the status code first.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render auth, provisioning, and community errors with their own status."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded.

    Retry-After tells clients exactly how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests. Please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query params are client errors like any other: 400."""
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return _error(400, "Request validation failed.")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Unknown routes and framework-raised HTTP errors use the same envelope."""
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit, no auth.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness, version, and server time."""
    return HealthResponse(version=API_VERSION, timestamp=datetime.now(timezone.utc).isoformat())
