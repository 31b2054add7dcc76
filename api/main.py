"""
api/main.py -- FastAPI application entry point for UserDesk.

Install deps:  pip install -e .
Run with:      uvicorn asgi:app --reload

Settings are resolved at import time through get_settings(). A missing or
short JWT_SECRET_KEY raises there, so the process never starts serving.

Middleware stack (outermost to innermost):
  1. CORSMiddleware      -- adds CORS headers, answers preflight requests
  2. log_requests        -- one log line per request with latency

AuthorizationGate (route policy table + bearer token check) is an app-wide
dependency, so it runs after routing and before every route handler.

Lifespan opens the user store and builds the services on startup, and closes
the store on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse, MessageResponse, ValidationErrorResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.gate import AuthorizationGate, build_route_policy
from auth.passwords import PasswordHasher, hashing_limiter
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer, TokenVerifier
from core.config import Settings, get_settings
from users.service import UserService

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("userdesk.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def attach_services(app: FastAPI, settings: Settings, user_store: UserStore) -> None:
    """Build the auth and user services around user_store and put them on app.state.

    Shared by the real lifespan and by tests, which pass an in-memory store.
    Must be called from inside the running event loop: the hashing limiter
    binds to it.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.hash_limiter = hashing_limiter(settings.hash_max_concurrency)
    app.state.user_store = user_store
    app.state.token_verifier = TokenVerifier(settings)
    app.state.auth_service = AuthService(user_store, hasher, TokenIssuer(settings))
    app.state.user_service = UserService(user_store, hasher)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("UserDesk API starting up")
    attach_services(app, _settings, UserStore(_settings.connection_string))
    logger.info("User store initialized")

    yield

    app.state.user_store.close()
    logger.info("UserDesk API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="UserDesk API",
    description="User records with password registration, login and bearer-token sessions.",
    version="0.1.0",
    lifespan=lifespan,
    # Interactive docs only in debug mode. They are plain Starlette routes,
    # outside the gate.
    docs_url="/docs" if _settings.debug else None,
    redoc_url="/redoc" if _settings.debug else None,
    openapi_url="/openapi.json" if _settings.debug else None,
    dependencies=[Depends(AuthorizationGate(build_route_policy(_settings)))],
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware in reverse registration order: the last one
# added is the outermost. Register innermost first.
#
# Request logging -- Pattern: Interceptor / Chain of Responsibility. The gate
# runs inside the router, so its 401 rejections are logged too.
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


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allow_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body has a "message" field so clients can parse failures
# uniformly. Validation failures add a per-field "errors" map.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field-level detail when the body or path fails validation."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        # Drop the "body"/"path"/"query" prefix so keys read like field names.
        field = ".".join(loc[1:]) or ".".join(loc) or "request"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=400,
        content=ValidationErrorResponse(errors=errors).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return {"message": detail} for all FastAPI/Starlette HTTP exceptions, keeping their headers."""
    return JSONResponse(
        status_code=exc.status_code,
        content=MessageResponse(message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors, store failures included.

    Security note: the raw exception is written to the log only, never to the
    response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=MessageResponse(message="An unexpected error occurred.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Never touches the user store.
# ---------------------------------------------------------------------------


@app.get("/api/health", response_model=HealthResponse, tags=["Health"], name="health")
async def health() -> HealthResponse:
    """Return API liveness."""
    return HealthResponse(timestamp=datetime.now(timezone.utc))
