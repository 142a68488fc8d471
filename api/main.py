"""
api/main.py -- FastAPI application entry point for FleetRent.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the process-wide objects once and stores them on app.state:
  user_store, fleet      -- SQLAlchemy stores
  token_codec            -- TokenCodec with the signing secret from Settings
  auth_service           -- AuthService over user_store + token_codec
  rental_checker         -- RentalConflictChecker over fleet
Nothing on app.state is mutated after startup.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, StatusResponse
from api.routes.auth import router as auth_router
from api.routes.cars import router as cars_router
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings
from core.errors import AppError, NotFoundError
from fleet.booking import RentalConflictChecker
from fleet.store import FleetStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fleetrent.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. TokenCodec raises if the secret is empty, which aborts startup.
    """
    logger.info("FleetRent API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.fleet = FleetStore(_settings.database_url)
    app.state.token_codec = TokenCodec(_settings.secret_key, _settings.token_expire_seconds)
    app.state.auth_service = AuthService(app.state.user_store, app.state.token_codec, _settings.default_role)
    app.state.rental_checker = RentalConflictChecker(app.state.fleet)
    logger.info(
        "Stores initialized (token_expire_seconds=%d, default_role=%s)",
        _settings.token_expire_seconds,
        _settings.default_role,
    )

    yield

    app.state.fleet.close()
    app.state.user_store.close()
    logger.info("FleetRent API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="FleetRent API",
    description="Vehicle rental backend: identities, roles, cars and conflict-free rentals.",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
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

app.include_router(auth_router, tags=["Auth"])
app.include_router(cars_router, tags=["Cars"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope
# {"error": {"name", "message", "details"}} so clients parse errors
# uniformly.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, name: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(name=name, message=message, details=details)).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render every domain error with the status its class declares."""
    return _error_response(exc.status_code, exc.name, exc.message, exc.details)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "RateLimitExceeded", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return _error_response(422, "ValidationError", "Request validation failed.", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for framework-raised HTTP exceptions (unknown route, wrong method)."""
    if exc.status_code == 404:
        err = NotFoundError(request.method, str(request.url))
        return _error_response(err.status_code, err.name, err.message, err.details)
    return _error_response(exc.status_code, f"HTTP{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only. The client receives the error class
    name and a fixed message: driver errors embed SQL text and bound
    parameters in str(exc).
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, type(exc).__name__, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root status endpoint
#
# No authentication and no rate limit -- load balancers and monitoring poll it.
# ---------------------------------------------------------------------------


@app.get("/", response_model=StatusResponse, tags=["Health"])
async def root() -> StatusResponse:
    """Return API liveness."""
    return StatusResponse(status="OK", message="FleetRent API is up and running!")
