"""
api/main.py -- FastAPI application entry point for TaskGuard.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the configured origins only
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Access control:
  enforce_route_policy is registered as an app-wide dependency, so it runs
  before every API route. It applies the static table in auth/policy.py.
  check_route_policies() in the lifespan refuses to start the server if a
  registered route is missing from that table.

Lifespan builds every collaborator from Settings exactly once (stores, token
service, authenticator, guard) and attaches them to app.state. Route handlers
and the guard receive them from there; nothing reads the signing key as a
module global.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.tasks import router as tasks_router
from api.routes.users import router as users_router
from auth.authenticator import Authenticator
from auth.errors import AuthError
from auth.guard import AccessGuard, enforce_route_policy
from auth.policy import check_route_policies
from auth.seed import seed_demo_users
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from tasks.store import TaskStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("taskguard.api")

_settings = get_settings()

# Routers carry their own "/api" prefix, so their routes hold the full paths the
# policy table is keyed on whether or not FastAPI flattens included routers.
API_ROUTERS = (auth_router, users_router, tasks_router)

# Sent on every response, including the 500s ServerErrorMiddleware renders
# outside the http middleware stack.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def registered_routes(app: FastAPI, routers: Iterable[APIRouter] = API_ROUTERS) -> list[tuple[str, str]]:
    """(METHOD, path) for every API route on app and on the included routers.

    Non-API routes have no handlers to guard.
    """
    routes = [route for route in app.routes if isinstance(route, APIRoute)]
    for router in routers:
        routes.extend(route for route in router.routes if isinstance(route, APIRoute))
    return sorted({(method, route.path) for route in routes for method in route.methods})


def configure_state(app: FastAPI, settings: Settings, user_store: UserStore, task_store: TaskStore) -> None:
    """Build the auth collaborators and attach everything to app.state.

    Shared by the real lifespan and the test lifespan so both wire the app
    identically. Raises RuntimeError if the route policy table is out of date.
    """
    check_route_policies(registered_routes(app))

    tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
    app.state.settings = settings
    app.state.user_store = user_store
    app.state.task_store = task_store
    app.state.tokens = tokens
    app.state.authenticator = Authenticator(user_store, tokens, bcrypt_rounds=settings.bcrypt_rounds)
    app.state.guard = AccessGuard(tokens, user_store)


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores, build the auth components, and close stores on shutdown."""
    logger.info("TaskGuard API starting up (debug=%s)", _settings.debug)
    user_store = UserStore(_settings.database_url)
    task_store = TaskStore(_settings.database_url)
    configure_state(app, _settings, user_store, task_store)
    if _settings.seed_demo_users:
        seed_demo_users(user_store, rounds=_settings.bcrypt_rounds)
    logger.info("Auth initialized (token ttl=%ds)", _settings.token_expire_seconds)

    yield

    task_store.close()
    user_store.close()
    logger.info("TaskGuard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TaskGuard API",
    description="Task list API with bearer-token authentication and per-route access policy.",
    version="1.0.0",
    lifespan=lifespan,
    # Interactive docs and the schema are public Starlette routes that the
    # app-wide guard dependency does not cover, so they stay off.
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    dependencies=[Depends(enforce_route_policy)],
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Attach hardening headers to every response.

    API responses carry tokens and private task data, so they are never
    cacheable by browsers or intermediaries.
    """
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    if request.url.path.startswith("/api/"):
        response.headers["Cache-Control"] = "no-store"
    return response


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
app.include_router(users_router, tags=["Users"])
app.include_router(tasks_router, tags=["Tasks"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {"error": "..."} envelope. Internal detail
# (reasons, exception text, stack traces) goes to the log, never the body.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(exclude_none=True),
        headers={**SECURITY_HEADERS, **(headers or {})},
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render InvalidCredentials / Unauthenticated / Forbidden uniformly.

    The specific reason is logged for operators; the client only sees the
    class-level public message.
    """
    logger.info(
        "Rejected %s %s: %s (%s)",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc.reason,
    )
    return _error(exc.status_code, exc.public_message, exc.headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error(429, "Too many requests", {"Retry-After": str(retry_after)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 listing the offending fields, never the submitted values."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()})
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="Invalid request", detail=", ".join(fields)).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return the structured envelope for handler and router HTTP errors (404, 405, 409...)."""
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback is logged server-side only. The client receives an opaque
    message with no exception text or stack trace.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit applied -- health checks from load balancers and monitoring
# systems must not be throttled. Declared PUBLIC in auth/policy.py.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness and the current server time."""
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())
