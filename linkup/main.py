"""
Linkup Backend - FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   `create_app()` wires middleware, exception handlers, routers and the
       lifespan, and stores the app-owned resources on `app.state`:

           app.state.database     Database (persistence handle)
           app.state.rate_limits  RateLimitRegistry (in-memory counters)

Who:   uvicorn (`uvicorn linkup.main:app`) and the test suite, which builds a
       fresh app per test with its own database.

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate configuration (logged, not fatal)
    3. Acquire the database; create tables when AUTO_CREATE_TABLES is set
    4. Start the rate-limit sweep task

    Shutdown:
    1. Cancel the sweep task
    2. Dispose the database engine
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkup import __version__
from linkup.api.envelope import failure
from linkup.config import settings
from linkup.database import Database
from linkup.exceptions import LinkupError
from linkup.middleware.logging import RequestIdLogFilter, RequestLoggingMiddleware
from linkup.middleware.request_id import RequestIDMiddleware, request_id_var
from linkup.routes import auth, health, posts, seed, users
from linkup.services.rate_limiter import RateLimitRegistry

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once for the whole process.

    Format: <time> [<LEVEL>] <logger> [<request id>]: <message>
    The request id comes from RequestIdLogFilter ("-" outside a request).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party loggers that are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

async def sweep_rate_limits(registry: RateLimitRegistry, interval: float) -> None:
    """Reclaim expired limiter entries until cancelled."""
    while True:
        await asyncio.sleep(interval)
        registry.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Linkup Backend %s starting up (%s)", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    database: Database = app.state.database
    try:
        await database.acquire()
        if settings.auto_create_tables:
            await database.create_all()
            logger.info("Database tables ensured")
    except LinkupError:
        # Requests retry acquire(); /health reports the outage meanwhile
        logger.error("Database unavailable at startup; will retry on first request")

    sweeper = asyncio.create_task(
        sweep_rate_limits(app.state.rate_limits, settings.rate_limit_sweep_interval)
    )

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Linkup Backend shutting down...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await database.shutdown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request_id_var.get("")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Envelope errors raised outside the API pipeline.

    Routes normally never raise (the pipeline catches everything); these
    cover routing misses, FastAPI parameter validation and anything that
    escapes a non-pipeline route such as /health.
    """

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            code, message = "NOT_FOUND", "Resource not found"
        elif exc.status_code == 405:
            code, message = "METHOD_NOT_ALLOWED", "Method not allowed"
        else:
            code, message = "HTTP_ERROR", str(exc.detail)
        envelope = failure(message, code, exc.status_code, request_id=_request_id(request))
        envelope.headers.update(exc.headers or {})
        return envelope.to_response()

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p not in ('query', 'path', 'body'))}"
            f" {err.get('msg', 'is invalid')}".strip()
            for err in exc.errors()
        ]
        return failure(
            "Validation failed",
            "VALIDATION_ERROR",
            400,
            details={"errors": errors},
            request_id=_request_id(request),
            expose=True,
        ).to_response()

    @app.exception_handler(LinkupError)
    async def handle_linkup_error(request: Request, exc: LinkupError):
        rid = _request_id(request)
        logger.warning("[%s] %s: %s | Context: %s", rid, exc.code, exc.message, exc.context)
        return failure(
            exc.message,
            exc.code,
            exc.status_code,
            details=exc.details,
            request_id=rid,
            expose=True if exc.expose_details else None,
        ).to_response()

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return failure(
            "Internal server error",
            "INTERNAL_ERROR",
            500,
            details=f"{type(exc).__name__}: {exc}",
            request_id=rid,
        ).to_response()


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    database: Optional[Database] = None,
    rate_limits: Optional[RateLimitRegistry] = None,
) -> FastAPI:
    """
    Build a configured application.

    Args:
        database:    Persistence handle; defaults to one on DATABASE_URL
        rate_limits: Limiter registry; defaults to the configured policies
    """
    app = FastAPI(
        title="Linkup API",
        description=(
            "Professional networking API: accounts, posts, likes, comments "
            "and member profiles."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.database = database or Database(settings.database_url)
    app.state.rate_limits = rate_limits or RateLimitRegistry.from_settings()

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(posts.router)
    app.include_router(users.router)
    app.include_router(seed.router)
    app.include_router(health.router)

    return app


# ── Module-level app instance for uvicorn ─────────────────────────────────
# Usage: uvicorn linkup.main:app --host 0.0.0.0 --port 8000
app = create_app()
