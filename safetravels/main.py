"""
safetravels/main.py — FastAPI application entry point
Includes: lifespan management (store load, limiter pruning thread), CORS,
slowapi request limits, security headers, domain error → HTTP mapping.
"""

from contextlib import asynccontextmanager
import threading
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded

from safetravels.config import Settings, get_settings
from safetravels.core.errors import (
    ClientInputError,
    StorageError,
    ThrottledError,
)
from safetravels.core.logging import log_error, log_windows_pruned, setup_logging
from safetravels.core.rate_limiter import FixedWindowRateLimiter, RATE_LIMITS, limiter
from safetravels.core.tag_catalog import TagCatalog
from safetravels.routers import reports
from safetravels.services.ingestion import IngestionService
from safetravels.services.report_store import JsonFileReportStore, ReportStore

VERSION = "1.0.0"


# ── Health check ─────────────────────────────────────────────────────────────
health_router = APIRouter()


@health_router.get("/api/ping")
@limiter.limit(RATE_LIMITS["health"])
async def ping(request: Request):
    """Liveness probe. Touches no storage."""
    return {"status": "ok", "version": VERSION}


# ──────────────────────────────────────────────────────────────────────────────
# Rate-limit window pruning — bounds limiter memory, optional
# ──────────────────────────────────────────────────────────────────────────────

def _prune_worker(
    submission_limiter: FixedWindowRateLimiter,
    interval: float,
    stop: threading.Event,
) -> None:
    """Background daemon thread: drop expired throttle windows every `interval` seconds."""
    while not stop.wait(interval):
        try:
            removed = submission_limiter.prune()
            log_windows_pruned(removed, len(submission_limiter))
        except Exception as exc:
            logger.warning(f"Rate-limit prune failed (non-fatal): {exc}")


def _start_pruning(
    submission_limiter: FixedWindowRateLimiter,
    interval: float,
) -> Optional[threading.Event]:
    if interval <= 0:
        return None
    stop = threading.Event()
    thread = threading.Thread(
        target=_prune_worker,
        args=(submission_limiter, interval, stop),
        daemon=True,
        name="rate-limit-pruner",
    )
    thread.start()
    logger.info(f"Rate-limit pruning started. Interval {interval:g}s.")
    return stop


# ──────────────────────────────────────────────────────────────────────────────
# App factory
# ──────────────────────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ReportStore] = None,
    submission_limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    """
    Build the application. Collaborators may be injected (tests); otherwise
    they are built from settings when the lifespan starts.
    Invalid catalog or limiter parameters raise ConfigurationError here.
    """
    if settings is None:
        settings = get_settings()
    catalog = TagCatalog(settings.allowed_tags)
    if submission_limiter is None:
        submission_limiter = FixedWindowRateLimiter(
            window_seconds=settings.rate_limit_window_seconds,
            quota=settings.rate_limit_quota,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup: logging, load the report log (fatal if corrupt), start pruning."""
        setup_logging(settings.log_level)
        logger.info("Safe Travels report service starting up...")

        report_store = store
        if report_store is None:
            try:
                report_store = JsonFileReportStore(Path(settings.reports_file), catalog)
            except StorageError as exc:
                logger.critical(f"Cannot load report log: {exc}")
                raise

        app.state.ingestion = IngestionService(
            limiter=submission_limiter,
            store=report_store,
            catalog=catalog,
            max_comment_length=settings.max_comment_length,
        )
        stop = _start_pruning(submission_limiter, settings.rate_limit_prune_interval_seconds)

        logger.info(f"Startup complete. {len(report_store)} reports loaded.")
        yield

        if stop is not None:
            stop.set()
        logger.info("Shutting down Safe Travels report service.")

    app = FastAPI(
        title="Safe Travels Safety Reports",
        description="Anonymous crowd-sourced safety report ingestion.",
        version=VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Request limits for read-only endpoints — slowapi ─────────────────────
    app.state.limiter = limiter
    app.add_exception_handler(
        RateLimitExceeded,
        lambda req, exc: JSONResponse(
            status_code=429,
            content={"success": False, "error": "Rate limit exceeded. Slow down."},
        ),
    )

    _register_error_handlers(app)

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # ── Security headers middleware ──────────────────────────────────────────
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
    app.include_router(health_router, tags=["health"])

    return app


# ──────────────────────────────────────────────────────────────────────────────
# Domain error → HTTP mapping. Bodies never carry the submitter identity.
# ──────────────────────────────────────────────────────────────────────────────

def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ClientInputError)
    async def client_input_handler(request: Request, exc: ClientInputError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid Report",
                "field": exc.field,
                "message": exc.message,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid Report",
                "field": "body",
                "message": "Request body must be valid JSON.",
            },
        )

    @app.exception_handler(ThrottledError)
    async def throttled_handler(request: Request, exc: ThrottledError) -> JSONResponse:
        headers = {}
        if exc.retry_after_seconds is not None:
            headers["Retry-After"] = str(exc.retry_after_seconds)
        return JSONResponse(
            status_code=429,
            headers=headers,
            content={
                "success": False,
                "error": "Too Many Reports",
                "message": (
                    "You have submitted too many reports recently. "
                    "Please try again later."
                ),
                "retryAfter": exc.retry_after_seconds,
            },
        )

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError) -> JSONResponse:
        log_error("report_store", "append", exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal Server Error",
                "message": "Unable to save report.",
            },
        )


app = create_app()
