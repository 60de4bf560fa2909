"""
NoteDigest Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, exception mapping
       and the construction of the per-application services.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn notedigest.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                     FastAPI App                         │
    │                                                         │
    │  Middleware Chain:                                      │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐            │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│ CORS │            │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘            │
    │                                                         │
    │  Routes:                                                │
    │  ┌──────────────────┐ ┌────────────────┐ ┌───────────┐  │
    │  │ /api/sections/*  │ │ /api/summaries │ │ /health   │  │
    │  └──────────────────┘ └────────────────┘ └───────────┘  │
    │                                                         │
    │  Exception Handlers:                                    │
    │  ┌───────────────────────────────────────────────────┐  │
    │  │ Validation→400 │ NotFound→404 │ Rejected→422      │  │
    │  │ Generation→503 │ Unexpected→500                   │  │
    │  └───────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal)
    3. Build generators, NotesStore, SummaryPipeline and NoteService on app.state

    Shutdown:
    1. Log section count (in-memory state is discarded)
"""

import logging
import math
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notedigest import __version__
from notedigest.config import settings
from notedigest.exceptions import (
    CircuitBreakerOpenError,
    GenerationError,
    NotFoundError,
    SummaryRejectedError,
    ValidationError,
)
from notedigest.middleware.logging import RequestLoggingMiddleware
from notedigest.middleware.request_id import (
    RequestIDMiddleware,
    page_id_var,
    request_id_var,
    section_id_var,
)
from notedigest.routes import health, sections
from notedigest.services.gemini_service import create_gemini_generators
from notedigest.services.note_service import NoteService
from notedigest.services.notes_store import NotesStore
from notedigest.services.summary_pipeline import SummaryPipeline
from notedigest.services.summary_validator import SummaryValidator, ValidatorConfig

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Shared with the CLI so both surfaces produce the same log lines.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every request at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Service Wiring
# ══════════════════════════════════════════════════════════════════════════

def init_services(app: FastAPI) -> None:
    """
    Build the per-application services and store them on app.state.

    Each app gets its own NotesStore; nothing is shared between app instances.
    """
    text_generator, vision_generator = create_gemini_generators()
    store = NotesStore()
    pipeline = SummaryPipeline(SummaryValidator(ValidatorConfig.from_settings()))

    app.state.store = store
    app.state.text_generator = text_generator
    app.state.vision_generator = vision_generator
    app.state.pipeline = pipeline
    app.state.note_service = NoteService(
        store=store,
        text_generator=text_generator,
        vision_generator=vision_generator,
        pipeline=pipeline,
    )


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("NoteDigest Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports the degraded state
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    init_services(app)
    logger.info(
        "Summary validation: max_length_ratio=%.2f min_word_floor=%d min_overlap_ratio=%.2f",
        settings.summary_max_length_ratio,
        settings.summary_min_word_floor,
        settings.summary_min_overlap_ratio,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info(
        "NoteDigest Backend shutting down, discarding %d in-memory sections",
        len(app.state.store.list_sections()),
    )


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "request_id": request_id_var.get(""),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400 Bad Request
        NotFoundError           → 404 Not Found
        SummaryRejectedError    → 422 Unprocessable Entity (both attempts rejected)
        CircuitBreakerOpenError → 503 Service Unavailable, Retry-After
        GenerationError         → 503 Service Unavailable
        Exception (fallback)    → 500 Internal Server Error

    Stack traces are logged server-side only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message, exc.context),
        )

    @app.exception_handler(SummaryRejectedError)
    async def handle_summary_rejected(request: Request, exc: SummaryRejectedError):
        logger.warning(
            "[%s] Summary rejected (section=%s page=%s): %s",
            request_id_var.get(""),
            section_id_var.get() or "-",
            page_id_var.get() or "-",
            exc.message,
        )
        details = dict(exc.context)
        # Length ratio is infinite against an empty source; JSON has no inf
        metric = details.get("metric")
        if isinstance(metric, float) and not math.isfinite(metric):
            details["metric"] = None
        return JSONResponse(
            status_code=422,
            content=_error_body("summary_rejected", exc.message, details),
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body("service_unavailable", exc.message, exc.context),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(GenerationError)
    async def handle_generation_error(request: Request, exc: GenerationError):
        logger.error("[%s] Generation error: %s", request_id_var.get(""), exc.message)
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=503,
            content=_error_body("generation_error", exc.message, exc.context),
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="NoteDigest API",
        description=(
            "Transcribes handwritten class notes with Gemini and attaches validated "
            "page and section summaries. Summaries that are too long, off-topic or "
            "contain assistant meta-language are regenerated once, then rejected."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(sections.router)
    app.include_router(health.router)

    return app


# uvicorn expects `notedigest.main:app` to be importable
app = create_app()
