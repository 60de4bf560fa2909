"""
NoteDigest Backend — Health Check Route
========================================

What:  Health endpoint for monitoring and container liveness checks.
How:   Reports the shared Gemini circuit-breaker snapshot and, when the
       circuit is not open, a lightweight list_models() reachability check.

Status levels:
    - healthy:   Gemini reachable
    - degraded:  Gemini unreachable or circuit open (summaries will fail with 503)
"""

import logging
import time

from fastapi import APIRouter, Request

from notedigest import __version__
from notedigest.schemas.section import HealthResponse
from notedigest.services.gemini_service import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(request: Request) -> HealthResponse:
    gemini_status = "available"
    overall = "healthy"

    text_generator = request.app.state.text_generator
    breaker = getattr(text_generator, "circuit_breaker", None)
    circuit = breaker.snapshot() if isinstance(breaker, CircuitBreaker) else None
    try:
        if circuit is not None and circuit["state"] == CircuitBreaker.OPEN:
            gemini_status = "circuit_open"
            overall = "degraded"
        elif not await text_generator.health_check():
            gemini_status = "unavailable"
            overall = "degraded"
    except Exception as e:
        gemini_status = "unavailable"
        overall = "degraded"
        logger.warning("Health check: Gemini unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        gemini=gemini_status,
        circuit=circuit,
        sections=len(request.app.state.store.list_sections()),
        uptime_seconds=round(time.time() - _start_time, 2),
    )
