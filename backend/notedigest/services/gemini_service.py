"""
NoteDigest Backend — Google Gemini Generators
==============================================

What:  Concrete TextGenerator and VisionGenerator backed by the Google Gemini API.
Why:   Gemini handles both handwriting transcription (multimodal) and summary
       writing (text-only) under one API key.
How:   Each generator owns a GenerativeModel and shares one CircuitBreaker,
       so a provider outage trips both capabilities at once.
Who:   Built by create_gemini_generators() in the app lifespan and the CLI;
       handed to NoteService.

Resilience Strategy:
    1. Circuit breaker fails fast while Gemini is down
    2. Per-request timeout passed to the SDK
    3. Every SDK error is translated to GenerationError
    4. No retry inside generate(): SummaryPipeline owns the retry policy,
       and it only retries rejected candidates, never provider failures
"""

import base64
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

import google.generativeai as genai

from notedigest.config import settings
from notedigest.exceptions import CircuitBreakerOpenError, GenerationError
from notedigest.services.llm_base import ImagePart, TextGenerator, VisionGenerator

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    One breaker shared by the text and vision generators.

    Both capabilities hit the same Gemini project and quota, so consecutive
    failures of either kind count together. The breaker remembers which
    capability opened it; CircuitBreakerOpenError reports that as
    `tripped_by` so a 503 on a summary request can say the vision side
    failed first.

    States:
        closed     calls pass; consecutive failures are counted
        open       calls fail fast until recovery_timeout has elapsed
        half_open  one trial call; success closes, failure reopens
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at: Optional[float] = None
        self.tripped_by: Optional[str] = None
        self.failures_by_kind: Dict[str, int] = {}

    def seconds_until_retry(self) -> int:
        if self.state != self.OPEN or self.opened_at is None:
            return 0
        return max(0, int(self.recovery_timeout - (time.time() - self.opened_at)))

    def can_execute(self, kind: str = "gemini") -> bool:
        """
        Returns True if a call of the given kind may proceed.

        Raises:
            CircuitBreakerOpenError while open, carrying the remaining wait
            and the capability whose failure opened the circuit.
        """
        if self.state != self.OPEN:
            return True

        remaining = self.seconds_until_retry()
        if remaining <= 0:
            logger.info("Circuit breaker half-open; %s call goes through as the trial", kind)
            self.state = self.HALF_OPEN
            return True
        raise CircuitBreakerOpenError(
            recovery_time=remaining,
            context={"tripped_by": self.tripped_by, "blocked": kind},
        )

    def record_success(self, kind: str = "gemini") -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker closed after successful %s trial call", kind)
        self.failure_count = 0
        self.failures_by_kind.clear()
        self.state = self.CLOSED
        self.opened_at = None
        self.tripped_by = None

    def record_failure(self, kind: str = "gemini") -> None:
        self.failure_count += 1
        self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1

        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._open(kind)

    def _open(self, kind: str) -> None:
        self.state = self.OPEN
        self.opened_at = time.time()
        self.tripped_by = kind
        logger.warning(
            "Circuit breaker open after %s failure (%d consecutive: %s); retry in %ds",
            kind,
            self.failure_count,
            ", ".join(f"{k}={n}" for k, n in sorted(self.failures_by_kind.items())),
            self.recovery_timeout,
        )

    def snapshot(self) -> Dict[str, Any]:
        """State for the health endpoint."""
        return {
            "state": self.state,
            "failure_count": self.failure_count,
            "tripped_by": self.tripped_by,
            "retry_in": self.seconds_until_retry(),
        }


# ══════════════════════════════════════════════════════════════════════════
# Gemini Generators
# ══════════════════════════════════════════════════════════════════════════

def configure_gemini(api_key: Optional[str] = None) -> None:
    """Configure the SDK's module-level credentials once, if a real key is present."""
    key = api_key if api_key is not None else settings.gemini_api_key
    if key and key != "your_gemini_api_key_here":
        genai.configure(api_key=key)


class _GeminiCaller:
    """Shared call path: breaker check, SDK call, timing, error translation."""

    kind = "gemini"

    def __init__(self, model_name: str, circuit_breaker: CircuitBreaker):
        self.model_name = model_name
        self.model = genai.GenerativeModel(model_name)
        self.circuit_breaker = circuit_breaker

    async def _call(self, contents: List[Any], max_output_tokens: int) -> str:
        # Short per-call ID for correlating log lines under concurrency
        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute(self.kind)

        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                contents,
                generation_config={"max_output_tokens": max_output_tokens},
                request_options={"timeout": settings.gemini_request_timeout},
            )
            text = response.text or ""
        except Exception as e:
            self.circuit_breaker.record_failure(self.kind)
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "[%s] Gemini %s call failed after %.0fms: %s",
                request_id,
                self.kind,
                duration_ms,
                str(e),
            )
            raise GenerationError(
                message=f"AI {self.kind} generation failed. Please try again later.",
                retry_after=self.circuit_breaker.seconds_until_retry() or None,
                context={
                    "request_id": request_id,
                    "capability": self.kind,
                    "model": self.model_name,
                    "error_type": type(e).__name__,
                    "circuit": self.circuit_breaker.state,
                },
            ) from e

        self.circuit_breaker.record_success(self.kind)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "[%s] Gemini %s call completed in %.0fms, %d chars",
            request_id,
            self.kind,
            duration_ms,
            len(text),
        )
        return text


class GeminiTextGenerator(_GeminiCaller, TextGenerator):
    """Text-only generation for page and section summaries."""

    kind = "text"

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        model_name: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ):
        super().__init__(model_name or settings.gemini_text_model, circuit_breaker)
        self.max_output_tokens = max_output_tokens or settings.text_max_output_tokens

    async def generate(self, prompt: str) -> str:
        return await self._call([prompt], self.max_output_tokens)

    async def health_check(self) -> bool:
        """
        Lists available models (no token cost) to verify key and connectivity.
        """
        try:
            model_names = [m.name for m in genai.list_models()]
            target = f"models/{self.model_name}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


class GeminiVisionGenerator(_GeminiCaller, VisionGenerator):
    """Multimodal generation used to transcribe handwritten pages."""

    kind = "vision"

    def __init__(self, circuit_breaker: CircuitBreaker, model_name: Optional[str] = None):
        super().__init__(model_name or settings.gemini_vision_model, circuit_breaker)

    async def generate(
        self,
        prompt: str,
        images: Sequence[ImagePart],
        max_output_tokens: int,
    ) -> str:
        contents: List[Any] = [prompt]
        for image in images:
            contents.append(
                {"mime_type": image.mime_type, "data": base64.b64decode(image.data_base64)}
            )
        return await self._call(contents, max_output_tokens)


def create_gemini_generators() -> Tuple[GeminiTextGenerator, GeminiVisionGenerator]:
    """
    Build the text and vision generators sharing one circuit breaker.

    Called once per process by the app lifespan or the CLI.
    """
    configure_gemini()
    breaker = CircuitBreaker(
        failure_threshold=settings.cb_failure_threshold,
        recovery_timeout=settings.cb_recovery_timeout,
    )
    text = GeminiTextGenerator(breaker)
    vision = GeminiVisionGenerator(breaker)
    logger.info(
        "Gemini generators initialized: text=%s vision=%s circuit_breaker(threshold=%d, recovery=%ds)",
        text.model_name,
        vision.model_name,
        settings.cb_failure_threshold,
        settings.cb_recovery_timeout,
    )
    return text, vision
