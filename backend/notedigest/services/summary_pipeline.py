"""
NoteDigest Backend — Summary Pipeline (Validate-and-Retry)
===========================================================

What:  Produces an accepted summary for a source text, regenerating once when
       validation fails and surfacing a terminal error otherwise.
Why:   Generation calls are expensive network round-trips. A single retry
       absorbs an occasional bad candidate; a second rejection usually means
       the prompt and content are mismatched, which more retries won't fix.
How:   Explicit two-attempt state machine around a caller-supplied
       `generate()` coroutine factory and a SummaryValidator.
Who:   Called by NoteService for page summaries and section summaries.

State Machine:
    FIRST_ATTEMPT ──accepted──▶ ACCEPTED
          │
       rejected
          ▼
      RETRYING ──accepted──▶ ACCEPTED
          │
       rejected
          ▼
        FAILED  → SummaryRejectedError(final verdict, attempts=2)

    Any exception from generate() leaves the machine immediately as a
    GenerationError. It is never retried here.

Concurrency:
    Strictly sequential. The retry is issued only after the first candidate's
    rejection has been observed; there is no speculative parallel call.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from notedigest.exceptions import GenerationError, SummaryRejectedError
from notedigest.services.summary_validator import SummaryValidator, ValidationVerdict

logger = logging.getLogger(__name__)

GenerateFn = Callable[[], Awaitable[str]]

# One initial attempt plus one retry
MAX_ATTEMPTS = 2


class PipelineState(str, Enum):
    FIRST_ATTEMPT = "first_attempt"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    FAILED = "failed"


@dataclass(frozen=True)
class AcceptedSummary:
    """A summary that passed validation, with the number of generation calls it took."""

    text: str
    attempts: int
    verdict: ValidationVerdict

    def __str__(self) -> str:
        return self.text


class SummaryPipeline:
    """
    Stateless orchestrator: one instance can serve every request.

    Usage:
        pipeline = SummaryPipeline(SummaryValidator())
        result = await pipeline.produce_summary(
            transcription,
            lambda: text_generator.generate(prompt),
        )
        store.set_summary(section_id, result.text)
    """

    def __init__(self, validator: Optional[SummaryValidator] = None):
        self.validator = validator or SummaryValidator()

    async def produce_summary(self, source_text: str, generate: GenerateFn) -> AcceptedSummary:
        """
        Generate, validate, and at most once regenerate a summary.

        Args:
            source_text: The transcription the summary must stay faithful to
            generate:    Zero-argument coroutine factory returning a raw candidate

        Returns:
            AcceptedSummary with the trimmed accepted text

        Raises:
            SummaryRejectedError: Both candidates were rejected (carries the last verdict)
            GenerationError: generate() failed on either attempt
        """
        state = PipelineState.FIRST_ATTEMPT
        attempts = 0
        verdict: Optional[ValidationVerdict] = None

        while state in (PipelineState.FIRST_ATTEMPT, PipelineState.RETRYING):
            attempts += 1
            candidate = await self._generate_candidate(generate, attempts)
            verdict = self.validator.validate(candidate, source_text)
            state = next_state(state, verdict)

            if state is PipelineState.ACCEPTED:
                if attempts > 1:
                    logger.info("Summary accepted on retry (attempt %d)", attempts)
                return AcceptedSummary(text=candidate, attempts=attempts, verdict=verdict)

            logger.warning(
                "Summary candidate rejected on attempt %d/%d: reason=%s metric=%s",
                attempts,
                MAX_ATTEMPTS,
                verdict.reason.value,
                verdict.metric,
            )

        raise SummaryRejectedError(verdict=verdict, attempts=attempts)

    async def _generate_candidate(self, generate: GenerateFn, attempt: int) -> str:
        try:
            raw = await generate()
        except GenerationError:
            raise
        except Exception as e:
            logger.error("Summary generation failed on attempt %d: %s", attempt, str(e))
            raise GenerationError(
                message="Summary generation failed. Please try again later.",
                context={"attempt": attempt, "error_type": type(e).__name__},
            ) from e
        return (raw or "").strip()


def next_state(state: PipelineState, verdict: ValidationVerdict) -> PipelineState:
    """
    Transition function of the retry state machine.

    ACCEPTED and FAILED are terminal and map to themselves.
    """
    if state in (PipelineState.ACCEPTED, PipelineState.FAILED):
        return state
    if verdict.accepted:
        return PipelineState.ACCEPTED
    if state is PipelineState.FIRST_ATTEMPT:
        return PipelineState.RETRYING
    return PipelineState.FAILED
