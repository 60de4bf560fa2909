"""
NoteDigest Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for each failure kind.
Why:   Callers must be able to tell a missing section apart from a failing
       model provider, and both apart from a summary that never passed
       validation. Each kind maps to its own HTTP status.
How:   Every exception carries a user-facing message and a context dict.
       Global exception handlers (registered in main.py) render them as JSON.

Exception Hierarchy:
    NoteDigestError (base)
    ├── ValidationError              → 400 Bad Request (client can fix)
    ├── NotFoundError                → 404 Not Found
    ├── GenerationError              → 503 Service Unavailable
    │   └── CircuitBreakerOpenError  → 503 Service Unavailable (fail fast)
    └── SummaryRejectedError         → 422 Unprocessable Entity

Recovery policy:
    - SummaryValidator never raises; it only classifies.
    - SummaryPipeline absorbs exactly one rejection by regenerating once;
      the second rejection surfaces as SummaryRejectedError.
    - GenerationError is never retried by the pipeline.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from notedigest.services.summary_validator import ValidationVerdict


class NoteDigestError(Exception):
    """
    Base exception for all NoteDigest application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where harmless)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteDigestError):
    """
    Raised when client input fails validation.

    When:  Upload type or size not accepted.
    HTTP:  400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(NoteDigestError):
    """
    Raised when a referenced section or page identifier does not exist.

    HTTP:  404 Not Found. Never retried.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class GenerationError(NoteDigestError):
    """
    Raised when a text or vision generator fails.

    What:  The model provider rejected the call, timed out, or returned no text.
    HTTP:  503 Service Unavailable

    Distinct from SummaryRejectedError: this says nothing about summary
    quality, only that no candidate could be produced.
    """

    def __init__(
        self,
        message: str = "AI generation service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(GenerationError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After threshold failures → OPEN (reject all calls for recovery_time)
        → After recovery_time → HALF_OPEN (allow one test call)
        → If test succeeds → CLOSED; if it fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, retry_after=recovery_time, context=ctx)
        self.recovery_time = recovery_time


class SummaryRejectedError(NoteDigestError):
    """
    Raised when a summary fails validation on both allowed attempts.

    What:  The final ValidationVerdict was a rejection; the retry budget
           (one retry) is spent.
    HTTP:  422 Unprocessable Entity

    Attributes:
        verdict:  The final rejected ValidationVerdict (reason + metric)
        attempts: Number of generation calls made (always 2 from the pipeline)
    """

    def __init__(
        self,
        verdict: "ValidationVerdict",
        attempts: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        reason = verdict.reason.value if verdict.reason else "unknown"
        message = (
            f"The generated summary was rejected after {attempts} attempts "
            f"({reason})."
        )
        ctx = context or {}
        ctx["reason"] = reason
        ctx["metric"] = verdict.metric
        ctx["attempts"] = attempts
        super().__init__(message=message, context=ctx)
        self.verdict = verdict
        self.attempts = attempts

    @property
    def reason(self):
        return self.verdict.reason

    @property
    def metric(self):
        return self.verdict.metric
