"""
NoteDigest Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the HTTP API contract.
Why:   Input validation, serialization, and OpenAPI docs.
Who:   Used by route handlers as request bodies and response models.

Design Decision:
    Schemas are separate from the domain dataclasses so image payloads
    (base64, potentially megabytes) are never echoed back in responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from notedigest.models.section import Page, Section


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SectionCreate(BaseModel):
    """Blank topics are rejected by request validation (422)."""
    topic: str = Field(max_length=200, description="Section topic or title")

    @field_validator("topic")
    @classmethod
    def strip_topic(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic must not be blank")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PageResponse(BaseModel):
    """
    What:  A page's derived text without its image payload.
    Why:   The frontend shows page_summary in the sidebar next to the page.
    """
    id: str = Field(description="Page identifier (pg_...)")
    section_id: str = Field(description="Owning section identifier")
    title: Optional[str] = Field(default=None, description="Original image filename")
    mime_type: str = Field(description="Image content type")
    transcription: str = Field(description="Text transcribed from the image (empty until processed)")
    page_summary: str = Field(description="Validated page summary (empty until processed)")

    @classmethod
    def from_page(cls, page: Page) -> "PageResponse":
        return cls(
            id=page.id,
            section_id=page.section_id,
            title=page.image.title,
            mime_type=page.image.mime_type,
            transcription=page.transcription,
            page_summary=page.page_summary,
        )


class SectionResponse(BaseModel):
    id: str = Field(description="Section identifier (sec_...)")
    topic: str
    has_image: bool = Field(description="Whether a single inline image is attached")
    pages: List[PageResponse] = Field(default_factory=list)
    summary: Optional[str] = Field(
        default=None,
        description="Current accepted section summary; null when not yet computed",
    )
    created_at: datetime

    @classmethod
    def from_section(cls, section: Section, summary: Optional[str]) -> "SectionResponse":
        return cls(
            id=section.id,
            topic=section.topic,
            has_image=section.image is not None,
            pages=[PageResponse.from_page(p) for p in section.pages],
            summary=summary,
            created_at=section.created_at,
        )


class SummaryResponse(BaseModel):
    section_id: str
    summary: str


class SummariesResponse(BaseModel):
    summaries: Dict[str, str] = Field(description="section_id → summary snapshot")


class ErrorResponse(BaseModel):
    """
    Standardized error body for every API error.

    Example:
        {
            "error": "summary_rejected",
            "message": "The generated summary was rejected after 2 attempts (off_topic).",
            "details": {"reason": "off_topic", "metric": 0.05, "attempts": 2},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    gemini: str = Field(description="Gemini API status: available, unavailable, circuit_open")
    circuit: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Shared circuit breaker: state, failure_count, tripped_by (text|vision), retry_in",
    )
    sections: int = Field(description="Number of sections held in memory")
    uptime_seconds: float = Field(description="Seconds since service started")
