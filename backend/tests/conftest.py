"""
NoteDigest Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides generator stubs, a fresh NotesStore, sample notes and an API client.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── text_generator / vision_generator: AsyncMock stubs, no network
    ├── store: empty NotesStore
    ├── pipeline: SummaryPipeline with default thresholds
    ├── note_service: NoteService wired to the stubs above
    ├── sample_image_bytes / page_image: minimal PNG payloads
    └── app / test_client: FastAPI app with state wired to the stubs
"""

import os

# Override settings for testing BEFORE any notedigest imports
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

import base64
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notedigest.models.section import PageImage
from notedigest.services.llm_base import TextGenerator, VisionGenerator
from notedigest.services.note_service import NoteService
from notedigest.services.notes_store import NotesStore
from notedigest.services.summary_pipeline import SummaryPipeline


# ══════════════════════════════════════════════════════════════════════════
# Sample Notes
# ══════════════════════════════════════════════════════════════════════════

FRACTIONS_TRANSCRIPTION = (
    "Fractions represent parts of a whole. The numerator counts the parts taken "
    "and the denominator counts equal parts in the whole. To add fractions find a "
    "common denominator, convert each fraction, then add the numerators. Simplify "
    "the result by dividing numerator and denominator by their greatest common factor."
)

FRACTIONS_SUMMARY = (
    "- Add fractions by finding a common denominator and then adding numerators\n"
    "- Simplify using the greatest common factor"
)

OFF_TOPIC_SUMMARY = "Photosynthesis converts sunlight into chemical energy within chloroplasts."

META_SUMMARY = "As an AI, I cannot provide a summary of unrelated content."

# Smallest PNG signature plus IHDR chunk start; enough for MIME sniffing
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\x00\x01"
    b"\x00\x00\x05\x00\x01\r\n-\xb4\x00\x00\x00\x00IEND\xaeB`\x82"
)


# ══════════════════════════════════════════════════════════════════════════
# Generator Stubs
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def text_generator():
    """
    AsyncMock standing in for a TextGenerator.

    Returns an on-topic summary of FRACTIONS_TRANSCRIPTION by default.
    Override per test with generate.side_effect = [...].
    """
    generator = AsyncMock(spec=TextGenerator)
    generator.generate.return_value = FRACTIONS_SUMMARY
    generator.health_check.return_value = True
    return generator


@pytest.fixture
def vision_generator():
    """AsyncMock VisionGenerator that always transcribes FRACTIONS_TRANSCRIPTION."""
    generator = AsyncMock(spec=VisionGenerator)
    generator.generate.return_value = FRACTIONS_TRANSCRIPTION
    return generator


# ══════════════════════════════════════════════════════════════════════════
# Core Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def store():
    return NotesStore()


@pytest.fixture
def pipeline():
    return SummaryPipeline()


@pytest.fixture
def note_service(store, text_generator, vision_generator, pipeline):
    return NoteService(
        store=store,
        text_generator=text_generator,
        vision_generator=vision_generator,
        pipeline=pipeline,
    )


@pytest.fixture
def sample_image_bytes():
    return PNG_BYTES


@pytest.fixture
def page_image(sample_image_bytes):
    return PageImage(
        data_base64=base64.b64encode(sample_image_bytes).decode("ascii"),
        mime_type="image/png",
        title="page1.png",
    )


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(store, text_generator, vision_generator, pipeline, note_service):
    """
    Fresh FastAPI app with app.state wired to the stubs.

    ASGITransport does not run the lifespan, so the state the lifespan would
    build is assigned here instead.
    """
    from notedigest.main import create_app

    application = create_app()
    application.state.store = store
    application.state.text_generator = text_generator
    application.state.vision_generator = vision_generator
    application.state.pipeline = pipeline
    application.state.note_service = note_service
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
