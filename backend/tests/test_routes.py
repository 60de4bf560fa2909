"""
NoteDigest Backend — API Route Tests
=====================================

What:  End-to-end tests of the HTTP surface through httpx's ASGITransport.
Why:   Checks routing, request validation and the exception → status mapping.
How:   The app fixture wires app.state to AsyncMock generators; MIME sniffing
       is patched so uploads don't depend on libmagic.

What we test:
    ✅ Section CRUD and summaries snapshot
    ✅ Page upload runs the full pipeline
    ✅ Single-image upload invalidates, GET summary recomputes
    ✅ 400 / 404 / 422 / 503 / 500 error bodies, X-Request-ID header
    ✅ Access log tags the section and page
    ✅ /health
"""

import logging
from unittest.mock import patch

import pytest

from notedigest.exceptions import CircuitBreakerOpenError, GenerationError
from notedigest.services.gemini_service import CircuitBreaker
from notedigest.services.image_service import image_service

from conftest import (
    FRACTIONS_SUMMARY,
    FRACTIONS_TRANSCRIPTION,
    META_SUMMARY,
    OFF_TOPIC_SUMMARY,
)


@pytest.fixture(autouse=True)
def sniff_png():
    with patch.object(image_service, "_detect_mime_type", return_value="image/png"):
        yield


async def _create_section(client, topic="Fractions"):
    response = await client.post("/api/sections", json={"topic": topic})
    assert response.status_code == 201
    return response.json()


def _upload(sample_image_bytes, filename="page1.png"):
    return {"file": (filename, sample_image_bytes, "image/png")}


class TestSectionRoutes:

    @pytest.mark.asyncio
    async def test_create_and_get_section(self, test_client):
        created = await _create_section(test_client, "  Fractions  ")
        assert created["id"].startswith("sec_")
        assert created["topic"] == "Fractions"
        assert created["pages"] == []
        assert created["summary"] is None
        assert created["has_image"] is False

        response = await test_client.get(f"/api/sections/{created['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_list_sections(self, test_client):
        first = await _create_section(test_client, "Fractions")
        second = await _create_section(test_client, "Decimals")

        response = await test_client.get("/api/sections")
        assert [s["id"] for s in response.json()] == [first["id"], second["id"]]

    @pytest.mark.asyncio
    async def test_unknown_section_is_404(self, test_client):
        response = await test_client.get("/api/sections/sec_missing")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["details"]["resource"] == "section"
        assert response.headers["X-Request-ID"] == body["request_id"]

    @pytest.mark.asyncio
    async def test_blank_topic_is_422(self, test_client):
        response = await test_client.post("/api/sections", json={"topic": "   "})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/api/sections", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"

    @pytest.mark.asyncio
    async def test_malformed_request_id_is_replaced(self, test_client):
        response = await test_client.get("/api/sections", headers={"X-Request-ID": "bad id; drop"})
        rid = response.headers["X-Request-ID"]
        assert rid != "bad id; drop"
        assert len(rid) == 8

    @pytest.mark.asyncio
    async def test_access_log_names_section_and_page(self, test_client, sample_image_bytes, caplog):
        section = await _create_section(test_client)
        caplog.set_level(logging.INFO, logger="notedigest.access")

        response = await test_client.put(
            f"/api/sections/{section['id']}/pages/pg_missing", files=_upload(sample_image_bytes)
        )

        assert response.status_code == 404
        records = [r for r in caplog.records if r.name == "notedigest.access"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].section_id == section["id"]
        assert records[0].page_id == "pg_missing"
        assert records[0].generation is True
        assert f"section={section['id']} page=pg_missing" in records[0].getMessage()


class TestPageRoutes:

    @pytest.mark.asyncio
    async def test_add_page_processes_everything(self, test_client, sample_image_bytes):
        section = await _create_section(test_client)

        response = await test_client.post(
            f"/api/sections/{section['id']}/pages", files=_upload(sample_image_bytes)
        )

        assert response.status_code == 201
        page = response.json()
        assert page["id"].startswith("pg_")
        assert page["title"] == "page1.png"
        assert page["transcription"] == FRACTIONS_TRANSCRIPTION
        assert page["page_summary"] == FRACTIONS_SUMMARY

        summaries = (await test_client.get("/api/summaries")).json()["summaries"]
        assert summaries == {section["id"]: FRACTIONS_SUMMARY}

    @pytest.mark.asyncio
    async def test_add_page_rejects_bad_extension(self, test_client, sample_image_bytes, vision_generator):
        section = await _create_section(test_client)

        response = await test_client.post(
            f"/api/sections/{section['id']}/pages", files=_upload(sample_image_bytes, "notes.gif")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        vision_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_page_unknown_section(self, test_client, sample_image_bytes):
        response = await test_client.post("/api/sections/sec_missing/pages", files=_upload(sample_image_bytes))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_replace_page_image(self, test_client, sample_image_bytes, vision_generator):
        section = await _create_section(test_client)
        page = (
            await test_client.post(f"/api/sections/{section['id']}/pages", files=_upload(sample_image_bytes))
        ).json()

        response = await test_client.put(
            f"/api/sections/{section['id']}/pages/{page['id']}",
            files=_upload(sample_image_bytes, "retake.png"),
        )

        assert response.status_code == 200
        assert response.json()["title"] == "retake.png"
        assert vision_generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_replace_unknown_page(self, test_client, sample_image_bytes):
        section = await _create_section(test_client)
        response = await test_client.put(
            f"/api/sections/{section['id']}/pages/pg_missing", files=_upload(sample_image_bytes)
        )
        assert response.status_code == 404
        assert response.json()["details"]["resource"] == "page"


class TestSummaryRoutes:

    @pytest.mark.asyncio
    async def test_zero_page_summary_is_empty(self, test_client, text_generator):
        section = await _create_section(test_client)

        response = await test_client.post(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 200
        assert response.json() == {"section_id": section["id"], "summary": ""}
        text_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_section_image_then_lazy_summary(self, test_client, sample_image_bytes, vision_generator):
        section = await _create_section(test_client)

        response = await test_client.put(
            f"/api/sections/{section['id']}/image", files=_upload(sample_image_bytes)
        )
        assert response.status_code == 200
        assert response.json()["has_image"] is True
        assert response.json()["summary"] is None
        vision_generator.generate.assert_not_awaited()

        response = await test_client.get(f"/api/sections/{section['id']}/summary")
        assert response.status_code == 200
        assert response.json()["summary"] == FRACTIONS_SUMMARY

    @pytest.mark.asyncio
    async def test_rejected_summary_is_422(self, test_client, text_generator):
        text_generator.generate.return_value = OFF_TOPIC_SUMMARY
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "summary_rejected"
        assert body["details"] == {"reason": "off_topic", "metric": 0.0, "attempts": 2}
        assert text_generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_meta_language_rejection_is_422_with_phrases(self, test_client, text_generator):
        text_generator.generate.return_value = META_SUMMARY
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 422
        details = response.json()["details"]
        assert details["reason"] == "contains_meta_language"
        assert details["metric"] == ["as an ai", "i cannot"]

    @pytest.mark.asyncio
    async def test_too_long_rejection_is_422_with_ratio(self, test_client, text_generator):
        text_generator.generate.return_value = " ".join(["numerator"] * 200)
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 422
        details = response.json()["details"]
        assert details["reason"] == "too_long"
        assert details["metric"] > 0.6

    @pytest.mark.asyncio
    async def test_too_long_against_blank_transcription_has_null_metric(
        self, test_client, text_generator, vision_generator
    ):
        vision_generator.generate.return_value = ""
        text_generator.generate.return_value = " ".join(["numerator"] * 151)
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 422
        details = response.json()["details"]
        assert details["reason"] == "too_long"
        assert details["metric"] is None

    @pytest.mark.asyncio
    async def test_generation_error_is_503(self, test_client, text_generator):
        text_generator.generate.side_effect = GenerationError(message="AI text generation failed.")
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 503
        assert response.json()["error"] == "generation_error"

    @pytest.mark.asyncio
    async def test_circuit_open_is_503_with_retry_after(self, test_client, vision_generator):
        vision_generator.generate.side_effect = CircuitBreakerOpenError(recovery_time=42)
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "42"
        assert response.json()["details"]["recovery_time"] == 42

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self, test_client, vision_generator):
        vision_generator.generate.side_effect = KeyError("boom")
        section = await _create_section(test_client)
        await test_client.put(f"/api/sections/{section['id']}/image", files=_upload(b"\x89PNG data"))

        response = await test_client.get(f"/api/sections/{section['id']}/summary")

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"


class TestHealthRoute:

    @pytest.mark.asyncio
    async def test_health_healthy(self, test_client):
        await _create_section(test_client)

        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["gemini"] == "available"
        assert body["sections"] == 1
        assert body["circuit"] is None

    @pytest.mark.asyncio
    async def test_health_degraded_when_unreachable(self, test_client, text_generator):
        text_generator.health_check.return_value = False

        body = (await test_client.get("/health")).json()

        assert body["status"] == "degraded"
        assert body["gemini"] == "unavailable"

    @pytest.mark.asyncio
    async def test_health_reports_open_circuit(self, test_client, text_generator):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        breaker.record_failure("vision")
        text_generator.circuit_breaker = breaker

        body = (await test_client.get("/health")).json()

        assert body["status"] == "degraded"
        assert body["gemini"] == "circuit_open"
        assert body["circuit"]["tripped_by"] == "vision"
        text_generator.health_check.assert_not_awaited()
