"""
NoteDigest Backend — Image Service Unit Tests
==============================================

What:  Tests for ImageService validation (extension, size, MIME type) and conversion.
Why:   Upload validation is the boundary between the network and the vision model.
How:   MIME sniffing is patched where the test is about something else, so the
       suite does not depend on the libmagic version installed.

Test Strategy:
    ✅ Allowed extensions (.jpg, .jpeg, .png), case-insensitive
    ✅ Rejected extensions (.gif, .pdf, .exe, none)
    ✅ Size limits and empty uploads
    ✅ MIME normalization and rejection
    ✅ Base64 conversion and loading files from disk
"""

import base64
from unittest.mock import patch

import pytest

from notedigest.exceptions import ValidationError
from notedigest.services.image_service import ImageService, mime_type_for_path


class TestImageValidation:
    """Tests for validation logic in ImageService."""

    def setup_method(self):
        self.service = ImageService(max_file_size=2 * 1024 * 1024)

    # ── Extension Validation ──────────────────────────────────────────────

    @pytest.mark.parametrize("filename", ["photo.jpg", "photo.jpeg", "photo.png", "photo.JPG", "photo.Jpeg"])
    def test_validate_extension_allowed(self, filename):
        assert self.service.validate_extension(filename) in {".jpg", ".jpeg", ".png"}

    @pytest.mark.parametrize("filename", ["animation.gif", "document.pdf", "noextension", "malware.exe"])
    def test_validate_extension_rejected(self, filename):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_extension(filename)

    # ── Size Validation ───────────────────────────────────────────────────

    def test_validate_size_within_limit(self):
        self.service.validate_size(None, 1000)

    def test_validate_size_at_limit(self):
        self.service.validate_size(None, 2 * 1024 * 1024)

    def test_validate_size_over_limit(self):
        with pytest.raises(ValidationError, match="too large"):
            self.service.validate_size(None, 2 * 1024 * 1024 + 1)

    def test_validate_size_reported_length_over_limit(self):
        with pytest.raises(ValidationError, match="exceeds maximum"):
            self.service.validate_size(10 * 1024 * 1024, 1000)

    def test_validate_size_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(None, 0)

    # ── MIME Validation ───────────────────────────────────────────────────

    def test_validate_mime_type_normalizes_jpg(self):
        with patch.object(self.service, "_detect_mime_type", return_value="image/jpg"):
            assert self.service.validate_mime_type(b"data") == "image/jpeg"

    def test_validate_mime_type_rejects_non_images(self):
        with patch.object(self.service, "_detect_mime_type", return_value="application/pdf"):
            with pytest.raises(ValidationError, match="not supported"):
                self.service.validate_mime_type(b"%PDF-1.4")

    # ── Conversion ────────────────────────────────────────────────────────

    def test_validate_upload_returns_page_image(self, sample_image_bytes):
        with patch.object(self.service, "_detect_mime_type", return_value="image/png"):
            image = self.service.validate_upload("lecture-8.png", sample_image_bytes, len(sample_image_bytes))

        assert image.title == "lecture-8.png"
        assert image.mime_type == "image/png"
        assert base64.b64decode(image.data_base64) == sample_image_bytes

    def test_validate_upload_checks_extension_before_content(self):
        with patch.object(self.service, "_detect_mime_type") as mock_detect:
            with pytest.raises(ValidationError):
                self.service.validate_upload("notes.gif", b"GIF89a", 6)
        mock_detect.assert_not_called()


class TestLoadImageFile:
    """Tests for reading images from disk (CLI path)."""

    def setup_method(self):
        self.service = ImageService()

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("page.png", "image/png"),
            ("page.JPG", "image/jpeg"),
            ("page.jpeg", "image/jpeg"),
            ("page.webp", "image/png"),
        ],
    )
    def test_mime_type_for_path(self, path, expected):
        assert mime_type_for_path(path) == expected

    @pytest.mark.asyncio
    async def test_load_image_file(self, tmp_path, sample_image_bytes):
        path = tmp_path / "page1.jpg"
        path.write_bytes(sample_image_bytes)

        image = await self.service.load_image_file(str(path))

        assert image.mime_type == "image/jpeg"
        assert image.title == str(path)
        assert base64.b64decode(image.data_base64) == sample_image_bytes

    @pytest.mark.asyncio
    async def test_load_image_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await self.service.load_image_file(str(tmp_path / "missing.png"))
