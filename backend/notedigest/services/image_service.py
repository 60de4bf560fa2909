"""
NoteDigest Backend — Image Intake Service
==========================================

What:  Validates uploaded note images and turns them into base64 PageImage payloads.
Why:   The vision generator takes base64 image parts; uploads and files on disk
       must be checked and converted first.
How:   Extension check, size check, MIME sniffing via python-magic, then base64.
       Files on disk (CLI) are read with aiofiles.
Who:   Called by the section routes for uploads and by the CLI for local files.

Validation order (cheapest first):
    1. Extension check — no content needed
    2. Size check — Content-Length header, then actual byte count
    3. MIME type check — magic bytes of the content
"""

import base64
import logging
from pathlib import Path
from typing import Optional

import aiofiles

from notedigest.config import settings
from notedigest.exceptions import ValidationError
from notedigest.models.section import PageImage

logger = logging.getLogger(__name__)

# What: Accepted MIME types for handwriting images
ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/jpg"}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg"}

# Extension → MIME for files read from disk; anything else is sent as PNG
EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def mime_type_for_path(path: str) -> str:
    return EXTENSION_MIME_TYPES.get(Path(path).suffix.lower(), "image/png")


class ImageService:
    """
    Upload validation and base64 conversion.

    Nothing is written to disk: images live inside PageImage records held by
    NotesStore.
    """

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_extension(self, filename: str) -> str:
        """
        Returns: Normalized extension (lowercase with dot).
        Raises:  ValidationError if extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Rejects empty files and files over max_file_size.

        Content-Length is checked first since some clients report it honestly
        before the body is read; the actual size catches the ones that don't.
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty.", field="file")

        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) is too large; maximum is {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def _detect_mime_type(self, content: bytes) -> str:
        import magic

        return magic.from_buffer(content, mime=True)

    def validate_mime_type(self, content: bytes) -> str:
        """
        Sniff the real content type from magic bytes.

        Returns: Detected MIME type, normalized so image/jpg reads as image/jpeg.
        Raises:  ValidationError if it is not PNG or JPEG.
        """
        mime_type = self._detect_mime_type(content)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    f"The file must be a valid image (PNG or JPEG)."
                ),
                field="file",
                context={"detected_mime": mime_type, "allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return "image/jpeg" if mime_type == "image/jpg" else mime_type

    def to_page_image(self, content: bytes, mime_type: str, title: Optional[str] = None) -> PageImage:
        return PageImage(
            data_base64=base64.b64encode(content).decode("ascii"),
            mime_type=mime_type,
            title=title,
        )

    def validate_upload(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> PageImage:
        """
        Full validation pipeline for an uploaded image.

        Returns:
            PageImage titled with the original filename.
        Raises:
            ValidationError on bad extension, size or content type.
        """
        self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        mime_type = self.validate_mime_type(content)
        logger.info("Image accepted: %s (%s, %d bytes)", filename, mime_type, len(content))
        return self.to_page_image(content, mime_type, title=filename)

    async def load_image_file(self, path: str, title: Optional[str] = None) -> PageImage:
        """
        Read an image from disk for the CLI.

        MIME type comes from the extension; unknown extensions are sent as PNG.
        The title defaults to the path as given.
        """
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        return self.to_page_image(content, mime_type_for_path(path), title=title or path)


# Stateless apart from the size limit taken from settings
image_service = ImageService()
