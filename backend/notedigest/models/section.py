"""
NoteDigest Backend — Section and Page Domain Models
====================================================

What:  In-memory records for note sections, their pages, and page images.
Why:   NotesStore holds these directly; there is no database layer.
Who:   Created and mutated by NotesStore; read by NoteService, routes and the CLI.

Ownership:
    - Section owns its pages list and its optional single image.
    - Page owns its transcription and page_summary fields.
    - Section-level summaries live in NotesStore, not on Section.
    - Page.section_id is a back-reference by identifier only.
"""

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from notedigest.services.llm_base import ImagePart

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id(prefix: str) -> str:
    """
    Build an opaque identifier: `<prefix>_<timestamp-base36>_<random-base36>`.

    The timestamp is milliseconds since the epoch; the random part is eight
    base-36 characters.
    """
    ts = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"{prefix}_{ts}_{random_part}"


@dataclass
class PageImage:
    """An image payload attached to a section or page, already base64-encoded."""

    data_base64: str
    mime_type: str
    title: Optional[str] = None

    def to_image_part(self) -> ImagePart:
        return ImagePart(data_base64=self.data_base64, mime_type=self.mime_type)


@dataclass
class Page:
    """
    One photographed page of notes.

    Lifecycle:
        1. Created when an image is attached to a section (text fields empty)
        2. transcription filled by the vision generator
        3. page_summary filled by SummaryPipeline
        4. On image replacement both fields are cleared and recomputed
    """

    id: str
    section_id: str
    image: PageImage
    transcription: str = ""
    page_summary: str = ""


@dataclass
class Section:
    """
    A topic with either a single inline image or an ordered list of pages.

    The id is assigned once by NotesStore and never changes.
    """

    id: str
    topic: str
    image: Optional[PageImage] = None
    pages: List[Page] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
