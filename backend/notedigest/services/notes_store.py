"""
NoteDigest Backend — In-Memory Notes Store
===========================================

What:  Holds sections, their pages, and the current accepted summary per section.
Why:   Single owner of summary values; lookup, insertion and invalidation live
       in one place so the "summary is dropped when its image changes" rule
       can't be bypassed.
How:   A list of Section objects (insertion order) plus a dict index, and a
       dict of section_id → summary text.
Who:   One instance per application, created by the entry point (FastAPI
       lifespan or CLI main) and passed explicitly to NoteService.

Concurrency:
    Mutations are single list/dict operations and run on one event loop, so
    no locking is needed. Two concurrent summary requests for the same section
    resolve last-write-wins.

Section summaries (page variant):
    Always re-derived from the concatenation of page transcriptions
    (see build_section_source); never edited independently.
"""

import logging
from typing import Dict, List, Optional

from notedigest.exceptions import NotFoundError
from notedigest.models.section import Page, PageImage, Section, generate_id

logger = logging.getLogger(__name__)


class NotesStore:
    """
    Keyed collection of sections, pages and summaries.

    Operations:
        create_section / get_section / list_sections
        set_summary / get_summary / list_summaries
        invalidate_summary_on_image_change
        add_page / get_page / replace_page_image / build_section_source
    """

    def __init__(self):
        self._sections: List[Section] = []
        self._index: Dict[str, Section] = {}
        self._summaries: Dict[str, str] = {}

    # ── Sections ──────────────────────────────────────────────────────────

    def create_section(self, topic: str, image: Optional[PageImage] = None) -> Section:
        section = Section(id=generate_id("sec"), topic=topic, image=image)
        self._sections.append(section)
        self._index[section.id] = section
        logger.info("Section created: %s (topic=%r)", section.id, topic)
        return section

    def get_section(self, section_id: str) -> Section:
        section = self._index.get(section_id)
        if section is None:
            raise NotFoundError(resource="section", resource_id=section_id)
        return section

    def list_sections(self) -> List[Section]:
        return list(self._sections)

    # ── Summaries ─────────────────────────────────────────────────────────

    def set_summary(self, section_id: str, text: str) -> None:
        """Overwrite the section's summary. Last write wins."""
        self.get_section(section_id)
        self._summaries[section_id] = text

    def get_summary(self, section_id: str) -> Optional[str]:
        """Stored summary, or None when none has been computed since the last invalidation."""
        self.get_section(section_id)
        return self._summaries.get(section_id)

    def list_summaries(self) -> Dict[str, str]:
        """Snapshot copy of section_id → summary."""
        return dict(self._summaries)

    def invalidate_summary_on_image_change(self, section_id: str, new_image: PageImage) -> Section:
        """
        Replace the section's image and drop its summary.

        The next summary read recomputes it through SummaryPipeline.
        """
        section = self.get_section(section_id)
        section.image = new_image
        self._summaries.pop(section_id, None)
        logger.info("Section %s image replaced; summary invalidated", section_id)
        return section

    # ── Pages ─────────────────────────────────────────────────────────────

    def add_page(self, section_id: str, image: PageImage) -> Page:
        """
        Append a page and drop the section summary, which no longer covers
        every page.
        """
        section = self.get_section(section_id)
        page = Page(id=generate_id("pg"), section_id=section.id, image=image)
        section.pages.append(page)
        self._summaries.pop(section_id, None)
        logger.info("Page %s added to section %s (%d pages)", page.id, section_id, len(section.pages))
        return page

    def get_page(self, section_id: str, page_id: str) -> Page:
        section = self.get_section(section_id)
        for page in section.pages:
            if page.id == page_id:
                return page
        raise NotFoundError(resource="page", resource_id=page_id)

    def replace_page_image(self, section_id: str, page_id: str, image: PageImage) -> Page:
        """
        Swap a page's image in place.

        Clears the page's transcription and page summary, and drops the
        section summary, since all three derive from the old image.
        """
        page = self.get_page(section_id, page_id)
        page.image = image
        page.transcription = ""
        page.page_summary = ""
        self._summaries.pop(section_id, None)
        logger.info("Page %s image replaced; page and section summaries invalidated", page_id)
        return page

    def build_section_source(self, section_id: str) -> str:
        """
        Concatenate page transcriptions in insertion order.

        Format per page:
            Page 1 (lecture-8.png):
            <transcription>

        Pages are separated by a blank line; the title part is omitted when
        the page image has no title.
        """
        section = self.get_section(section_id)
        blocks = []
        for position, page in enumerate(section.pages, start=1):
            title = f" ({page.image.title})" if page.image.title else ""
            blocks.append(f"Page {position}{title}:\n{page.transcription}")
        return "\n\n".join(blocks)
