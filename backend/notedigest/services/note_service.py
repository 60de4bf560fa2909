"""
NoteDigest Backend — Note Service (Business Logic Orchestrator)
================================================================

What:  Coordinates transcribe → summarize page → summarize section for note pages,
       and the lazy summary of single-image sections.
Why:   Keeps the workflow independent of HTTP and CLI concerns.
How:   Composes NotesStore, a VisionGenerator, a TextGenerator and SummaryPipeline.
       All four are passed in explicitly.
Who:   Called by the section routes and the CLI.

Page Flow (add_page_and_process / update_page_image):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌────────────────┐
    │  Store   │───▶│  Transcribe │───▶│ Page summary │───▶│ Section summary│
    │  page    │    │  (vision)   │    │  (pipeline)  │    │   (pipeline)   │
    └──────────┘    └─────────────┘    └──────────────┘    └────────────────┘

    On failure at any step:
    - GenerationError / SummaryRejectedError propagate unchanged
    - The page keeps whatever fields were already filled; the section summary
      stays invalidated until a later request succeeds
"""

import logging

from notedigest.config import settings
from notedigest.models.section import Page, PageImage, Section
from notedigest.services.llm_base import TextGenerator, VisionGenerator
from notedigest.services.notes_store import NotesStore
from notedigest.services.summary_pipeline import SummaryPipeline

logger = logging.getLogger(__name__)


class NoteService:
    """
    Business logic layer for sections and pages.

    Responsibilities:
        - add_page_and_process(): attach an image and derive all summaries
        - update_page_image(): replace an image and recompute
        - regenerate_section_summary(): re-derive a section summary from its pages
        - get_or_create_summary(): stored summary, or compute it lazily
        - replace_section_image(): single-image variant, invalidates the summary
    """

    TRANSCRIBE_PROMPT = " ".join([
        "You are extracting and translating handwritten class notes from an image.",
        "Return ONLY clean, readable text preserving math expressions and structure.",
        "Fix spelling, expand shorthand where obvious, and standardize notation.",
    ])

    PAGE_SUMMARY_PROMPT = "\n".join([
        "Summarize the following notes to help a student understand the concept better.",
        "Add helpful context rather than repeating the notes; the result is shown in a sidebar next to them.",
        "Include key steps, common pitfalls, and a tiny example if relevant.",
        "Keep it concise (<=5 bullet points). Write the bullet points only.",
        "Input:",
    ])

    SECTION_SUMMARY_PROMPT = "\n".join([
        "Topic: {topic}",
        "You are a helpful tutor. Using all the notes below, write a sidebar section that gives the student extra insight into what they are learning.",
        "Add helpful context rather than repeating the notes.",
        "Include key steps, common pitfalls, and a tiny example if relevant.",
        "Keep it concise (<=5 bullet points). Write the bullet points only.",
        "Input:",
    ])

    def __init__(
        self,
        store: NotesStore,
        text_generator: TextGenerator,
        vision_generator: VisionGenerator,
        pipeline: SummaryPipeline,
    ):
        self.store = store
        self.text_generator = text_generator
        self.vision_generator = vision_generator
        self.pipeline = pipeline

    # ── Page variant ──────────────────────────────────────────────────────

    async def add_page_and_process(self, section_id: str, image: PageImage) -> Page:
        """
        Attach a page image to a section and derive its text and summaries.

        Raises:
            NotFoundError: unknown section
            GenerationError: vision or text generator failed
            SummaryRejectedError: page or section summary failed validation twice
        """
        page = self.store.add_page(section_id, image)
        await self._process_page(section_id, page)
        return page

    async def update_page_image(self, section_id: str, page_id: str, image: PageImage) -> Page:
        """Replace a page's image, then re-transcribe and re-summarize."""
        page = self.store.replace_page_image(section_id, page_id, image)
        await self._process_page(section_id, page)
        return page

    async def regenerate_section_summary(self, section_id: str) -> str:
        """
        Re-derive the section summary from all page transcriptions.

        A single-image section is summarized from its image instead. A section
        with neither pages nor an image has an empty summary; no generator is
        called.
        """
        section = self.store.get_section(section_id)
        if not section.pages:
            if section.image is not None:
                return await self._summarize_section_image(section)
            self.store.set_summary(section_id, "")
            return ""

        source = self.store.build_section_source(section_id)
        prompt = self.SECTION_SUMMARY_PROMPT.format(topic=section.topic) + "\n" + source
        result = await self.pipeline.produce_summary(
            source, lambda: self.text_generator.generate(prompt)
        )
        self.store.set_summary(section_id, result.text)
        logger.info(
            "Section %s summary regenerated from %d pages (%d attempts)",
            section_id,
            len(section.pages),
            result.attempts,
        )
        return result.text

    async def _process_page(self, section_id: str, page: Page) -> None:
        page.transcription = await self.transcribe(page.image)

        prompt = self.PAGE_SUMMARY_PROMPT + "\n" + page.transcription
        result = await self.pipeline.produce_summary(
            page.transcription, lambda: self.text_generator.generate(prompt)
        )
        page.page_summary = result.text
        logger.info("Page %s processed: %d chars transcribed", page.id, len(page.transcription))

        await self.regenerate_section_summary(section_id)

    async def transcribe(self, image: PageImage) -> str:
        text = await self.vision_generator.generate(
            self.TRANSCRIBE_PROMPT,
            [image.to_image_part()],
            settings.vision_max_output_tokens,
        )
        return text.strip()

    # ── Single-image variant ──────────────────────────────────────────────

    def replace_section_image(self, section_id: str, image: PageImage) -> Section:
        return self.store.invalidate_summary_on_image_change(section_id, image)

    async def get_or_create_summary(self, section_id: str) -> str:
        """
        Return the stored summary, computing it first if it is absent.

        Recomputation happens lazily here after an image change dropped the
        previous summary.
        """
        stored = self.store.get_summary(section_id)
        if stored is not None:
            return stored
        return await self.regenerate_section_summary(section_id)

    async def _summarize_section_image(self, section: Section) -> str:
        transcription = await self.transcribe(section.image)
        prompt = (
            self.SECTION_SUMMARY_PROMPT.format(topic=section.topic) + "\n" + transcription
        )
        result = await self.pipeline.produce_summary(
            transcription, lambda: self.text_generator.generate(prompt)
        )
        self.store.set_summary(section.id, result.text)
        logger.info(
            "Section %s summary computed from its image (%d attempts)",
            section.id,
            result.attempts,
        )
        return result.text
