"""
NoteDigest Backend — Section Route Handlers
============================================

What:  HTTP surface for sections, pages and summaries.
Why:   The frontend shows pages next to a sidebar of validated summaries.
How:   Uploads are validated by ImageService; processing is delegated to
       NoteService; plain lookups go straight to NotesStore.

Endpoints:
    POST /api/sections                          create section
    GET  /api/sections                          list sections
    GET  /api/sections/{id}                     section detail
    POST /api/sections/{id}/pages               add page image, transcribe, summarize
    PUT  /api/sections/{id}/pages/{page_id}     replace page image, recompute
    PUT  /api/sections/{id}/image               single-image variant; invalidates summary
    GET  /api/sections/{id}/summary             stored or lazily computed summary
    POST /api/sections/{id}/summary             regenerate section summary
    GET  /api/summaries                         section_id → summary snapshot
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from notedigest.dependencies import get_note_service, get_store
from notedigest.models.section import PageImage
from notedigest.schemas.section import (
    ErrorResponse,
    PageResponse,
    SectionCreate,
    SectionResponse,
    SummariesResponse,
    SummaryResponse,
)
from notedigest.services.image_service import image_service
from notedigest.services.note_service import NoteService
from notedigest.services.notes_store import NotesStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Sections"])

# Error responses shared by every endpoint that runs the summary pipeline
_GENERATION_RESPONSES = {
    404: {"description": "Section or page not found", "model": ErrorResponse},
    422: {"description": "Summary rejected twice by validation", "model": ErrorResponse},
    503: {"description": "AI service unavailable", "model": ErrorResponse},
}


async def _read_upload(file: UploadFile) -> PageImage:
    try:
        content = await file.read()
        logger.info(
            "Received image upload: filename=%s, size=%d bytes",
            file.filename or "unknown",
            len(content),
        )
        return image_service.validate_upload(
            filename=file.filename or "upload.png",
            content=content,
            content_length=file.size,
        )
    finally:
        await file.close()


def _section_response(store: NotesStore, section_id: str) -> SectionResponse:
    section = store.get_section(section_id)
    return SectionResponse.from_section(section, store.get_summary(section_id))


@router.post("/sections", status_code=201, response_model=SectionResponse)
async def create_section(
    body: SectionCreate,
    store: NotesStore = Depends(get_store),
) -> SectionResponse:
    section = store.create_section(body.topic)
    return SectionResponse.from_section(section, None)


@router.get("/sections", response_model=List[SectionResponse])
async def list_sections(store: NotesStore = Depends(get_store)) -> List[SectionResponse]:
    return [
        SectionResponse.from_section(s, store.get_summary(s.id)) for s in store.list_sections()
    ]


@router.get(
    "/sections/{section_id}",
    response_model=SectionResponse,
    responses={404: {"description": "Section not found", "model": ErrorResponse}},
)
async def get_section(section_id: str, store: NotesStore = Depends(get_store)) -> SectionResponse:
    return _section_response(store, section_id)


@router.post(
    "/sections/{section_id}/pages",
    status_code=201,
    response_model=PageResponse,
    responses={400: {"description": "Invalid image", "model": ErrorResponse}, **_GENERATION_RESPONSES},
    summary="Add a handwritten page and summarize it",
)
async def add_page(
    section_id: str,
    file: UploadFile = File(..., description="Handwritten page image (PNG or JPEG)"),
    store: NotesStore = Depends(get_store),
    service: NoteService = Depends(get_note_service),
) -> PageResponse:
    """
    Transcribes the page, produces a validated page summary, then re-derives
    the section summary over all pages. Each summary may take one retry.
    """
    # Unknown sections are rejected before the upload is parsed
    store.get_section(section_id)
    image = await _read_upload(file)
    page = await service.add_page_and_process(section_id, image)
    return PageResponse.from_page(page)


@router.put(
    "/sections/{section_id}/pages/{page_id}",
    response_model=PageResponse,
    responses={400: {"description": "Invalid image", "model": ErrorResponse}, **_GENERATION_RESPONSES},
    summary="Replace a page image and recompute its summaries",
)
async def replace_page_image(
    section_id: str,
    page_id: str,
    file: UploadFile = File(...),
    store: NotesStore = Depends(get_store),
    service: NoteService = Depends(get_note_service),
) -> PageResponse:
    store.get_page(section_id, page_id)
    image = await _read_upload(file)
    page = await service.update_page_image(section_id, page_id, image)
    return PageResponse.from_page(page)


@router.put(
    "/sections/{section_id}/image",
    response_model=SectionResponse,
    responses={400: {"description": "Invalid image", "model": ErrorResponse}},
    summary="Set the single image of a section",
)
async def replace_section_image(
    section_id: str,
    file: UploadFile = File(...),
    store: NotesStore = Depends(get_store),
    service: NoteService = Depends(get_note_service),
) -> SectionResponse:
    """
    Stores the image and drops any summary; the next GET of the summary
    recomputes it.
    """
    store.get_section(section_id)
    image = await _read_upload(file)
    service.replace_section_image(section_id, image)
    return _section_response(store, section_id)


@router.get(
    "/sections/{section_id}/summary",
    response_model=SummaryResponse,
    responses=_GENERATION_RESPONSES,
)
async def get_summary(
    section_id: str,
    service: NoteService = Depends(get_note_service),
) -> SummaryResponse:
    summary = await service.get_or_create_summary(section_id)
    return SummaryResponse(section_id=section_id, summary=summary)


@router.post(
    "/sections/{section_id}/summary",
    response_model=SummaryResponse,
    responses=_GENERATION_RESPONSES,
)
async def regenerate_summary(
    section_id: str,
    service: NoteService = Depends(get_note_service),
) -> SummaryResponse:
    summary = await service.regenerate_section_summary(section_id)
    return SummaryResponse(section_id=section_id, summary=summary)


@router.get("/summaries", response_model=SummariesResponse)
async def list_summaries(store: NotesStore = Depends(get_store)) -> SummariesResponse:
    return SummariesResponse(summaries=store.list_summaries())
