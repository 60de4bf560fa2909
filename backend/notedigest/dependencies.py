"""
NoteDigest Backend — FastAPI Dependencies
==========================================

What:  Accessors for the per-application NotesStore and NoteService.
Why:   Both are created once in the lifespan and kept on app.state; routes
       receive them through Depends() so tests can swap in stubs with
       app.dependency_overrides.
"""

from fastapi import Request

from notedigest.services.note_service import NoteService
from notedigest.services.notes_store import NotesStore


def get_store(request: Request) -> NotesStore:
    return request.app.state.store


def get_note_service(request: Request) -> NoteService:
    return request.app.state.note_service
