"""
NoteDigest Backend — Application Package Initializer
=====================================================

What: Marks the `notedigest` directory as a Python package.
Why:  Enables module imports like `from notedigest.config import settings`.
Who:  Used by uvicorn (`notedigest.main:app`), the CLI entry point, and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │       Routes (API) / CLI            │  ← HTTP and terminal concerns only
    ├─────────────────────────────────────┤
    │     NoteService (orchestration)     │  ← transcribe → summarize → store
    ├─────────────────────────────────────┤
    │  SummaryPipeline / SummaryValidator │  ← accept, retry once, or fail
    ├─────────────────────────────────────┤
    │   NotesStore (in-memory state)      │  ← sections, pages, summaries
    └─────────────────────────────────────┘

    Generators (Gemini text + vision) sit beside the stack as explicit
    collaborators handed to NoteService.
"""

__version__ = "1.0.0"
