# Routes package init
"""
NoteDigest Backend — API Routes Package
========================================

Route Inventory:
    - sections.py:  /api/sections, /api/sections/{id}, pages, image, summary
                    /api/summaries
    - health.py:    GET /health

Routes stay thin: extract request data, call NotesStore / NoteService,
return a schema. Errors are rendered by the global handlers in main.py.
"""
