# Middleware package init
"""
NoteDigest Backend — Middleware Package
========================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: correlation ID stored in a ContextVar for every log line
    2. Logging: method, path, status and duration, tagged with the request ID
"""
