"""
NoteDigest Backend — Request Context Middleware
================================================

What:  Assigns an ID to each request and records which section and page it
       targets, so every log line of the request can be tied back to them.
Why:   One page upload can cost up to five model calls (transcription plus two
       summaries with one retry each); the rejection warnings of those calls
       are only useful when they name the request and the section.
How:   ContextVars hold the request ID and the section/page IDs parsed from
       the path. The request ID is echoed in the X-Request-ID header.

Client-supplied IDs are accepted only when they are short and made of
letters, digits and dashes; anything else is replaced by a fresh ID so
arbitrary header content never reaches the logs.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
section_id_var: ContextVar[Optional[str]] = ContextVar("section_id", default=None)
page_id_var: ContextVar[Optional[str]] = ContextVar("page_id", default=None)

_CLIENT_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9-]{1,64}$")
_NOTE_PATH_RE = re.compile(r"^/api/sections/(?P<section>[^/]+)(?:/pages/(?P<page>[^/]+))?")


def note_ids_from_path(path: str) -> Tuple[Optional[str], Optional[str]]:
    """(section_id, page_id) addressed by a /api/sections/... path."""
    match = _NOTE_PATH_RE.match(path)
    if match is None:
        return None, None
    return match.group("section"), match.group("page")


def resolve_request_id(header_value: Optional[str]) -> str:
    if header_value and _CLIENT_REQUEST_ID_RE.match(header_value):
        return header_value
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get("X-Request-ID"))
        section_id, page_id = note_ids_from_path(request.url.path)

        request_id_var.set(rid)
        section_id_var.set(section_id)
        page_id_var.set(page_id)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
