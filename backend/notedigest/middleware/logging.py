"""
NoteDigest Backend — Access Log Middleware
===========================================

What:  One log line per API request: method, path, status, duration, plus the
       section and page it addressed.
Why:   Requests that run the summary pipeline are dominated by model latency.
       Tagging them makes slow uploads (a retry roughly doubles the time) and
       rejected summaries (422) easy to pick out per section.
How:   Level follows the outcome:
           5xx, 503 included → ERROR
           422 (summary rejected twice) and other 4xx → WARNING
           everything else → INFO

Not logged: /health checks, and request bodies (note images).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notedigest.middleware.request_id import note_ids_from_path, request_id_var

logger = logging.getLogger("notedigest.access")


def runs_generation(method: str, path: str) -> bool:
    """Whether the request calls the generators rather than only the store."""
    if not path.startswith("/api/sections/"):
        return False
    if path.endswith("/summary"):
        return True
    return method in ("POST", "PUT") and "/pages" in path


def access_log_level(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        method = request.method
        status = response.status_code
        section_id, page_id = note_ids_from_path(path)
        generating = runs_generation(method, path)

        logger.log(
            access_log_level(status),
            "%s %s %d %.1fms [%s] section=%s page=%s%s",
            method,
            path,
            status,
            duration_ms,
            request_id_var.get(""),
            section_id or "-",
            page_id or "-",
            " (generation)" if generating else "",
            extra={
                "request_id": request_id_var.get(""),
                "section_id": section_id,
                "page_id": page_id,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "generation": generating,
            },
        )
        return response
