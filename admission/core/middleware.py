"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request ID so admission log events
(``rate_limit.*``) can be joined with access logs.

The middleware:
- Accepts the incoming request ID header or generates a UUID
- Stores request_id in contextvars for the rest of the request
- Echoes request_id and the total duration in response headers
- Clears context after the request completes

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from admission.core.config import settings
from admission.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a correlation ID to the request and echo it on the response.

    Must be registered after (i.e. outside) the rate limit middleware so
    rejected and indeterminate responses carry the ID too.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` (configurable
            via ``LOG_REQUEST_ID_HEADER``) and ``X-Request-Duration-ms`` headers.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
