"""
Request ID middleware for request correlation and auth auditing.

- Accepts a well-formed X-Request-ID from the client, otherwise generates one
- Stores it in request.state, the response headers and the logging context var
- Logs every rejected authentication (401) without touching header values
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Client IDs end up verbatim in every log line of the request
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,64}")

# bcrypt dominates auth latency
SLOW_REQUEST_MS = 2000


def resolve_request_id(incoming: Optional[str]) -> str:
    """Client-supplied ID if it is safe to log, otherwise a new UUID."""
    if incoming and _REQUEST_ID_PATTERN.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Assign a request ID to each request and audit failed authentication.

    401 responses are logged at INFO with method and path only. The
    Authorization header and request body are never read here.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            response.headers[REQUEST_ID_HEADER] = request_id

            if response.status_code == 401:
                logger.info(
                    "Authentication rejected",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "had_bearer": "authorization" in request.headers,
                    },
                )

            if duration_ms > SLOW_REQUEST_MS:
                logger.warning(
                    "Slow request",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": duration_ms,
                    },
                )

            return response
        finally:
            request_id_var.reset(token)
