"""
Access logging middleware

Writes one line per request once the response status is known. Query
strings are logged, headers never are since they carry the API key.
"""

import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

# Configure logging
logger = logging.getLogger(__name__)


def request_target(request: Request) -> str:
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id and logs its outcome

    A caller-supplied ``X-Request-ID`` is reused so gateway lines can be
    joined with the dashboard's own logs.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        client = request.client.host if request.client else "-"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.exception(
                f"[{request_id}] {client} {request.method} {request_target(request)} "
                f"raised after {elapsed_ms:.1f}ms"
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"[{request_id}] {client} {request.method} {request_target(request)} "
            f"-> {response.status_code} in {elapsed_ms:.1f}ms",
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
