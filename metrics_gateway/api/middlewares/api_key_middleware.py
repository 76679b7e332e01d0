"""
API key middleware

Rejects unauthenticated requests before routing, so the check covers every
path and method. OPTIONS requests never get this far; PreflightMiddleware
answers them.
"""

import logging
from typing import Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from metrics_gateway.api.auth.api_key import API_KEY_HEADER, is_authorized
from metrics_gateway.core.errors import UnauthorizedError

# Configure logging
logger = logging.getLogger(__name__)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Middleware enforcing the static API key
    """

    def __init__(self, app: ASGIApp, api_key: Optional[str] = None):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next):
        if not is_authorized(request.headers.get(API_KEY_HEADER), self.api_key):
            error = UnauthorizedError()
            logger.warning(
                f"Rejected {request.method} {request.url.path}: {error.message}"
            )
            return JSONResponse(status_code=error.status_code, content=error.to_dict())

        return await call_next(request)
