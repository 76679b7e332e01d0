"""
Preflight middleware

Answers every OPTIONS request with an empty 200, before authentication and
before CORS processing. Configured browser origins additionally receive the
``Access-Control-Allow-*`` headers they need to follow up with a GET.
"""

from typing import Dict, List, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from metrics_gateway.api.auth.api_key import API_KEY_HEADER

ALLOWED_METHODS = "GET, OPTIONS"
ALLOWED_HEADERS = f"{API_KEY_HEADER}, Content-Type"
PREFLIGHT_MAX_AGE = "600"


class PreflightMiddleware(BaseHTTPMiddleware):

    def __init__(self, app: ASGIApp, allow_origins: Optional[List[str]] = None):
        super().__init__(app)
        self.allow_origins = list(allow_origins or [])

    def preflight_headers(self, origin: Optional[str]) -> Dict[str, str]:
        """CORS headers for an origin, empty when it is not allowed"""
        if not origin:
            return {}
        if "*" in self.allow_origins:
            allowed = "*"
        elif origin in self.allow_origins:
            allowed = origin
        else:
            return {}

        return {
            "Access-Control-Allow-Origin": allowed,
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Access-Control-Max-Age": PREFLIGHT_MAX_AGE,
            "Vary": "Origin",
        }

    async def dispatch(self, request: Request, call_next):
        if request.method != "OPTIONS":
            return await call_next(request)

        return Response(
            status_code=200,
            headers=self.preflight_headers(request.headers.get("origin")),
        )
