"""
Error handling for the API

Turns exceptions into the flat ``{error, message}`` response body.
"""

from fastapi import Request, status, FastAPI
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
import logging
import traceback

from metrics_gateway.core.errors import GatewayError

# Configure logging
logger = logging.getLogger(__name__)

_HTTP_ERROR_KINDS = {
    404: "NotFound",
    405: "MethodNotAllowed",
}


async def gateway_exception_handler(request: Request, exc: GatewayError):
    """
    Handle errors raised by the metric services
    """
    if exc.status_code >= 500:
        logger.error(f"API Error: {exc.code} {exc.message} - URL: {request.url.path}")
    else:
        logger.warning(f"API Error: {exc.code} {exc.message} - URL: {request.url.path}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle routing errors (unknown path, wrong method) with the same body format
    """
    logger.warning(f"HTTP error: {exc.status_code} {exc.detail} - URL: {request.url.path}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": _HTTP_ERROR_KINDS.get(exc.status_code, "HttpError"),
            "message": str(exc.detail),
        },
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler for unhandled exceptions
    """
    logger.error(f"Unhandled exception: {str(exc)} - URL: {request.url.path}")
    logger.error(traceback.format_exc())

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "ServerError", "message": "Internal server error"},
    )


def add_exception_handlers(app: FastAPI):
    """
    Add all exception handlers to the FastAPI app

    Args:
        app: FastAPI application
    """
    app.add_exception_handler(GatewayError, gateway_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
