"""Exception handlers that render every failure as one JSON error envelope."""

import traceback
from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkwell.config import settings
from inkwell.core.exceptions import AppException

logger = structlog.get_logger(__name__)


def _error_body(
    request: Request, error: str, code: str, message: Any, **extra: Any
) -> dict[str, Any]:
    body = {"error": error, "code": code, "message": message, "path": str(request.url)}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an AppException with its stable ``code``; 401s carry a Bearer challenge."""
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code, message=exc.message, path=request.url.path)
    else:
        logger.info("request_rejected", code=exc.code, status_code=exc.status_code)

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            request, exc.__class__.__name__, exc.code, exc.message, details=exc.details
        ),
        headers=headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    # Unmatched routes and method mismatches raised by Starlette itself
    code = "ROUTE_NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTPException", code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            request,
            "ValidationError",
            "VALIDATION_ERROR",
            "Request validation failed",
            details=jsonable_encoder(exc.errors()),
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions without leaking internals.

    A traceback is included outside production.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )

    trace = None
    if not settings.is_production:
        trace = traceback.format_exception(type(exc), exc, exc.__traceback__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            "InternalServerError",
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            traceback=trace,
        ),
    )
