"""Exception handlers mapping application errors to JSON responses."""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..core.config import settings
from ..exceptions import NotesError, ToolExecutionError, UpstreamError


logger = logging.getLogger(__name__)


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """
    Handle Pydantic validation errors with per-field details.

    Args:
        request: FastAPI request
        exc: Validation error

    Returns:
        422 JSON response listing each failing field
    """
    errors = []
    for error in exc.errors():
        field_path = ".".join(str(x) for x in error["loc"] if x != "body")
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": "Validation Error",
            "message": "The request data failed validation",
            "details": errors,
        },
    )


async def upstream_exception_handler(
    request: Request,
    exc: Union[UpstreamError, ToolExecutionError],
) -> JSONResponse:
    """Model API and tool backend failures surface as 502 Bad Gateway."""
    logger.error(f"Upstream error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "success": False,
            "error": "Upstream Error",
            "message": str(exc),
        },
    )


async def notes_exception_handler(request: Request, exc: NotesError) -> JSONResponse:
    """
    Notion failures surface as 502, except requests that can never succeed
    as sent (missing configuration, no shared page), which are 400.
    """
    status_code = status.HTTP_400_BAD_REQUEST if exc.status_code == 400 else status.HTTP_502_BAD_GATEWAY
    logger.warning(f"Notes error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": "Notes Error",
            "message": str(exc),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "details": str(exc) if settings.DEBUG else None,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP exceptions in the same envelope as the other handlers."""
    detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": detail if isinstance(detail, str) else detail.get("error", "Error"),
            "message": detail if isinstance(detail, str) else detail.get("message", ""),
            "details": detail if isinstance(detail, dict) else None,
        },
        headers=getattr(exc, "headers", None),
    )
