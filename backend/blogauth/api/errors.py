"""Uniform error envelope for every failure the API reports"""

from typing import Any, Dict, Optional
import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from blogauth.core.exceptions import BaseAPIException
from blogauth.schemas.response import ErrorResponse

logger = logging.getLogger(__name__)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Build ``{success, error, code, details, path, timestamp}``

    ``code`` is the stable machine-readable reason; clients branch on it
    (``token_expired`` triggers a refresh, ``invalid_signature`` a logout).
    """
    body = ErrorResponse(error=message, code=code, details=details or {}, path=request.url.path)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def handle_api_exception(request: Request, exc: BaseAPIException):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}",
    )

    headers = None
    if "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}
    return error_response(request, exc.status_code, exc.message, exc.code, exc.details, headers)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    # Request bodies are never echoed back; they may contain passwords
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.info(f"Rejected malformed request to {request.url.path}: {[e['field'] for e in errors]}")
    return error_response(
        request, status.HTTP_400_BAD_REQUEST, "Validation failed", "validation_error", {"errors": errors}
    )


async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error(
        f"Database failure on {request.method} {request.url.path}: {exc}",
        extra={"traceback": traceback.format_exc()},
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
        "database_error",
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.critical(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}",
        extra={"traceback": traceback.format_exc()},
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred.",
        "internal_error",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_api_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
