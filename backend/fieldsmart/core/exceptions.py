"""Domain errors and the handlers that render them as ``{"error": {...}}`` envelopes."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base for errors a client can act on; carries the envelope fields."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


class NotFoundError(AppError):
    """Missing rows and rows of another tenant look the same: ``<RESOURCE>_NOT_FOUND``."""

    def __init__(self, resource: str, resource_id: str):
        code = resource.upper().replace(" ", "_") + "_NOT_FOUND"
        super().__init__(code, f"{resource} with ID {resource_id} was not found.", 404)


class ConflictError(AppError):
    def __init__(self, message: str):
        super().__init__("CONFLICT", message, 409)


class ForbiddenError(AppError):
    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__("FORBIDDEN", message, 403)


class ValidationError(AppError):
    """422 whose ``details`` maps field keys to messages."""

    def __init__(self, message: str, details: dict[str, str] | None = None):
        super().__init__("VALIDATION_ERROR", message, 422, details)


def error_response(
    status_code: int,
    code: str,
    message: Any,
    details: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details}},
        headers=headers,
    )


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    # "body.options.0.name" style keys; the leading "body" is kept so query errors stay distinct
    details = {".".join(str(part) for part in err["loc"]): err["msg"] for err in exc.errors()}
    return error_response(422, "VALIDATION_ERROR", "Request body is invalid.", details)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        exc.status_code, "HTTP_ERROR", exc.detail, headers=getattr(exc, "headers", None)
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred.")


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class, handler in (
        (AppError, handle_app_error),
        (RequestValidationError, handle_request_validation),
        (StarletteHTTPException, handle_http_exception),
        (Exception, handle_unexpected),
    ):
        app.add_exception_handler(exc_class, handler)
