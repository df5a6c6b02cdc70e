"""
Error taxonomy and the JSON error envelope.

Services raise subclasses of ``AppError``; every error reaching a client has
the shape ``{"error": {"code", "message", "status"}}``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from teamtasks_shared.schemas.common import ErrorCode

log = structlog.get_logger()


class AppError(HTTPException):
    status_code: int = 500
    code: ErrorCode = ErrorCode.SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(AppError):
    status_code = 422
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid input"


class ConflictError(AppError):
    status_code = 409
    code = ErrorCode.CONFLICT
    default_message = "Resource already exists"


class ForbiddenError(AppError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Forbidden"


class UnauthorizedError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Authentication required"


class InvalidCredentialsError(UnauthorizedError):
    default_message = "Invalid username or password"


class NotFoundError(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class ServerError(AppError):
    pass


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def error_response(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": {"code": code, "message": message, "status": status}},
    )


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.server_error", path=request.url.path, message=exc.message)
    return error_response(exc.status_code, exc.code.value, exc.message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    fallback = ErrorCode.VALIDATION_ERROR if exc.status_code < 500 else ErrorCode.SERVER_ERROR
    code = _STATUS_CODES.get(exc.status_code, fallback)
    return error_response(exc.status_code, code.value, str(exc.detail))


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = ValidationError.default_message
    return error_response(422, ErrorCode.VALIDATION_ERROR.value, message)


def register_error_handlers(app: FastAPI) -> None:
    """Route every expected failure through the error envelope."""
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
