from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..errors import (
    StoreError,
    NotFoundError,
    EditConflictError,
    ValidationError,
    TokenConflictError,
)
from ..observability import EDIT_CONFLICT_TOTAL
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiError:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


STATUS_TO_ERROR_CODE: dict[int, str] = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_SERVER_ERROR",
}


def error_response(status_code: int, error: ApiError, headers: dict[str, str] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"code": error.code, "message": error.message}
    if error.details:
        body["details"] = error.details
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


def store_error_to_response(exc: StoreError) -> JSONResponse:
    """
    Maps the store's typed failures onto HTTP.

    Order matters: TokenConflictError is a ValidationError but is reported as
    409 so clients can tell a taken token from malformed input.
    """
    if isinstance(exc, NotFoundError):
        return error_response(
            status.HTTP_404_NOT_FOUND,
            ApiError("NOT_FOUND", "the requested resource could not be found"),
        )
    if isinstance(exc, EditConflictError):
        EDIT_CONFLICT_TOTAL.inc()
        return error_response(
            status.HTTP_409_CONFLICT,
            ApiError("EDIT_CONFLICT", "unable to update the record due to an edit conflict, please try again"),
        )
    if isinstance(exc, TokenConflictError):
        return error_response(
            status.HTTP_409_CONFLICT,
            ApiError("CONFLICT", "token already in use", exc.errors),
        )
    if isinstance(exc, ValidationError):
        return error_response(
            422,
            ApiError("VALIDATION_ERROR", "request failed validation", exc.errors),
        )
    # InternalError and anything unexpected: details already logged where detected
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ApiError("INTERNAL_SERVER_ERROR", "the server encountered a problem and could not process your request"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        if type(exc) is StoreError:
            logger.error(f"Unclassified store error on {request.method} {request.url.path}: {exc}")
        return store_error_to_response(exc)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "request failed"
        code = STATUS_TO_ERROR_CODE.get(exc.status_code, "ERROR")
        return error_response(exc.status_code, ApiError(code, message), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        # Key by field name; the leading "body"/"query" segment is dropped
        details = {
            ".".join(str(part) for part in (err["loc"][1:] or err["loc"])): err["msg"]
            for err in exc.errors()
        }
        return error_response(
            422,
            ApiError("VALIDATION_ERROR", "request failed validation", details),
        )
