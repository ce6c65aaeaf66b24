"""Error kinds raised by services and the uniform JSON error responder.

Services raise ``AppError`` subclasses; the handlers registered here turn
them into ``{"success": false, "message": ...}`` with the matching status.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class DuplicateError(AppError):
    status_code = 400
    default_message = "Duplicate field value entered"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authorized to access this route"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Not authorized to perform this action"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class UnhandledError(AppError):
    status_code = 500


def error_body(message: str, errors: list[dict] | None = None) -> dict:
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def format_validation_errors(raw: list[dict]) -> list[dict]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs."""
    out = []
    for err in raw:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        out.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return out


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", format_validation_errors(exc.errors())),
    )


async def _model_validation_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", format_validation_errors(exc.errors())),
    )


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = UnhandledError()
    return JSONResponse(status_code=err.status_code, content=error_body(err.message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(PydanticValidationError, _model_validation_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
