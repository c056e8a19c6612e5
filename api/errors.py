"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    ClinicNotResolvedError,
    EmailError,
    IntervalError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)


def _json_error(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    field: str | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request, field).model_dump(mode="json"),
    )


def _validation_message(errors: list[dict]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


def register_error_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers on the app.

    Starlette picks the handler for the most specific class in the
    exception's MRO, so NotFoundError wins over PersistenceError and the
    domain ValueError subclasses win over the plain ValueError handler.
    """

    @app.exception_handler(IntervalError)
    async def interval_error_handler(request: Request, exc: IntervalError):
        return _json_error(request, 400, ErrorCodes.INVALID_TIME_RANGE, str(exc), "end_time")

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return _json_error(request, 400, ErrorCodes.VALIDATION_ERROR, str(exc), exc.field)

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _json_error(
            request, 422, ErrorCodes.VALIDATION_ERROR, _validation_message(exc.errors())
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _json_error(
            request, 422, ErrorCodes.VALIDATION_ERROR, _validation_message(exc.errors())
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _json_error(request, 404, ErrorCodes.NOT_FOUND, str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Persistence failure on {request.url.path}: {exc}")
        return _json_error(
            request, 503, ErrorCodes.PERSISTENCE_ERROR, "The clinic database is unavailable"
        )

    @app.exception_handler(EmailError)
    async def email_error_handler(request: Request, exc: EmailError):
        return _json_error(request, 502, ErrorCodes.EMAIL_SEND_FAILED, str(exc))

    @app.exception_handler(ClinicNotResolvedError)
    async def clinic_not_resolved_handler(request: Request, exc: ClinicNotResolvedError):
        return _json_error(request, 403, ErrorCodes.CLINIC_NOT_RESOLVED, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _json_error(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(
            request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred"
        )
