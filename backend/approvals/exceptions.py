import logging
from collections.abc import Sequence
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    message: str
    error: str


def format_validation_errors(errors: Sequence[Any]) -> str:
    """Render pydantic error dicts as ``loc: msg`` pairs joined by semicolons."""
    parts = []
    for error in errors:
        location = ".".join(str(p) for p in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class AppError(Exception):
    """Base application exception."""

    kind = "AppError"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Workflow rule violations (4xx)
# ---------------------------------------------------------------------------


class WorkflowValidationError(AppError):
    """Malformed or missing input, or a payload that clashes with an existing request."""

    kind = "ValidationError"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class StageMismatchError(AppError):
    kind = "StageMismatch"

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Request is not awaiting {stage} approval", status_code=status.HTTP_400_BAD_REQUEST)


class AlreadyActedError(AppError):
    kind = "AlreadyActed"

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"{stage} has already acted on this request", status_code=status.HTTP_400_BAD_REQUEST)


class EditWindowClosedError(AppError):
    kind = "EditWindowClosed"

    def __init__(self, message: str = "Request can no longer be edited once HR has acted on it") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class RequestClosedError(AppError):
    """The request is in a status that does not allow the operation."""

    kind = "RequestClosed"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class PartialEligibilityError(AppError):
    """Raised when some members of a bulk action are not at the target stage."""

    kind = "PartialEligibility"

    def __init__(self, count: int, stage: str, action: str) -> None:
        self.count = count
        super().__init__(
            f"{count} requests are not eligible for {stage} {action}. "
            "They may already be processed or at a different stage.",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class UnauthorizedError(AppError):
    kind = "Unauthorized"

    def __init__(self, message: str, count: int | None = None) -> None:
        self.count = count
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    kind = "NotFound"

    def __init__(self, message: str = "Request not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------


class StoreConflictError(AppError):
    """A conditional write lost a race. Safe to retry."""

    kind = "StoreConflict"

    def __init__(self, message: str = "Request was modified concurrently") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class StoreUnavailableError(AppError):
    """The store timed out or failed. Retry with backoff."""

    kind = "StoreUnavailable"

    def __init__(self, message: str = "Request store is unavailable, please retry") -> None:
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message, error=exc.kind).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            message=format_validation_errors(exc.errors()), error=WorkflowValidationError.kind
        ).model_dump(),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(message="Internal server error", error=type(exc).__name__).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
