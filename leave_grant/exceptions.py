from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

if TYPE_CHECKING:
    from collections.abc import Sequence

    from leave_grant.schemas.wizard import FieldIssue

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    issues: list[dict[str, Any]] | None = None
    retryable: bool | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        *,
        issues: Sequence[FieldIssue] = (),
        retryable: bool | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.issues = list(issues)
        self.retryable = retryable
        super().__init__(self.message)


class WizardStateError(AppError):
    """A wizard operation was invoked in a state that does not permit it.

    This is a caller bug (e.g. advancing past a failing step), not an input error.
    """

    def __init__(self, message: str, *, issues: Sequence[FieldIssue] = ()) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, issues=issues)


class DraftLockedError(AppError):
    """The draft is locked while a submit is awaiting persistence."""

    def __init__(self, message: str = "Draft is locked while a submit is in progress") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class UploadRejectedError(AppError):
    """An uploaded grant file was rejected as a whole."""

    def __init__(self, issues: Sequence[FieldIssue]) -> None:
        super().__init__(
            f"Upload rejected with {len(issues)} issue(s)",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            issues=issues,
        )


class SubmissionFailedError(AppError):
    """The persistence collaborator did not accept the grant."""

    def __init__(self, message: str, status_code: int, *, retryable: bool) -> None:
        super().__init__(message, status_code=status_code, retryable=retryable)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            issues=[issue.model_dump(mode="json", exclude_none=True) for issue in exc.issues] or None,
            retryable=exc.retryable,
        ).model_dump(exclude_none=True),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Request validation failed on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(exclude_none=True),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
