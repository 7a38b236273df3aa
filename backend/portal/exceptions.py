from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)


class NotAuthorizedError(AppError):
    """The caller is not the party allowed to perform this action."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN, context=context)


class InvalidTransitionError(AppError):
    """The request is not in a state that accepts the action, or required input is missing."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, context=context)


class StaleStateError(AppError):
    """The stored request moved on since it was read; reload and retry.

    ``current`` holds the snapshot that won, so callers can show it again
    instead of failing outright.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None, current: Any = None) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, context=context)
        self.current = current


class NotFoundError(AppError):
    """Unknown request or user."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, context=context)


class UnavailableError(AppError):
    """The persistence layer failed underneath an operation."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, context=context)


def _json_context(exc: AppError) -> dict[str, Any] | None:
    context: dict[str, Any] = jsonable_encoder(exc.context)
    if isinstance(exc, StaleStateError) and exc.current is not None:
        context["current"] = exc.current.model_dump(mode="json")
    return context or None


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            context=_json_context(exc),
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
