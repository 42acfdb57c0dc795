from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Request, status
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
        self.context = context
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed input, rejected before any state change."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, context=context)


class NotFound(AppError):
    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, context=context)


class Conflict(AppError):
    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, context=context)


class Unauthorized(AppError):
    """The actor lacks the role a transition requires."""

    def __init__(self, message: str, *, required_role: str, current_status: str | None = None) -> None:
        self.required_role = required_role
        self.current_status = current_status
        super().__init__(
            message,
            status_code=status.HTTP_403_FORBIDDEN,
            context={"required_role": required_role, "current_status": current_status},
        )


class InvalidTransition(AppError):
    """The target status is not reachable from the current one."""

    def __init__(self, current_status: str, target_status: str, resource_type: str) -> None:
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot move a {resource_type} request from {current_status} to {target_status}",
            status_code=status.HTTP_409_CONFLICT,
            context={
                "current_status": current_status,
                "target_status": target_status,
                "resource_type": resource_type,
            },
        )


class InsufficientBalance(AppError):
    """The ledger would go negative."""

    def __init__(self, remaining: Decimal, requested: Decimal, account: dict[str, Any] | None = None) -> None:
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            f"Insufficient balance: {remaining} remaining, {requested} requested",
            status_code=status.HTTP_400_BAD_REQUEST,
            context={"remaining": str(remaining), "requested": str(requested), "account": account},
        )


class ConsistencyWarning(UserWarning):
    """A reversal tried to drive consumed below zero and was clamped.

    Logged, never raised: the reversal still completes.
    """


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            context=exc.context,
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
