"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Download redemption raises one distinct subclass per failure so the
presentation layer can render a precise message without string matching.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class ServiceUnavailableError(AppError):
    status_code = 503
    error_code = "service_unavailable"


# ── Download redemption ──────────────────────────────────────────────────────


class InvalidTokenError(ValidationError):
    error_code = "invalid_token"

    def __init__(self, message: str = "Invalid download token", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ExpiredTokenError(AppError):
    status_code = 410
    error_code = "token_expired"

    def __init__(
        self,
        message: str = "Download token has expired. Please request a new download link.",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


class TokenAlreadyUsedError(ConflictError):
    error_code = "token_already_used"

    def __init__(
        self,
        message: str = "This download link was already used",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


class GateInactiveError(ForbiddenError):
    error_code = "gate_inactive"

    def __init__(
        self, message: str = "This download gate is no longer active", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class GateExpiredError(ForbiddenError):
    error_code = "gate_expired"

    def __init__(self, message: str = "This download gate has expired", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class DownloadNotRecordedError(AppError):
    """The completion flag flipped but the gate counter could not be incremented."""

    error_code = "download_not_recorded"

    def __init__(
        self, message: str = "Download could not be recorded, please retry", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
