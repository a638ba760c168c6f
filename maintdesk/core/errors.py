from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class DeskError(Exception):
    """Base class for expected business failures.

    These never escape the command layer: it rolls the session back and turns
    them into a failed ``CommandResult``.
    """

    code = "desk_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(DeskError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class InsufficientStock(DeskError):
    code = "insufficient_stock"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(f"Stock insuficiente. Disponible: {available}. Requerido: {requested}.")
        self.available = available
        self.requested = requested


class InvalidState(DeskError):
    code = "invalid_state"
    http_status = status.HTTP_409_CONFLICT


class PermissionDenied(DeskError):
    code = "permission_denied"
    http_status = status.HTTP_403_FORBIDDEN


ERROR_STATUS = {
    cls.code: cls.http_status for cls in (NotFound, InsufficientStock, InvalidState, PermissionDenied)
}


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, code="http_error", message=message, details=details)


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": exc.errors()},
        )
    raise exc


__all__ = [
    "DeskError",
    "ERROR_STATUS",
    "ErrorEnvelope",
    "InsufficientStock",
    "InvalidState",
    "NotFound",
    "PermissionDenied",
    "http_exception_handler",
    "validation_exception_handler",
]
