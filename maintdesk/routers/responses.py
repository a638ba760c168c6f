from __future__ import annotations

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status

from ..core.errors import ERROR_STATUS, DeskError, ErrorEnvelope
from ..schemas.commands import CommandResult


def error_response(exc: DeskError) -> ErrorEnvelope:
    return ErrorEnvelope(status_code=exc.http_status, code=exc.code, message=exc.message)


def command_response(result: CommandResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Map a command outcome onto HTTP: the result itself on success, the
    error envelope with the matching status on failure."""

    if result.ok:
        return JSONResponse(jsonable_encoder(result), status_code=success_status)
    code = result.code or "desk_error"
    if code == "validation_error":
        http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        http_status = ERROR_STATUS.get(code, status.HTTP_400_BAD_REQUEST)
    return ErrorEnvelope(status_code=http_status, code=code, message=result.message)
