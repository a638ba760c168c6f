from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Outcome of a command: ``ok`` with ``data``, or a failure ``code`` and
    ``message``. Expected business failures are always reported this way."""

    ok: bool
    message: str
    code: Optional[str] = None
    data: Any = None

    @classmethod
    def success(cls, message: str, data: Any = None) -> "CommandResult":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, code: str, message: str) -> "CommandResult":
        return cls(ok=False, message=message, code=code)
