from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from ..core.config import settings
from ..core.enums import Role, normalize_role
from ..middlewares import actor_ctx_var


class ActorContext:
    def __init__(self, *, role: Role, source: str) -> None:
        self.role = role
        self.source = source


def _default_role() -> Role:
    return normalize_role(settings.DEFAULT_ROLE)


def _set_actor(request: Request, role: Role) -> None:
    actor_ctx_var.set(role.value)
    request.state.actor = role.value


async def current_actor(
    request: Request,
    x_role: str | None = Header(default=None, alias="X-Role"),
) -> ActorContext:
    """Resolve the acting role from ``X-Role`` (a role name or its label).

    The role selects which commands are allowed; it is not an identity.
    """

    raw = (x_role or "").strip()
    if not raw:
        role = _default_role()
        _set_actor(request, role)
        return ActorContext(role=role, source="default")
    try:
        role = normalize_role(raw)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    _set_actor(request, role)
    return ActorContext(role=role, source="header")
