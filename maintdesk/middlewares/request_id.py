from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
actor_ctx_var: ContextVar[str | None] = ContextVar("actor_role", default=None)
logger = logging.getLogger("maintdesk.request")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and the acting role, and log
    one ``request.completed`` line per request."""

    def __init__(self, app, header_name: str = "X-Request-ID", role_header: str = "X-Role") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name
        self.role_header = role_header

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        # Raw header until the actor dependency has validated it.
        role_hint = (request.headers.get(self.role_header) or "").strip() or None
        id_token = request_id_ctx_var.set(request_id)
        actor_token = actor_ctx_var.set(role_hint)
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.failed",
                extra={"extra_data": {"method": request.method, "path": request.url.path}},
            )
            raise
        finally:
            request_id_ctx_var.reset(id_token)
            actor_ctx_var.reset(actor_token)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{elapsed_ms:.2f}ms")
        logger.info(
            "request.completed",
            extra={
                "extra_data": {
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": elapsed_ms,
                    # The endpoint runs in its own task; request.state carries the resolved role back.
                    "actor": getattr(request.state, "actor", None) or role_hint,
                }
            },
        )
        return response
