"""FastAPI application factory and top-level wiring."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import http_exception_handler, validation_exception_handler
from .core.logging import configure_logging
from .db.migrate import run_migrations
from .db.session import Base, engine, session_scope
from .middlewares import RequestIdMiddleware

# Importing the models registers their tables with the metadata.
from .models import inventory as _inventory  # noqa: F401
from .models import purchase_order as _purchase_order  # noqa: F401
from .models import ticket as _ticket  # noqa: F401
from .routers import api_admin, api_inventory, api_purchase_orders, api_reports, api_tickets
from .services.state import load_state

logger = logging.getLogger(__name__)


def init_storage() -> None:
    """Create tables, migrate, then hydrate from DB, snapshot or seed."""

    Base.metadata.create_all(bind=engine)
    run_migrations(engine)
    snapshot_path = settings.snapshot_path if settings.SNAPSHOT_ENABLED else None
    with session_scope() as db:
        result = load_state(db, snapshot_path=snapshot_path)
    if result.recovered:
        logger.warning("state.recovered", extra={"extra_data": {"reason": result.reason}})


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL, service=settings.APP_NAME)
    app = FastAPI(title=settings.APP_NAME)

    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(api_tickets.router)
    app.include_router(api_inventory.router)
    app.include_router(api_purchase_orders.router)
    app.include_router(api_admin.router)
    app.include_router(api_reports.router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.on_event("startup")
    async def _startup() -> None:
        init_storage()

    Instrumentator().instrument(app).expose(app)
    return app


app = create_app()
