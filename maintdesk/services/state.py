"""Startup hydration of the desk state, with a seed-data fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import InvalidState
from ..core.enums import Impact, MovementType, POStatus, TicketStatus, Urgency
from ..crud.tickets import refresh_priorities
from ..models.inventory import InventoryPart, PartMovement
from ..models.purchase_order import PurchaseOrder
from ..models.ticket import MalformedTicketData, Ticket
from .seed import load_seed_data
from .snapshot import SnapshotError, import_snapshot, read_snapshot_file
from .timecalc import utcnow

logger = logging.getLogger(__name__)

SOURCE_DATABASE = "database"
SOURCE_SNAPSHOT = "snapshot"
SOURCE_SEED = "seed"


@dataclass(frozen=True)
class LoadResult:
    source: str
    reason: str | None = None
    tickets: int = 0
    parts: int = 0
    movements: int = 0
    purchase_orders: int = 0

    @property
    def recovered(self) -> bool:
        return self.source == SOURCE_SEED and self.reason not in (None, "empty", "reset")


class LoadError(ValueError):
    """Stored rows exist but cannot be trusted."""


def _count(db: Session, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _summary(db: Session, source: str, reason: str | None = None) -> LoadResult:
    return LoadResult(
        source=source,
        reason=reason,
        tickets=_count(db, Ticket),
        parts=_count(db, InventoryPart),
        movements=_count(db, PartMovement),
        purchase_orders=_count(db, PurchaseOrder),
    )


def validate_stored_state(db: Session) -> None:
    """Raise :class:`LoadError` when a stored row cannot be read back."""

    try:
        for ticket in db.execute(select(Ticket)).scalars():
            TicketStatus(ticket.status)
            Urgency(ticket.urgency)
            Impact(ticket.impact)
            # The JSON columns decode lazily; touch them so bad rows surface here.
            _ = (ticket.notes, ticket.history)
        for movement in db.execute(select(PartMovement)).scalars():
            MovementType(movement.type)
        for po in db.execute(select(PurchaseOrder)).scalars():
            POStatus(po.status)
    except (ValueError, MalformedTicketData) as exc:
        raise LoadError(str(exc)) from exc


def reset_to_seed_data(db: Session, now: datetime | None = None, reason: str = "reset") -> LoadResult:
    load_seed_data(db, now)
    return _summary(db, SOURCE_SEED, reason)


def load_state(
    db: Session,
    *,
    snapshot_path: Path | None = None,
    now: datetime | None = None,
) -> LoadResult:
    """Hydrate the desk and commit.

    Order: existing database rows, then a snapshot file (if given and the
    database is empty), then the seed dataset. Unreadable rows or snapshot
    fall back to the seed dataset; that is logged as a recovery, not raised.
    """

    moment = now or utcnow()
    try:
        has_rows = _count(db, Ticket) or _count(db, InventoryPart)
        if has_rows:
            validate_stored_state(db)
            refresh_priorities(db, moment)
            result = _summary(db, SOURCE_DATABASE)
        elif snapshot_path is not None and snapshot_path.exists():
            import_snapshot(db, read_snapshot_file(snapshot_path), moment)
            result = _summary(db, SOURCE_SNAPSHOT)
        elif settings.SEED_ON_EMPTY:
            result = reset_to_seed_data(db, moment, reason="empty")
        else:
            result = _summary(db, SOURCE_DATABASE, "empty")
    except (LoadError, SnapshotError, InvalidState, SQLAlchemyError) as exc:
        db.rollback()
        logger.warning(
            "state.load_recovered_with_seed",
            extra={"extra_data": {"error": str(exc), "error_type": type(exc).__name__}},
        )
        result = reset_to_seed_data(db, moment, reason=f"{type(exc).__name__}: {exc}")
    db.commit()
    logger.info(
        "state.loaded",
        extra={
            "extra_data": {
                "source": result.source,
                "tickets": result.tickets,
                "parts": result.parts,
                "movements": result.movements,
                "purchase_orders": result.purchase_orders,
            }
        },
    )
    return result
