"""Read-side helpers. Nothing here commits."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from ..core.enums import POStatus, TicketStatus
from ..crud import inventory as inventory_crud
from ..crud import tickets as tickets_crud
from ..models.inventory import InventoryPart, PartMovement
from ..models.purchase_order import PurchaseOrder
from ..models.ticket import Ticket
from ..schemas.ticket import TicketOut
from . import purchasing
from .priority import calculate_priority
from .timecalc import utcnow


def list_tickets(
    db: Session,
    *,
    status: TicketStatus | None = None,
    include_verified: bool = True,
    now: datetime | None = None,
) -> list[TicketOut]:
    """Tickets ranked by a score recomputed at ``now``.

    Scores are computed on the returned copies; stored rows are not touched.
    """

    moment = now or utcnow()
    scored = [
        TicketOut.model_validate(ticket, from_attributes=True).model_copy(
            update={"priority_score": calculate_priority(ticket, moment)}
        )
        for ticket in tickets_crud.list_tickets(db, status=status, include_verified=include_verified)
    ]
    return sorted(scored, key=lambda t: (t.priority_score, t.created_at), reverse=True)


def get_ticket(db: Session, ticket_id: str) -> Ticket:
    return tickets_crud.require_ticket(db, ticket_id)


def ticket_priority(db: Session, ticket_id: str, now: datetime | None = None) -> int:
    return calculate_priority(tickets_crud.require_ticket(db, ticket_id), now)


def list_parts(db: Session, category: str | None = None) -> list[InventoryPart]:
    return inventory_crud.list_parts(db, category)


def get_part(db: Session, part_id: str) -> InventoryPart:
    return inventory_crud.require_part(db, part_id)


def part_available(db: Session, part_id: str) -> int:
    return inventory_crud.available_stock(inventory_crud.require_part(db, part_id))


def list_movements(
    db: Session,
    *,
    part_id: str | None = None,
    ticket_id: str | None = None,
    po_id: str | None = None,
    limit: int | None = 100,
) -> list[PartMovement]:
    return inventory_crud.list_movements(db, part_id=part_id, ticket_id=ticket_id, po_id=po_id, limit=limit)


def list_purchase_orders(db: Session, status: POStatus | None = None) -> list[PurchaseOrder]:
    return purchasing.list_purchase_orders(db, status)


def get_purchase_order(db: Session, po_id: str) -> PurchaseOrder:
    return purchasing.require_purchase_order(db, po_id)
