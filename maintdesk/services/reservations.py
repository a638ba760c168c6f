"""Reserve, release and issue parts against tickets.

These functions touch the ticket, the part and the ledger in the same
session and never commit; the command layer owns the transaction so a
failure part-way through leaves nothing behind.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from ..core.enums import MovementType, Role, TicketStatus
from ..core.errors import InsufficientStock, InvalidState, NotFound
from ..crud import inventory as inventory_crud
from ..crud import tickets as tickets_crud
from ..models.inventory import PartMovement
from ..models.ticket import Ticket
from .timecalc import utcnow


def normalize_qty(qty: int | float | None) -> int:
    """Floor to an integer and never go below one unit."""
    try:
        return max(1, int(qty or 1))
    except (TypeError, ValueError):
        return 1


def _release_held(
    db: Session, ticket: Ticket, actor: Role, note: str, now: datetime
) -> PartMovement | None:
    part = inventory_crud.get_part(db, ticket.part_id)
    if part is None:
        return None
    return inventory_crud.apply_movement(
        db,
        part,
        MovementType.RELEASE,
        ticket.reserved_qty,
        actor,
        note=note,
        ticket_id=ticket.id,
        now=now,
    )


def reserve_part(
    db: Session,
    ticket_id: str,
    part_id: str,
    qty: int | float | None,
    actor: Role,
    *,
    now: datetime | None = None,
) -> Ticket:
    """Hold ``qty`` units of ``part_id`` for the ticket.

    A reservation the ticket already holds is released first, so the ledger
    always shows RELEASE before the new RESERVE.
    """

    moment = now or utcnow()
    wanted = normalize_qty(qty)
    ticket = tickets_crud.require_ticket(db, ticket_id)
    part = inventory_crud.require_part(db, part_id)

    current = TicketStatus(ticket.status)
    if current.is_closed:
        raise InvalidState(f"No se puede reservar en un ticket {current.label.lower()}.")

    # Checked against current balances; the ticket's own hold is not credited back.
    available = inventory_crud.available_stock(part)
    if available < wanted:
        raise InsufficientStock(available, wanted)

    if ticket.has_reservation:
        _release_held(db, ticket, actor, "Cambio de refacción / ajuste de reserva", moment)
        ticket.reserved_qty = 0

    inventory_crud.apply_movement(
        db,
        part,
        MovementType.RESERVE,
        wanted,
        actor,
        note=f"Reserva para ticket {ticket.id}",
        ticket_id=ticket.id,
        now=moment,
    )
    ticket.part_id = part.id
    ticket.reserved_qty = wanted
    tickets_crud.update_ticket(
        db,
        ticket,
        {
            "needs_part": True,
            "status": TicketStatus.WAITING_PART,
            "part_id": part.id,
            "part_name": part.name,
            "part_qty": wanted,
        },
        f"Reservada refacción: {part.name} (x{wanted})",
        actor,
        now=moment,
    )
    return ticket


def release_reservation(
    db: Session, ticket_id: str, actor: Role, *, note: str | None = None, now: datetime | None = None
) -> Ticket:
    """Drop the ticket's hold. ``part_id``/``part_name``/``part_qty`` stay on
    the ticket for traceability; ``reserved_qty`` and ``needs_part`` are cleared."""

    moment = now or utcnow()
    ticket = tickets_crud.require_ticket(db, ticket_id)
    if not ticket.has_reservation:
        raise InvalidState("Este ticket no tiene refacción reservada.")

    _release_held(db, ticket, actor, note or "Liberación de reserva", moment)
    ticket.reserved_qty = 0
    tickets_crud.update_ticket(db, ticket, {"needs_part": False}, "Reserva liberada", actor, now=moment)
    return ticket


def issue_part(
    db: Session, ticket_id: str, actor: Role, *, note: str | None = None, now: datetime | None = None
) -> Ticket:
    """Consume the reserved units: both reserved and on-hand go down.

    The two balances are clamped separately. If they were already out of
    step (reserved above on-hand) they stay out of step.
    """

    moment = now or utcnow()
    ticket = tickets_crud.require_ticket(db, ticket_id)
    if not ticket.part_id or not ticket.part_qty:
        raise InvalidState("Este ticket no tiene refacción vinculada.")
    if not ticket.has_reservation:
        raise InvalidState("La refacción de este ticket ya fue consumida o liberada.")

    part = inventory_crud.get_part(db, ticket.part_id)
    if part is None:
        raise NotFound("Refacción no encontrada.")

    used = normalize_qty(ticket.reserved_qty)
    inventory_crud.apply_movement(
        db,
        part,
        MovementType.ISSUE,
        used,
        actor,
        note=note or "Salida a mantenimiento",
        ticket_id=ticket.id,
        now=moment,
    )
    ticket.reserved_qty = 0
    tickets_crud.update_ticket(
        db,
        ticket,
        {"needs_part": False},
        f"Refacción utilizada: {part.name} (x{used})",
        actor,
        now=moment,
    )
    return ticket
