"""Command surface of the desk.

Each command runs as one unit of work on the given session: it commits when
the engine call succeeds and rolls back when it raises. Business failures come
back as a failed :class:`CommandResult` instead of an exception, so callers
(HTTP routers, tests, scripts) only branch on ``result.ok``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import Role, TicketStatus
from ..core.errors import DeskError, PermissionDenied
from ..crud import inventory as inventory_crud
from ..crud import tickets as tickets_crud
from ..models.inventory import PartMovement
from ..models.purchase_order import PurchaseOrder
from ..models.ticket import Ticket
from ..schemas.commands import CommandResult
from ..schemas.inventory import MovementOut
from ..schemas.purchase_order import PurchaseOrderOut
from ..schemas.snapshot import StateSnapshot
from ..schemas.ticket import TicketOut
from . import purchasing, reservations, scenarios, state
from .snapshot import import_snapshot, write_snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ticket_data(ticket: Ticket) -> dict[str, Any]:
    return TicketOut.model_validate(ticket, from_attributes=True).model_dump(mode="json")


def purchase_order_data(po: PurchaseOrder) -> dict[str, Any]:
    return PurchaseOrderOut.model_validate(po, from_attributes=True).model_dump(mode="json")


def movement_data(movement: PartMovement) -> dict[str, Any]:
    return MovementOut.model_validate(movement, from_attributes=True).model_dump(mode="json")


def _require_reserve(actor: Role) -> None:
    if not actor.can_reserve:
        raise PermissionDenied(f"{actor.label} no puede reservar, liberar ni consumir refacciones.")


def _require_stock_manager(actor: Role) -> None:
    if not actor.can_manage_stock:
        raise PermissionDenied(f"{actor.label} no puede gestionar órdenes de compra ni ajustar stock.")


def _execute(
    db: Session,
    command: str,
    actor: Role,
    work: Callable[[], T],
    render: Callable[[T], tuple[str, Any]],
) -> CommandResult:
    """Run ``work`` in one transaction and wrap the outcome.

    ``render`` builds the message and payload before the commit, while the
    ORM objects are still loaded.
    """

    try:
        outcome = work()
        message, data = render(outcome)
        db.commit()
    except DeskError as exc:
        db.rollback()
        logger.info(
            "command.rejected",
            extra={"extra_data": {"command": command, "actor": actor.value, "code": exc.code, "reason": exc.message}},
        )
        return CommandResult.failure(exc.code, exc.message)
    except ValueError as exc:
        db.rollback()
        logger.info(
            "command.rejected",
            extra={"extra_data": {"command": command, "actor": actor.value, "code": "validation_error"}},
        )
        return CommandResult.failure("validation_error", str(exc))
    except Exception:
        db.rollback()
        logger.exception("command.failed", extra={"extra_data": {"command": command, "actor": actor.value}})
        raise

    logger.info("command.completed", extra={"extra_data": {"command": command, "actor": actor.value}})
    if settings.SNAPSHOT_ENABLED:
        write_snapshot(db)
    return CommandResult.success(message, data)


def _ticket_result(message: str) -> Callable[[Ticket], tuple[str, Any]]:
    return lambda ticket: (message, ticket_data(ticket))


# Tickets


def create_ticket(db: Session, actor: Role, payload: dict[str, Any], *, now: datetime | None = None) -> CommandResult:
    return _execute(
        db,
        "create_ticket",
        actor,
        lambda: tickets_crud.create_ticket(db, payload, actor, now=now),
        lambda ticket: (f"Ticket {ticket.id} creado.", ticket_data(ticket)),
    )


def update_ticket(
    db: Session,
    actor: Role,
    ticket_id: str,
    patch: dict[str, Any],
    action: str,
    *,
    now: datetime | None = None,
) -> CommandResult:
    def work() -> Ticket:
        ticket = tickets_crud.require_ticket(db, ticket_id)
        return tickets_crud.update_ticket(db, ticket, patch, action, actor, now=now)

    return _execute(db, "update_ticket", actor, work, _ticket_result("Ticket actualizado."))


def set_ticket_status(
    db: Session,
    actor: Role,
    ticket_id: str,
    status: TicketStatus | str,
    *,
    part_name: str | None = None,
    vendor_type: str | None = None,
    now: datetime | None = None,
) -> CommandResult:
    def work() -> Ticket:
        target = TicketStatus(status)
        ticket = tickets_crud.require_ticket(db, ticket_id)
        if target is TicketStatus.WAITING_PART:
            return tickets_crud.mark_waiting_part(db, ticket, part_name, actor, now=now)
        if target is TicketStatus.VENDOR:
            return tickets_crud.mark_vendor(db, ticket, vendor_type, actor, now=now)
        return tickets_crud.set_ticket_status(db, ticket, target, actor, now=now)

    return _execute(
        db,
        "set_ticket_status",
        actor,
        work,
        lambda ticket: (f"Estado actualizado: {TicketStatus(ticket.status).label}.", ticket_data(ticket)),
    )


def add_note(db: Session, actor: Role, ticket_id: str, text: str, *, now: datetime | None = None) -> CommandResult:
    def work() -> Ticket:
        return tickets_crud.add_note(db, tickets_crud.require_ticket(db, ticket_id), text, actor, now=now)

    return _execute(db, "add_note", actor, work, _ticket_result("Nota agregada."))


def assign_ticket(
    db: Session, actor: Role, ticket_id: str, technician: str, *, now: datetime | None = None
) -> CommandResult:
    def work() -> Ticket:
        return tickets_crud.assign_ticket(db, tickets_crud.require_ticket(db, ticket_id), technician, actor, now=now)

    return _execute(db, "assign_ticket", actor, work, _ticket_result("Ticket asignado."))


# Parts against tickets


def reserve_part(
    db: Session,
    actor: Role,
    ticket_id: str,
    part_id: str,
    qty: int | float | None = 1,
    *,
    now: datetime | None = None,
) -> CommandResult:
    def work() -> Ticket:
        _require_reserve(actor)
        return reservations.reserve_part(db, ticket_id, part_id, qty, actor, now=now)

    return _execute(db, "reserve_part", actor, work, _ticket_result("Refacción reservada."))


def release_reservation(
    db: Session, actor: Role, ticket_id: str, *, note: str | None = None, now: datetime | None = None
) -> CommandResult:
    def work() -> Ticket:
        _require_reserve(actor)
        return reservations.release_reservation(db, ticket_id, actor, note=note, now=now)

    return _execute(db, "release_reservation", actor, work, _ticket_result("Reserva liberada."))


def issue_part(
    db: Session, actor: Role, ticket_id: str, *, note: str | None = None, now: datetime | None = None
) -> CommandResult:
    def work() -> Ticket:
        _require_reserve(actor)
        return reservations.issue_part(db, ticket_id, actor, note=note, now=now)

    return _execute(db, "issue_part", actor, work, _ticket_result("Refacción consumida."))


# Purchasing and stock


def create_purchase_order(
    db: Session,
    actor: Role,
    part_id: str,
    *,
    qty: int | float | None = None,
    vendor: str | None = None,
    eta_days: int | None = None,
    ticket_id: str | None = None,
    now: datetime | None = None,
) -> CommandResult:
    def work() -> PurchaseOrder:
        _require_stock_manager(actor)
        return purchasing.create_purchase_order(
            db, part_id, actor, qty=qty, vendor=vendor, eta_days=eta_days, ticket_id=ticket_id, now=now
        )

    return _execute(
        db,
        "create_purchase_order",
        actor,
        work,
        lambda po: (f"OC {po.id} creada.", purchase_order_data(po)),
    )


def receive_purchase_order(db: Session, actor: Role, po_id: str, *, now: datetime | None = None) -> CommandResult:
    def work() -> PurchaseOrder:
        _require_stock_manager(actor)
        return purchasing.receive_purchase_order(db, po_id, actor, now=now)

    return _execute(
        db,
        "receive_purchase_order",
        actor,
        work,
        lambda po: (f"OC {po.id} recibida. Stock actualizado.", purchase_order_data(po)),
    )


def cancel_purchase_order(
    db: Session, actor: Role, po_id: str, *, reason: str | None = None, now: datetime | None = None
) -> CommandResult:
    def work() -> PurchaseOrder:
        _require_stock_manager(actor)
        return purchasing.cancel_purchase_order(db, po_id, actor, reason=reason, now=now)

    return _execute(
        db,
        "cancel_purchase_order",
        actor,
        work,
        lambda po: (f"OC {po.id} cancelada.", purchase_order_data(po)),
    )


def create_suggested_purchase_orders(db: Session, actor: Role, *, now: datetime | None = None) -> CommandResult:
    def work() -> list[PurchaseOrder]:
        _require_stock_manager(actor)
        return purchasing.create_suggested_purchase_orders(db, actor, now=now)

    def render(orders: list[PurchaseOrder]) -> tuple[str, Any]:
        if not orders:
            return "No hay refacciones por reordenar.", []
        return f"{len(orders)} OC sugerida(s) creada(s).", [purchase_order_data(po) for po in orders]

    return _execute(db, "create_suggested_purchase_orders", actor, work, render)


def adjust_stock(
    db: Session,
    actor: Role,
    part_id: str,
    delta: int | float,
    *,
    note: str | None = None,
    now: datetime | None = None,
) -> CommandResult:
    def work() -> PartMovement:
        _require_stock_manager(actor)
        return inventory_crud.adjust_stock(db, part_id, delta, actor, note=note, now=now)

    return _execute(
        db,
        "adjust_stock",
        actor,
        work,
        lambda movement: ("Stock ajustado.", movement_data(movement)),
    )


# Demo and state


def run_scenario(
    db: Session, actor: Role, scenario: scenarios.Scenario | str, *, now: datetime | None = None
) -> CommandResult:
    return _execute(
        db,
        "run_scenario",
        actor,
        lambda: scenarios.run_scenario(db, scenario, now),
        lambda ticket: (f"Escenario ejecutado sobre {ticket.id}.", ticket_data(ticket)),
    )


def reset_to_seed_data(db: Session, actor: Role, *, now: datetime | None = None) -> CommandResult:
    return _execute(
        db,
        "reset_to_seed_data",
        actor,
        lambda: state.reset_to_seed_data(db, now),
        lambda result: (
            "Datos DEMO restablecidos.",
            {"tickets": result.tickets, "parts": result.parts, "purchase_orders": result.purchase_orders},
        ),
    )


def import_state_snapshot(
    db: Session, actor: Role, snapshot: StateSnapshot, *, now: datetime | None = None
) -> CommandResult:
    def work() -> StateSnapshot:
        _require_stock_manager(actor)
        import_snapshot(db, snapshot, now)
        return snapshot

    return _execute(
        db,
        "import_state_snapshot",
        actor,
        work,
        lambda snap: (
            "Snapshot importado.",
            {"tickets": len(snap.tickets), "parts": len(snap.parts), "purchase_orders": len(snap.purchase_orders)},
        ),
    )
