from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.enums import Impact, Role, TicketStatus, Urgency, can_transition
from ..core.errors import InvalidState, NotFound
from ..models.ticket import Ticket
from ..services.priority import calculate_priority
from ..services.timecalc import to_iso, utcnow
from .identifiers import TICKET_ID_FLOOR, TICKET_PREFIX, next_id_for

logger = logging.getLogger(__name__)

NOTE_PREVIEW_CHARS = 28

# Fields a patch may touch. ``priority_score`` is derived, ``id``/``history``
# are owned by this module; anything else in a patch is ignored.
UPDATABLE_FIELDS = frozenset(
    {
        "room_number",
        "is_occupied",
        "asset",
        "issue_type",
        "description",
        "urgency",
        "impact",
        "status",
        "created_at",
        "assigned_to",
        "notes",
        "needs_part",
        "part_id",
        "part_name",
        "part_qty",
        "needs_vendor",
        "vendor_type",
        "po_id",
        "verified_by",
        "closed_at",
    }
)

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "urgency": Urgency,
    "impact": Impact,
    "status": TicketStatus,
}


def _enum_value(field: str, value: Any) -> str:
    enum_cls = _ENUM_FIELDS[field]
    if isinstance(value, enum_cls):
        return value.value
    try:
        return enum_cls(value).value
    except ValueError as exc:
        raise ValueError(f"{field} must be one of {[m.value for m in enum_cls]}") from exc


def _audit(actor: Role, action: str, now: datetime) -> dict[str, str]:
    return {"date": to_iso(now), "action": action, "user": actor.value}


def list_tickets(
    db: Session,
    *,
    status: TicketStatus | None = None,
    include_verified: bool = True,
    limit: int | None = None,
    offset: int = 0,
) -> list[Ticket]:
    """Tickets ordered by priority (highest first), newest first on ties."""

    stmt = select(Ticket)
    if status is not None:
        stmt = stmt.where(Ticket.status == status.value)
    if not include_verified:
        stmt = stmt.where(Ticket.status != TicketStatus.VERIFIED.value)
    stmt = stmt.order_by(desc(Ticket.priority_score), desc(Ticket.created_at)).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return db.execute(stmt).scalars().all()


def get_ticket(db: Session, ticket_id: str) -> Ticket | None:
    return db.get(Ticket, ticket_id)


def require_ticket(db: Session, ticket_id: str) -> Ticket:
    ticket = get_ticket(db, ticket_id)
    if ticket is None:
        raise NotFound("Ticket no encontrado.")
    return ticket


def refresh_priorities(db: Session, now: datetime | None = None) -> int:
    """Recompute every stored score at ``now``; return how many changed.

    The age term grows while a ticket stays open, so stored scores drift.
    Run on startup.
    """

    moment = now or utcnow()
    changed = 0
    for ticket in db.execute(select(Ticket)).scalars():
        score = calculate_priority(ticket, moment)
        if ticket.priority_score != score:
            ticket.priority_score = score
            changed += 1
    if changed:
        db.flush()
    return changed


def create_ticket(
    db: Session,
    payload: dict[str, Any],
    actor: Role,
    *,
    action: str = "Ticket Creado",
    status: TicketStatus = TicketStatus.OPEN,
    now: datetime | None = None,
) -> Ticket:
    """Create a ticket with a one-entry history and a computed score.

    Callers outside the scenario runner always create OPEN tickets.
    """

    moment = now or utcnow()
    ticket = Ticket(
        id=next_id_for(db, Ticket.id, TICKET_PREFIX, TICKET_ID_FLOOR),
        room_number=str(payload.get("room_number") or "").strip(),
        is_occupied=bool(payload.get("is_occupied", False)),
        asset=str(payload.get("asset") or "").strip(),
        issue_type=str(payload.get("issue_type") or "").strip(),
        description=payload.get("description") or "",
        urgency=_enum_value("urgency", payload.get("urgency", Urgency.LOW)),
        impact=_enum_value("impact", payload.get("impact", Impact.NONE)),
        status=status.value,
        created_at=payload.get("created_at") or to_iso(moment),
        created_by=actor.value,
        assigned_to=payload.get("assigned_to"),
        needs_part=bool(payload.get("needs_part", False)),
        part_id=payload.get("part_id"),
        part_name=payload.get("part_name"),
        part_qty=payload.get("part_qty"),
        reserved_qty=0,
        needs_vendor=bool(payload.get("needs_vendor", False)),
        vendor_type=payload.get("vendor_type"),
    )
    ticket.notes = list(payload.get("notes") or [])
    ticket.history_blob = None
    ticket.append_history(_audit(actor, action, moment))
    ticket.priority_score = calculate_priority(ticket, moment)
    db.add(ticket)
    db.flush()
    logger.info(
        "ticket.created",
        extra={"extra_data": {"ticket_id": ticket.id, "room": ticket.room_number, "status": ticket.status}},
    )
    return ticket


def update_ticket(
    db: Session,
    ticket: Ticket,
    patch: dict[str, Any],
    action: str,
    actor: Role,
    *,
    now: datetime | None = None,
) -> Ticket:
    """Apply ``patch``, append one audit event and recompute the score.

    Every ticket mutation in the package goes through here. A status change
    that the lifecycle does not allow raises :class:`InvalidState` before
    anything is written.
    """

    moment = now or utcnow()
    data = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}

    if ticket.has_reservation and "part_id" in data and data["part_id"] != ticket.part_id:
        raise InvalidState("Libera la reserva antes de cambiar la refacción.")

    current = TicketStatus(ticket.status)
    if "status" in data:
        target = TicketStatus(_enum_value("status", data["status"]))
        if not can_transition(current, target):
            if current is TicketStatus.VERIFIED:
                raise InvalidState("El ticket ya fue verificado; su estado no puede cambiar.")
            raise InvalidState(f"Transición no permitida: {current.label} → {target.label}.")
        data["status"] = target.value

    for key in ("urgency", "impact"):
        if key in data:
            data[key] = _enum_value(key, data[key])

    for key, value in data.items():
        if key == "notes":
            ticket.notes = list(value or [])
            continue
        setattr(ticket, key, value)

    ticket.append_history(_audit(actor, action, moment))
    ticket.priority_score = calculate_priority(ticket, moment)
    db.flush()
    logger.info(
        "ticket.updated",
        extra={"extra_data": {"ticket_id": ticket.id, "fields": sorted(data), "status": ticket.status}},
    )
    return ticket


def set_ticket_status(
    db: Session,
    ticket: Ticket,
    status: TicketStatus,
    actor: Role,
    *,
    extra: dict[str, Any] | None = None,
    action: str | None = None,
    now: datetime | None = None,
) -> Ticket:
    moment = now or utcnow()
    updates: dict[str, Any] = {"status": status, **(extra or {})}
    label = action or f"Estado cambiado a {status.label}"
    if status is TicketStatus.RESOLVED:
        label = "Marcado como Resuelto — Pendiente de verificación"
    if status is TicketStatus.VERIFIED:
        updates["verified_by"] = actor.value
        updates["closed_at"] = to_iso(moment)
        label = f"Verificado y Cerrado por {actor.label}"
    return update_ticket(db, ticket, updates, label, actor, now=moment)


def mark_waiting_part(
    db: Session, ticket: Ticket, part_name: str | None, actor: Role, *, now: datetime | None = None
) -> Ticket:
    name = (part_name or "").strip() or "Refacción (DEMO)"
    return set_ticket_status(
        db,
        ticket,
        TicketStatus.WAITING_PART,
        actor,
        extra={"needs_part": True, "part_name": name},
        action=f"Marcado espera refacción: {name}",
        now=now,
    )


def mark_vendor(
    db: Session, ticket: Ticket, vendor_type: str | None, actor: Role, *, now: datetime | None = None
) -> Ticket:
    vendor = (vendor_type or "").strip() or "Proveedor (DEMO)"
    return set_ticket_status(
        db,
        ticket,
        TicketStatus.VENDOR,
        actor,
        extra={"needs_vendor": True, "vendor_type": vendor},
        action=f"Marcado para proveedor: {vendor}",
        now=now,
    )


def assign_ticket(
    db: Session, ticket: Ticket, technician: str, actor: Role, *, now: datetime | None = None
) -> Ticket:
    name = (technician or "").strip()
    if not name:
        raise InvalidState("Indica el técnico asignado.")
    return update_ticket(db, ticket, {"assigned_to": name}, f"Asignado a {name}", actor, now=now)


def add_note(db: Session, ticket: Ticket, text: str, actor: Role, *, now: datetime | None = None) -> Ticket:
    """Append a free-text note. Allowed on every status, VERIFIED included."""

    note = (text or "").strip()
    if not note:
        raise InvalidState("La nota está vacía.")
    preview = note[:NOTE_PREVIEW_CHARS] + ("…" if len(note) > NOTE_PREVIEW_CHARS else "")
    return update_ticket(db, ticket, {"notes": [*ticket.notes, note]}, f"Nota agregada: {preview}", actor, now=now)
