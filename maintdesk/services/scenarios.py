"""Scripted demo situations built from the regular ticket operations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session

from ..core.enums import Impact, Role, TicketStatus, Urgency
from ..crud import inventory as inventory_crud
from ..crud import tickets as tickets_crud
from ..models.ticket import Ticket
from .timecalc import utcnow


class Scenario(str, Enum):
    GUEST_COMPLAINT = "GUEST_COMPLAINT"
    CLEANING_REPORT = "CLEANING_REPORT"
    BLOCK_PART = "BLOCK_PART"
    BLOCK_VENDOR = "BLOCK_VENDOR"


DEMO_VENDOR = "Proveedor DEMO (IT / HVAC / Cerrajería)"


def pick_ticket_to_block(db: Session, *, skip_held: bool = False) -> Ticket | None:
    """Highest-priority ticket that is still OPEN or IN_PROGRESS.

    With ``skip_held`` tickets holding reserved stock are passed over.
    """

    for ticket in tickets_crud.list_tickets(db, include_verified=False):
        if skip_held and ticket.has_reservation:
            continue
        if ticket.status in (TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value):
            return ticket
    return None


def _guest_complaint(db: Session, now: datetime) -> Ticket:
    return tickets_crud.create_ticket(
        db,
        {
            "room_number": "105",
            "is_occupied": True,
            "asset": "Aire Acondicionado",
            "issue_type": "No enciende",
            "description": "Simulación DEMO: Huésped reporta que el aire no responde y no puede descansar.",
            "urgency": Urgency.HIGH,
            "impact": Impact.BLOCKING,
        },
        Role.RECEPTION,
        action="Ticket creado por Recepción (DEMO)",
        now=now,
    )


def _cleaning_report(db: Session, now: datetime) -> Ticket:
    return tickets_crud.create_ticket(
        db,
        {
            "room_number": "112",
            "is_occupied": False,
            "asset": "Plomería",
            "issue_type": "Gotea",
            "description": "Simulación DEMO: Limpieza detecta goteo en lavabo durante preparación de habitación.",
            "urgency": Urgency.MEDIUM,
            "impact": Impact.ANNOYING,
        },
        Role.CLEANING,
        action="Ticket creado por Limpieza (DEMO)",
        now=now,
    )


def _block_part(db: Session, now: datetime) -> Ticket:
    # The part is linked for follow-up but not reserved: nothing is available
    # to hold, so ``part_qty`` stays empty and no stock moves.
    parts = inventory_crud.list_parts(db)
    part = next((p for p in parts if inventory_crud.is_out_of_stock(p)), parts[0] if parts else None)
    part_name = part.name if part else "Refacción (DEMO)"
    link = {"needs_part": True, "part_id": part.id if part else None, "part_name": part_name, "part_qty": None}

    target = pick_ticket_to_block(db, skip_held=True)
    if target is not None:
        return tickets_crud.set_ticket_status(
            db,
            target,
            TicketStatus.WAITING_PART,
            Role.MAINTENANCE,
            extra=link,
            action=f"Marcado espera refacción: {part_name} (DEMO)",
            now=now,
        )

    return tickets_crud.create_ticket(
        db,
        {
            "room_number": "101",
            "is_occupied": True,
            "asset": "Eléctrico",
            "issue_type": "Roto/Dañado",
            "description": "Simulación DEMO: Se requiere refacción para completar la reparación.",
            "urgency": Urgency.HIGH,
            "impact": Impact.BLOCKING,
            "notes": ["Simulación DEMO: identificado componente a reemplazar."],
            **link,
        },
        Role.MAINTENANCE,
        action="Ticket creado y marcado espera refacción (DEMO)",
        status=TicketStatus.WAITING_PART,
        now=now,
    )


def _block_vendor(db: Session, now: datetime) -> Ticket:
    target = pick_ticket_to_block(db)
    if target is not None:
        return tickets_crud.set_ticket_status(
            db,
            target,
            TicketStatus.VENDOR,
            Role.MAINTENANCE,
            extra={"needs_vendor": True, "vendor_type": DEMO_VENDOR},
            action="Marcado para proveedor (DEMO)",
            now=now,
        )

    return tickets_crud.create_ticket(
        db,
        {
            "room_number": "120",
            "is_occupied": False,
            "asset": "TV/WiFi",
            "issue_type": "Sin señal",
            "description": "Simulación DEMO: caso escalado a proveedor externo.",
            "urgency": Urgency.LOW,
            "impact": Impact.ANNOYING,
            "notes": ["Simulación DEMO: reinicio no resuelve, se agenda visita."],
            "needs_vendor": True,
            "vendor_type": "Proveedor DEMO",
        },
        Role.MAINTENANCE,
        action="Ticket creado y escalado a proveedor (DEMO)",
        status=TicketStatus.VENDOR,
        now=now,
    )


_RUNNERS = {
    Scenario.GUEST_COMPLAINT: _guest_complaint,
    Scenario.CLEANING_REPORT: _cleaning_report,
    Scenario.BLOCK_PART: _block_part,
    Scenario.BLOCK_VENDOR: _block_vendor,
}


def run_scenario(db: Session, scenario: Scenario | str, now: datetime | None = None) -> Ticket:
    """Run ``scenario`` and return the ticket it created or changed."""

    return _RUNNERS[Scenario(scenario)](db, now or utcnow())
