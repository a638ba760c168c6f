"""Demo dataset the desk starts from (and returns to on reset)."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..core.enums import Impact, POStatus, Role, TicketStatus, Urgency
from ..crud.inventory import create_part
from ..models.inventory import InventoryPart, PartMovement
from ..models.purchase_order import PurchaseOrder, PurchaseOrderItem
from ..models.ticket import Ticket
from .priority import calculate_priority
from .timecalc import to_iso, utcnow

SEED_PARTS: list[dict[str, Any]] = [
    {
        "id": "P-001",
        "name": "Foco LED E27 9W",
        "category": "Eléctrico",
        "unit": "pza",
        "stock_on_hand": 12,
        "min_stock": 6,
        "preferred_vendor": "Ferretería Central",
        "lead_time_days": 2,
        "location": "Bodega A-1",
        "sku": "ELE-LED-9W",
    },
    {
        "id": "P-002",
        "name": "Interruptor termomagnético 20A",
        "category": "Eléctrico",
        "unit": "pza",
        "stock_on_hand": 3,
        "min_stock": 2,
        "preferred_vendor": "Eléctrica del Norte",
        "lead_time_days": 4,
        "location": "Bodega A-2",
        "sku": "ELE-BRK-20A",
    },
    {
        "id": "P-003",
        "name": "Capacitor para minisplit 35/5 µF",
        "category": "HVAC",
        "unit": "pza",
        "stock_on_hand": 1,
        "min_stock": 1,
        "preferred_vendor": "Climas Pro",
        "lead_time_days": 7,
        "location": "Cuarto de máquinas",
        "sku": "HVAC-CAP-355",
    },
    {
        "id": "P-004",
        "name": "Cartucho para monomando",
        "category": "Plomería",
        "unit": "pza",
        "stock_on_hand": 4,
        "stock_reserved": 1,
        "min_stock": 3,
        "preferred_vendor": "Hidráulica Express",
        "lead_time_days": 3,
        "location": "Bodega B-1",
        "sku": "PLO-CART-35",
    },
    {
        "id": "P-005",
        "name": "Filtro de aire minisplit",
        "category": "HVAC",
        "unit": "pza",
        "stock_on_hand": 2,
        "min_stock": 6,
        "preferred_vendor": "Climas Pro",
        "lead_time_days": 5,
        "location": "Cuarto de máquinas",
        "sku": "HVAC-FLT-12K",
    },
    {
        "id": "P-006",
        "name": "Cerradura electrónica (kit)",
        "category": "Cerrajería",
        "unit": "kit",
        "stock_on_hand": 0,
        "min_stock": 1,
        "preferred_vendor": "Seguridad Hotelera",
        "lead_time_days": 10,
        "location": "Bodega C-1",
        "sku": "CER-ELEC-KIT",
    },
    {
        "id": "P-007",
        "name": "Control remoto universal TV",
        "category": "TV/WiFi",
        "unit": "pza",
        "stock_on_hand": 5,
        "min_stock": 2,
        "preferred_vendor": "Electrónica Hotelera",
        "lead_time_days": 3,
        "location": "Recepción",
        "sku": "TV-RMT-UNI",
    },
    {
        "id": "P-008",
        "name": "Sellador de silicón",
        "category": "Consumibles",
        "unit": "pza",
        "stock_on_hand": 6,
        "min_stock": 4,
        "preferred_vendor": "Ferretería Central",
        "lead_time_days": 2,
        "location": "Bodega B-3",
        "sku": "CON-SIL-300",
    },
]


def _history(now: datetime, *events: tuple[float, Role, str]) -> list[dict[str, str]]:
    return [
        {"date": to_iso(now - timedelta(hours=hours_ago)), "action": action, "user": role.value}
        for hours_ago, role, action in events
    ]


def _seed_tickets(now: datetime) -> list[dict[str, Any]]:
    return [
        {
            "id": "T-1001",
            "room_number": "101",
            "is_occupied": True,
            "asset": "Aire Acondicionado",
            "issue_type": "No enfría",
            "description": "Huésped reporta que el aire sopla caliente.",
            "urgency": Urgency.HIGH,
            "impact": Impact.BLOCKING,
            "status": TicketStatus.OPEN,
            "hours_ago": 4,
            "created_by": Role.RECEPTION,
            "history": _history(now, (4, Role.RECEPTION, "Ticket Creado")),
        },
        {
            "id": "T-1002",
            "room_number": "204",
            "is_occupied": False,
            "asset": "Plomería",
            "issue_type": "Gotea",
            "description": "Goteo constante en la regadera.",
            "urgency": Urgency.MEDIUM,
            "impact": Impact.ANNOYING,
            "status": TicketStatus.IN_PROGRESS,
            "hours_ago": 26,
            "created_by": Role.CLEANING,
            "assigned_to": "Técnico Demo",
            "history": _history(
                now,
                (26, Role.CLEANING, "Ticket Creado"),
                (20, Role.MAINTENANCE, "Asignado a Técnico Demo"),
                (20, Role.MAINTENANCE, "Estado cambiado a En proceso"),
            ),
        },
        {
            "id": "T-1003",
            "room_number": "112",
            "is_occupied": True,
            "asset": "Plomería",
            "issue_type": "Gotea",
            "description": "Monomando del lavabo no cierra por completo.",
            "urgency": Urgency.MEDIUM,
            "impact": Impact.ANNOYING,
            "status": TicketStatus.WAITING_PART,
            "hours_ago": 50,
            "created_by": Role.CLEANING,
            "assigned_to": "Técnico Demo",
            "needs_part": True,
            "part_id": "P-004",
            "part_name": "Cartucho para monomando",
            "part_qty": 1,
            "reserved_qty": 1,
            "notes": ["Se requiere cambiar cartucho."],
            "history": _history(
                now,
                (50, Role.CLEANING, "Ticket Creado"),
                (46, Role.MAINTENANCE, "Asignado a Técnico Demo"),
                (45, Role.MAINTENANCE, "Reservada refacción: Cartucho para monomando (x1)"),
            ),
        },
        {
            "id": "T-1004",
            "room_number": "305",
            "is_occupied": False,
            "asset": "Iluminación",
            "issue_type": "No enciende",
            "description": "Lámpara de buró sin encender.",
            "urgency": Urgency.LOW,
            "impact": Impact.NONE,
            "status": TicketStatus.RESOLVED,
            "hours_ago": 30,
            "created_by": Role.CLEANING,
            "assigned_to": "Técnico Demo",
            "history": _history(
                now,
                (30, Role.CLEANING, "Ticket Creado"),
                (6, Role.MAINTENANCE, "Marcado como Resuelto — Pendiente de verificación"),
            ),
        },
        {
            "id": "T-1005",
            "room_number": "210",
            "is_occupied": False,
            "asset": "Cerrajería",
            "issue_type": "Roto/Dañado",
            "description": "Chapa de puerta principal se atora.",
            "urgency": Urgency.HIGH,
            "impact": Impact.BLOCKING,
            "status": TicketStatus.VERIFIED,
            "hours_ago": 96,
            "created_by": Role.RECEPTION,
            "assigned_to": "Técnico Demo",
            "verified_by": Role.MANAGEMENT.value,
            "closed_hours_ago": 48,
            "history": _history(
                now,
                (96, Role.RECEPTION, "Ticket Creado"),
                (72, Role.MAINTENANCE, "Marcado como Resuelto — Pendiente de verificación"),
                (48, Role.MANAGEMENT, f"Verificado y Cerrado por {Role.MANAGEMENT.label}"),
            ),
        },
        {
            "id": "T-1006",
            "room_number": "120",
            "is_occupied": True,
            "asset": "TV/WiFi",
            "issue_type": "Sin señal",
            "description": "Sin señal en TV después de reinicio.",
            "urgency": Urgency.LOW,
            "impact": Impact.ANNOYING,
            "status": TicketStatus.VENDOR,
            "hours_ago": 72,
            "created_by": Role.RECEPTION,
            "needs_vendor": True,
            "vendor_type": "Proveedor de cable",
            "history": _history(
                now,
                (72, Role.RECEPTION, "Ticket Creado"),
                (60, Role.MAINTENANCE, "Marcado para proveedor: Proveedor de cable"),
            ),
        },
    ]


def clear_state(db: Session) -> None:
    for model in (PartMovement, PurchaseOrderItem, PurchaseOrder, Ticket, InventoryPart):
        db.execute(delete(model))
    db.flush()


def load_seed_data(db: Session, now: datetime | None = None) -> None:
    """Replace everything with the demo dataset (movement ledger starts empty)."""

    moment = now or utcnow()
    clear_state(db)

    for payload in SEED_PARTS:
        create_part(db, dict(payload))

    for raw in _seed_tickets(moment):
        data = dict(raw)
        created = moment - timedelta(hours=data.pop("hours_ago"))
        closed_hours_ago = data.pop("closed_hours_ago", None)
        history = data.pop("history")
        notes = data.pop("notes", [])
        ticket = Ticket(
            **{
                **data,
                "urgency": data["urgency"].value,
                "impact": data["impact"].value,
                "status": data["status"].value,
                "created_by": data["created_by"].value,
                "reserved_qty": data.get("reserved_qty", 0),
                "created_at": to_iso(created),
                "closed_at": to_iso(moment - timedelta(hours=closed_hours_ago)) if closed_hours_ago else None,
            }
        )
        ticket.notes = notes
        ticket.history_blob = None
        for event in history:
            ticket.append_history(event)
        ticket.priority_score = calculate_priority(ticket, moment)
        db.add(ticket)

    po = PurchaseOrder(
        id="OC-1",
        status=POStatus.ORDERED.value,
        created_at=to_iso(moment - timedelta(days=1)),
        created_by=Role.MANAGEMENT.value,
        vendor="Seguridad Hotelera",
        eta_date=to_iso(moment + timedelta(days=9)),
        notes="OC de reposición de cerraduras.",
    )
    po.items.append(
        PurchaseOrderItem(line=1, part_id="P-006", part_name="Cerradura electrónica (kit)", qty=2, unit="kit")
    )
    db.add(po)
    db.flush()
