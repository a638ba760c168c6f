"""Purchase-order workflow: create, receive, cancel and suggested reorders."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import MovementType, POStatus, Role
from ..core.errors import InvalidState, NotFound
from ..crud import inventory as inventory_crud
from ..crud import tickets as tickets_crud
from ..crud.identifiers import PO_PREFIX, next_id_for
from ..models.purchase_order import PurchaseOrder, PurchaseOrderItem
from .reservations import normalize_qty
from .timecalc import add_days, to_iso, utcnow

logger = logging.getLogger(__name__)

PO_NOTE = "OC generada en DEMO (no implica compra real)."


def list_purchase_orders(db: Session, status: POStatus | None = None) -> list[PurchaseOrder]:
    """Newest first."""

    stmt = select(PurchaseOrder)
    if status is not None:
        stmt = stmt.where(PurchaseOrder.status == status.value)
    return db.execute(stmt.order_by(desc(PurchaseOrder.seq))).scalars().all()


def get_purchase_order(db: Session, po_id: str) -> PurchaseOrder | None:
    stmt = select(PurchaseOrder).where(PurchaseOrder.id == po_id)
    return db.execute(stmt).scalars().first()


def require_purchase_order(db: Session, po_id: str) -> PurchaseOrder:
    po = get_purchase_order(db, po_id)
    if po is None:
        raise NotFound("OC no encontrada.")
    return po


def create_purchase_order(
    db: Session,
    part_id: str,
    actor: Role,
    *,
    qty: int | float | None = None,
    vendor: str | None = None,
    eta_days: int | None = None,
    ticket_id: str | None = None,
    now: datetime | None = None,
) -> PurchaseOrder:
    """Open an ORDERED purchase order with a single line for ``part_id``.

    ``qty`` defaults to the part's suggested reorder quantity. When
    ``ticket_id`` is given the PO id is linked onto that ticket; its status
    is left alone.
    """

    moment = now or utcnow()
    part = inventory_crud.require_part(db, part_id)
    ticket = tickets_crud.require_ticket(db, ticket_id) if ticket_id else None

    units = normalize_qty(qty) if qty is not None else inventory_crud.suggested_reorder_qty(part)
    supplier = (vendor or "").strip() or part.preferred_vendor or settings.DEFAULT_VENDOR
    lead_days = eta_days if eta_days is not None else part.lead_time_days
    if lead_days is None:
        lead_days = settings.DEFAULT_LEAD_TIME_DAYS

    po = PurchaseOrder(
        id=next_id_for(db, PurchaseOrder.id, PO_PREFIX),
        status=POStatus.ORDERED.value,
        created_at=to_iso(moment),
        created_by=actor.value,
        vendor=supplier,
        eta_date=to_iso(add_days(moment, lead_days)),
        notes=PO_NOTE,
    )
    po.items.append(PurchaseOrderItem(line=1, part_id=part.id, part_name=part.name, qty=units, unit=part.unit))
    db.add(po)
    db.flush()

    inventory_crud.apply_movement(
        db,
        part,
        MovementType.PO_CREATED,
        units,
        actor,
        note=f"OC {po.id} creada",
        po_id=po.id,
        ticket_id=ticket.id if ticket else None,
        now=moment,
    )

    if ticket is not None:
        tickets_crud.update_ticket(db, ticket, {"po_id": po.id}, f"OC vinculada: {po.id}", actor, now=moment)

    logger.info(
        "purchase_order.created",
        extra={"extra_data": {"po_id": po.id, "part_id": part.id, "qty": units, "vendor": supplier}},
    )
    return po


def receive_purchase_order(
    db: Session, po_id: str, actor: Role, *, now: datetime | None = None
) -> PurchaseOrder:
    """Credit every line to on-hand stock and mark the PO RECEIVED.

    The RECEIVED check below is the only thing that stops a second call from
    crediting the same stock again.
    """

    moment = now or utcnow()
    po = require_purchase_order(db, po_id)
    status = POStatus(po.status)
    if status is POStatus.RECEIVED:
        raise InvalidState("Esta OC ya fue recibida.")
    if status is POStatus.CANCELED:
        raise InvalidState("Esta OC fue cancelada.")
    if not po.items:
        raise InvalidState("Esta OC no tiene partidas.")

    for item in po.items:
        part = inventory_crud.require_part(db, item.part_id)
        inventory_crud.apply_movement(
            db,
            part,
            MovementType.RECEIVE,
            item.qty,
            actor,
            note=f"Recepción OC {po.id}",
            po_id=po.id,
            now=moment,
        )

    po.status = POStatus.RECEIVED.value
    po.received_at = to_iso(moment)
    summary_part = inventory_crud.require_part(db, po.items[0].part_id)
    inventory_crud.apply_movement(
        db,
        summary_part,
        MovementType.PO_RECEIVED,
        po.total_qty,
        actor,
        note=f"OC {po.id} marcada como Recibida",
        po_id=po.id,
        now=moment,
    )
    logger.info("purchase_order.received", extra={"extra_data": {"po_id": po.id, "qty": po.total_qty}})
    return po


def cancel_purchase_order(
    db: Session, po_id: str, actor: Role, *, reason: str | None = None, now: datetime | None = None
) -> PurchaseOrder:
    """Cancel a DRAFT or ORDERED PO. No stock moves."""

    po = require_purchase_order(db, po_id)
    if not POStatus(po.status).is_open:
        raise InvalidState(f"La OC {po.id} ya está cerrada ({po.status}).")
    po.status = POStatus.CANCELED.value
    if reason:
        po.notes = f"{po.notes}\n{reason}" if po.notes else reason
    db.flush()
    logger.info(
        "purchase_order.canceled",
        extra={"extra_data": {"po_id": po.id, "actor": actor.value, "at": to_iso(now or utcnow())}},
    )
    return po


def has_open_order(db: Session, part_id: str) -> bool:
    stmt = (
        select(PurchaseOrderItem.id)
        .join(PurchaseOrder, PurchaseOrder.seq == PurchaseOrderItem.po_seq)
        .where(
            PurchaseOrderItem.part_id == part_id,
            PurchaseOrder.status.in_([POStatus.DRAFT.value, POStatus.ORDERED.value]),
        )
    )
    return db.execute(stmt).first() is not None


def create_suggested_purchase_orders(
    db: Session, actor: Role, *, now: datetime | None = None
) -> list[PurchaseOrder]:
    """One ORDERED PO per part at or below its minimum, sized by the
    suggested reorder quantity. Parts that already have an open PO are
    skipped."""

    moment = now or utcnow()
    created: list[PurchaseOrder] = []
    for part in inventory_crud.list_parts(db):
        if not inventory_crud.should_reorder(part) or has_open_order(db, part.id):
            continue
        created.append(
            create_purchase_order(
                db,
                part.id,
                actor,
                qty=inventory_crud.suggested_reorder_qty(part),
                now=moment,
            )
        )
    return created
