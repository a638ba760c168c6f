"""Parts, stock balances and the movement ledger.

Every stock change goes through :func:`apply_movement`, which updates the
part's balances and appends the ledger row in one step, so the ledger and the
balances cannot drift apart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.enums import MovementType, Role
from ..core.errors import InvalidState, NotFound
from ..models.inventory import InventoryPart, PartMovement
from ..services.timecalc import to_iso, utcnow
from .identifiers import MOVEMENT_PREFIX, next_id_for

logger = logging.getLogger(__name__)


def clamp_non_negative(value: int | None) -> int:
    return max(0, int(value or 0))


def list_parts(db: Session, category: str | None = None) -> list[InventoryPart]:
    stmt = select(InventoryPart)
    if category:
        stmt = stmt.where(InventoryPart.category == category)
    return db.execute(stmt.order_by(InventoryPart.id)).scalars().all()


def get_part(db: Session, part_id: str) -> InventoryPart | None:
    return db.get(InventoryPart, part_id)


def require_part(db: Session, part_id: str) -> InventoryPart:
    part = get_part(db, part_id)
    if part is None:
        raise NotFound("Refacción no encontrada.")
    return part


def available_stock(part: InventoryPart) -> int:
    return clamp_non_negative((part.stock_on_hand or 0) - (part.stock_reserved or 0))


def is_out_of_stock(part: InventoryPart) -> bool:
    return available_stock(part) <= 0


def is_low_stock(part: InventoryPart) -> bool:
    minimum = part.min_stock or 0
    if minimum <= 0:
        return False
    available = available_stock(part)
    return 0 < available <= minimum


def should_reorder(part: InventoryPart) -> bool:
    return available_stock(part) <= (part.min_stock or 0)


def suggested_reorder_qty(part: InventoryPart) -> int:
    """Bring available stock back to twice the minimum (at least 2 units)."""

    target = max(2, (part.min_stock or 0) * 2)
    return max(1, target - available_stock(part))


def create_part(db: Session, payload: dict) -> InventoryPart:
    """Register a part; its starting balances become the replay baseline."""

    data = dict(payload)
    data["stock_on_hand"] = clamp_non_negative(data.get("stock_on_hand"))
    data["stock_reserved"] = clamp_non_negative(data.get("stock_reserved"))
    data["min_stock"] = clamp_non_negative(data.get("min_stock"))
    data.setdefault("opening_on_hand", data["stock_on_hand"])
    data.setdefault("opening_reserved", data["stock_reserved"])
    part = InventoryPart(**data)
    db.add(part)
    db.flush()
    return part


def apply_movement(
    db: Session,
    part: InventoryPart,
    movement_type: MovementType,
    qty: int,
    actor: Role,
    *,
    direction: int = 1,
    note: str | None = None,
    ticket_id: str | None = None,
    po_id: str | None = None,
    now: datetime | None = None,
) -> PartMovement:
    """Apply ``movement_type``'s effect to ``part`` and append the ledger row.

    Each balance is clamped at zero on its own; the resulting balances are
    stored on the movement so a replay can be checked against them.
    """

    if qty <= 0:
        raise ValueError("movement qty must be positive")
    on_hand_delta, reserved_delta = movement_type.effect(qty, direction)
    part.stock_on_hand = clamp_non_negative((part.stock_on_hand or 0) + on_hand_delta)
    part.stock_reserved = clamp_non_negative((part.stock_reserved or 0) + reserved_delta)

    movement = PartMovement(
        id=next_id_for(db, PartMovement.id, MOVEMENT_PREFIX),
        part_id=part.id,
        type=movement_type.value,
        qty=qty,
        direction=-1 if direction < 0 else 1,
        date=to_iso(now or utcnow()),
        user=actor.value,
        note=note,
        ticket_id=ticket_id,
        po_id=po_id,
        on_hand_after=part.stock_on_hand,
        reserved_after=part.stock_reserved,
    )
    db.add(movement)
    db.flush()
    logger.info(
        "inventory.movement",
        extra={
            "extra_data": {
                "movement_id": movement.id,
                "part_id": part.id,
                "type": movement.type,
                "qty": movement.signed_qty,
                "ticket_id": ticket_id,
                "po_id": po_id,
            }
        },
    )
    return movement


def list_movements(
    db: Session,
    *,
    part_id: str | None = None,
    ticket_id: str | None = None,
    po_id: str | None = None,
    limit: int | None = 100,
    offset: int = 0,
) -> list[PartMovement]:
    """Newest first."""

    stmt = select(PartMovement)
    if part_id:
        stmt = stmt.where(PartMovement.part_id == part_id)
    if ticket_id:
        stmt = stmt.where(PartMovement.ticket_id == ticket_id)
    if po_id:
        stmt = stmt.where(PartMovement.po_id == po_id)
    stmt = stmt.order_by(desc(PartMovement.seq)).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return db.execute(stmt).scalars().all()


def adjust_stock(
    db: Session,
    part_id: str,
    delta: int | float,
    actor: Role,
    *,
    note: str | None = None,
    now: datetime | None = None,
) -> PartMovement:
    """Manual on-hand correction. The ledger keeps ``abs(delta)`` as qty and
    the sign in ``direction``."""

    part = require_part(db, part_id)
    change = int(delta or 0)
    if change == 0:
        raise InvalidState("Delta inválido.")
    sign = "+" if change > 0 else ""
    return apply_movement(
        db,
        part,
        MovementType.ADJUST,
        abs(change),
        actor,
        direction=1 if change > 0 else -1,
        note=note or f"Ajuste de stock {sign}{change}",
        now=now,
    )


@dataclass(frozen=True)
class LedgerReplay:
    part_id: str
    on_hand: int
    reserved: int
    movements: int
    consistent: bool


def replay_ledger(db: Session, part: InventoryPart) -> LedgerReplay:
    """Rebuild ``part``'s balances from its opening values and its movements."""

    on_hand = part.opening_on_hand or 0
    reserved = part.opening_reserved or 0
    rows = db.execute(
        select(PartMovement).where(PartMovement.part_id == part.id).order_by(PartMovement.seq)
    ).scalars().all()
    for row in rows:
        on_hand_delta, reserved_delta = MovementType(row.type).effect(row.qty, row.direction)
        on_hand = clamp_non_negative(on_hand + on_hand_delta)
        reserved = clamp_non_negative(reserved + reserved_delta)
    consistent = on_hand == part.stock_on_hand and reserved == part.stock_reserved
    return LedgerReplay(part.id, on_hand, reserved, len(rows), consistent)
