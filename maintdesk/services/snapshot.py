"""JSON snapshot of the whole desk: export, import and best-effort file writes."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import InvalidState
from ..models.inventory import InventoryPart, PartMovement
from ..models.purchase_order import PurchaseOrder, PurchaseOrderItem
from ..models.ticket import MalformedTicketData, Ticket
from ..schemas.inventory import MovementOut, PartOut
from ..schemas.purchase_order import PurchaseOrderOut
from ..schemas.snapshot import StateSnapshot
from ..schemas.ticket import TicketOut
from .priority import calculate_priority
from .seed import clear_state
from .timecalc import to_iso, utcnow

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """The snapshot payload cannot be turned into desk state."""


def export_snapshot(db: Session, now: datetime | None = None) -> StateSnapshot:
    tickets = db.execute(select(Ticket).order_by(Ticket.created_at)).scalars().all()
    parts = db.execute(select(InventoryPart).order_by(InventoryPart.id)).scalars().all()
    movements = db.execute(select(PartMovement).order_by(PartMovement.seq)).scalars().all()
    orders = db.execute(select(PurchaseOrder).order_by(PurchaseOrder.seq)).scalars().all()
    return StateSnapshot(
        exported_at=to_iso(now or utcnow()),
        tickets=[TicketOut.model_validate(t, from_attributes=True) for t in tickets],
        parts=[PartOut.model_validate(p, from_attributes=True) for p in parts],
        movements=[MovementOut.model_validate(m, from_attributes=True) for m in movements],
        purchase_orders=[PurchaseOrderOut.model_validate(o, from_attributes=True) for o in orders],
    )


def parse_snapshot(payload: str | bytes | dict[str, Any]) -> StateSnapshot:
    try:
        if isinstance(payload, (str, bytes)):
            return StateSnapshot.model_validate_json(payload)
        return StateSnapshot.model_validate(payload)
    except ValidationError as exc:
        raise SnapshotError(f"invalid snapshot: {exc.error_count()} error(s)") from exc


def _duplicates(ids) -> list[str]:
    seen: set[str] = set()
    repeated: list[str] = []
    for value in ids:
        if value in seen and value not in repeated:
            repeated.append(value)
        seen.add(value)
    return repeated


def check_references(snapshot: StateSnapshot) -> None:
    """Raise :class:`InvalidState` for repeated ids or links to unknown parts."""

    for label, ids in (
        ("tickets", [t.id for t in snapshot.tickets]),
        ("parts", [p.id for p in snapshot.parts]),
        ("movements", [m.id for m in snapshot.movements]),
        ("purchase_orders", [o.id for o in snapshot.purchase_orders]),
    ):
        repeated = _duplicates(ids)
        if repeated:
            raise InvalidState(f"Snapshot inválido: {label} con id repetido ({', '.join(repeated)}).")

    part_ids = {p.id for p in snapshot.parts}
    linked = [m.part_id for m in snapshot.movements]
    linked += [item.part_id for o in snapshot.purchase_orders for item in o.items]
    missing = sorted({pid for pid in linked if pid not in part_ids})
    if missing:
        raise InvalidState(f"Snapshot inválido: refacciones desconocidas ({', '.join(missing)}).")


def import_snapshot(db: Session, snapshot: StateSnapshot, now: datetime | None = None) -> None:
    """Replace all state with ``snapshot``. Scores are recomputed, not trusted."""

    check_references(snapshot)
    moment = now or utcnow()
    clear_state(db)

    for record in snapshot.parts:
        db.add(InventoryPart(**record.model_dump()))
    db.flush()

    for record in snapshot.tickets:
        data = record.model_dump(mode="json", exclude={"notes", "history", "priority_score"})
        ticket = Ticket(**data)
        ticket.notes = record.notes
        ticket.history_blob = json.dumps([event.model_dump() for event in record.history], ensure_ascii=False)
        if "reserved_qty" not in record.model_fields_set and record.needs_part and record.part_id:
            # Exported before holds were tracked apart from needs_part.
            ticket.reserved_qty = record.part_qty or 0
        ticket.priority_score = calculate_priority(ticket, moment)
        db.add(ticket)

    for record in snapshot.movements:
        db.add(PartMovement(**record.model_dump(mode="json", exclude={"part_name"})))

    for record in snapshot.purchase_orders:
        data = record.model_dump(mode="json", exclude={"items"})
        po = PurchaseOrder(**data)
        for line, item in enumerate(record.items, start=1):
            po.items.append(PurchaseOrderItem(line=line, **item.model_dump()))
        db.add(po)
    try:
        db.flush()
    except IntegrityError as exc:
        raise InvalidState(f"Snapshot inválido: {exc.orig}") from exc


def write_snapshot(db: Session, path: Path | None = None) -> Path | None:
    """Write the snapshot file after a committed command.

    Losing this write is acceptable: the database already holds the state.
    Failures are logged and ``None`` is returned.
    """

    target = path or settings.snapshot_path
    try:
        snapshot = export_snapshot(db)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(target)
    except (OSError, MalformedTicketData, ValidationError):
        logger.warning("snapshot.write_failed", exc_info=True, extra={"extra_data": {"path": str(target)}})
        return None
    return target


def read_snapshot_file(path: Path) -> StateSnapshot:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"cannot read {path}: {exc}") from exc
    return parse_snapshot(raw)
