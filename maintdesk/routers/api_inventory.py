from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..crud import inventory as inventory_crud
from ..db.session import get_db
from ..deps.actor import ActorContext, current_actor
from ..models.inventory import InventoryPart
from ..schemas.commands import CommandResult
from ..schemas.inventory import LedgerReplayOut, MovementOut, PartOut, PartStockOut, StockAdjustment
from ..services import commands, queries
from .responses import command_response, error_response

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"])


def _part_stock(part: InventoryPart) -> PartStockOut:
    base = PartOut.model_validate(part, from_attributes=True).model_dump()
    return PartStockOut(
        **base,
        available=inventory_crud.available_stock(part),
        low_stock=inventory_crud.is_low_stock(part),
        out_of_stock=inventory_crud.is_out_of_stock(part),
        should_reorder=inventory_crud.should_reorder(part),
        suggested_reorder_qty=inventory_crud.suggested_reorder_qty(part),
    )


@router.get("/parts", response_model=list[PartStockOut])
def api_list_parts(category: str | None = Query(default=None), db: Session = Depends(get_db)):
    return [_part_stock(part) for part in queries.list_parts(db, category)]


@router.get("/parts/{part_id}", response_model=PartStockOut)
def api_get_part(part_id: str, db: Session = Depends(get_db)):
    try:
        return _part_stock(queries.get_part(db, part_id))
    except NotFound as exc:
        return error_response(exc)


@router.get("/parts/{part_id}/available")
def api_part_available(part_id: str, db: Session = Depends(get_db)):
    try:
        return {"part_id": part_id, "available": queries.part_available(db, part_id)}
    except NotFound as exc:
        return error_response(exc)


@router.get("/parts/{part_id}/ledger", response_model=LedgerReplayOut)
def api_part_ledger(part_id: str, db: Session = Depends(get_db)):
    try:
        part = queries.get_part(db, part_id)
    except NotFound as exc:
        return error_response(exc)
    return inventory_crud.replay_ledger(db, part)


@router.get("/movements", response_model=list[MovementOut])
def api_movements(
    part_id: str | None = Query(default=None),
    ticket_id: str | None = Query(default=None),
    po_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return queries.list_movements(db, part_id=part_id, ticket_id=ticket_id, po_id=po_id, limit=limit)


@router.post("/adjust", response_model=CommandResult, status_code=201)
def api_adjust(payload: StockAdjustment, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)):
    result = commands.adjust_stock(db, actor.role, payload.part_id, payload.delta, note=payload.note)
    return command_response(result, 201)
