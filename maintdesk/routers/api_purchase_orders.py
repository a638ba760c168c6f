from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.enums import POStatus
from ..core.errors import NotFound
from ..db.session import get_db
from ..deps.actor import ActorContext, current_actor
from ..schemas.commands import CommandResult
from ..schemas.purchase_order import PurchaseOrderCancel, PurchaseOrderCreate, PurchaseOrderOut
from ..services import commands, queries
from .responses import command_response, error_response

router = APIRouter(prefix="/api/v1/purchase-orders", tags=["purchase-orders"])


@router.get("", response_model=list[PurchaseOrderOut])
def api_list(status: POStatus | None = Query(default=None), db: Session = Depends(get_db)):
    return queries.list_purchase_orders(db, status)


@router.get("/{po_id}", response_model=PurchaseOrderOut)
def api_get(po_id: str, db: Session = Depends(get_db)):
    try:
        return queries.get_purchase_order(db, po_id)
    except NotFound as exc:
        return error_response(exc)


@router.post("", response_model=CommandResult, status_code=201)
def api_create(
    payload: PurchaseOrderCreate, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)
):
    result = commands.create_purchase_order(
        db,
        actor.role,
        payload.part_id,
        qty=payload.qty,
        vendor=payload.vendor,
        eta_days=payload.eta_days,
        ticket_id=payload.ticket_id,
    )
    return command_response(result, 201)


@router.post("/suggested", response_model=CommandResult, status_code=201)
def api_create_suggested(actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)):
    return command_response(commands.create_suggested_purchase_orders(db, actor.role), 201)


@router.post("/{po_id}/receive", response_model=CommandResult)
def api_receive(po_id: str, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)):
    return command_response(commands.receive_purchase_order(db, actor.role, po_id))


@router.post("/{po_id}/cancel", response_model=CommandResult)
def api_cancel(
    po_id: str,
    payload: PurchaseOrderCancel | None = None,
    actor: ActorContext = Depends(current_actor),
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    return command_response(commands.cancel_purchase_order(db, actor.role, po_id, reason=reason))
