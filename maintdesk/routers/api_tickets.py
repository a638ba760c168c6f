from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.enums import TicketStatus
from ..core.errors import NotFound
from ..db.session import get_db
from ..deps.actor import ActorContext, current_actor
from ..schemas.commands import CommandResult
from ..schemas.inventory import MovementOut
from ..schemas.ticket import (
    AssignIn,
    NoteIn,
    ReserveIn,
    StatusChange,
    TicketCreate,
    TicketOut,
    TicketPartAction,
    TicketUpdate,
)
from ..services import commands, queries
from .responses import command_response, error_response

router = APIRouter(prefix="/api/v1/tickets", tags=["tickets"])


@router.get("", response_model=list[TicketOut])
def api_list(
    status: TicketStatus | None = Query(default=None),
    include_verified: bool = Query(default=True),
    db: Session = Depends(get_db),
):
    return queries.list_tickets(db, status=status, include_verified=include_verified)


@router.get("/{ticket_id}", response_model=TicketOut)
def api_get(ticket_id: str, db: Session = Depends(get_db)):
    try:
        return queries.get_ticket(db, ticket_id)
    except NotFound as exc:
        return error_response(exc)


@router.get("/{ticket_id}/priority")
def api_priority(ticket_id: str, db: Session = Depends(get_db)):
    try:
        return {"ticket_id": ticket_id, "priority_score": queries.ticket_priority(db, ticket_id)}
    except NotFound as exc:
        return error_response(exc)


@router.get("/{ticket_id}/movements", response_model=list[MovementOut])
def api_movements(ticket_id: str, db: Session = Depends(get_db)):
    try:
        queries.get_ticket(db, ticket_id)
    except NotFound as exc:
        return error_response(exc)
    return queries.list_movements(db, ticket_id=ticket_id, limit=None)


@router.post("", response_model=CommandResult, status_code=201)
def api_create(payload: TicketCreate, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)):
    result = commands.create_ticket(db, actor.role, payload.model_dump())
    return command_response(result, 201)


@router.patch("/{ticket_id}", response_model=CommandResult)
def api_update(
    ticket_id: str,
    payload: TicketUpdate,
    actor: ActorContext = Depends(current_actor),
    db: Session = Depends(get_db),
):
    patch = payload.patch.model_dump(exclude_unset=True)
    return command_response(commands.update_ticket(db, actor.role, ticket_id, patch, payload.action))


@router.post("/{ticket_id}/status", response_model=CommandResult)
def api_set_status(
    ticket_id: str,
    payload: StatusChange,
    actor: ActorContext = Depends(current_actor),
    db: Session = Depends(get_db),
):
    result = commands.set_ticket_status(
        db,
        actor.role,
        ticket_id,
        payload.status,
        part_name=payload.part_name,
        vendor_type=payload.vendor_type,
    )
    return command_response(result)


@router.post("/{ticket_id}/notes", response_model=CommandResult)
def api_add_note(
    ticket_id: str, payload: NoteIn, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)
):
    return command_response(commands.add_note(db, actor.role, ticket_id, payload.text))


@router.post("/{ticket_id}/assign", response_model=CommandResult)
def api_assign(
    ticket_id: str, payload: AssignIn, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)
):
    return command_response(commands.assign_ticket(db, actor.role, ticket_id, payload.technician))


@router.post("/{ticket_id}/reserve", response_model=CommandResult)
def api_reserve(
    ticket_id: str, payload: ReserveIn, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)
):
    return command_response(commands.reserve_part(db, actor.role, ticket_id, payload.part_id, payload.qty))


@router.post("/{ticket_id}/release", response_model=CommandResult)
def api_release(
    ticket_id: str,
    payload: TicketPartAction | None = None,
    actor: ActorContext = Depends(current_actor),
    db: Session = Depends(get_db),
):
    note = payload.note if payload else None
    return command_response(commands.release_reservation(db, actor.role, ticket_id, note=note))


@router.post("/{ticket_id}/issue", response_model=CommandResult)
def api_issue(
    ticket_id: str,
    payload: TicketPartAction | None = None,
    actor: ActorContext = Depends(current_actor),
    db: Session = Depends(get_db),
):
    note = payload.note if payload else None
    return command_response(commands.issue_part(db, actor.role, ticket_id, note=note))
