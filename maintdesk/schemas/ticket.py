from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..core.enums import Impact, TicketStatus, Urgency


class AuditEventOut(BaseModel):
    date: str
    action: str
    user: str


class TicketCreate(BaseModel):
    room_number: str
    is_occupied: bool = False
    asset: str
    issue_type: str
    description: str = ""
    urgency: Urgency = Urgency.LOW
    impact: Impact = Impact.NONE
    notes: list[str] = Field(default_factory=list)


class TicketPatch(BaseModel):
    """Fields a caller may change. ``priority_score`` is not one of them."""

    room_number: Optional[str] = None
    is_occupied: Optional[bool] = None
    asset: Optional[str] = None
    issue_type: Optional[str] = None
    description: Optional[str] = None
    urgency: Optional[Urgency] = None
    impact: Optional[Impact] = None
    status: Optional[TicketStatus] = None
    assigned_to: Optional[str] = None
    notes: Optional[list[str]] = None
    part_name: Optional[str] = None
    needs_vendor: Optional[bool] = None
    vendor_type: Optional[str] = None


class TicketUpdate(BaseModel):
    patch: TicketPatch
    action: str = Field(min_length=1)


class StatusChange(BaseModel):
    status: TicketStatus
    part_name: Optional[str] = None
    vendor_type: Optional[str] = None


class NoteIn(BaseModel):
    text: str = Field(min_length=1)


class AssignIn(BaseModel):
    technician: str = Field(min_length=1)


class ReserveIn(BaseModel):
    part_id: str
    qty: int = Field(default=1, ge=1)


class TicketPartAction(BaseModel):
    note: Optional[str] = None


class TicketOut(BaseModel):
    id: str
    room_number: str
    is_occupied: bool
    asset: str
    issue_type: str
    description: str
    urgency: Urgency
    impact: Impact
    status: TicketStatus
    created_at: str
    created_by: str
    assigned_to: Optional[str] = None
    notes: list[str] = Field(default_factory=list)
    history: list[AuditEventOut] = Field(default_factory=list)
    needs_part: Optional[bool] = None
    part_id: Optional[str] = None
    part_name: Optional[str] = None
    part_qty: Optional[int] = None
    reserved_qty: int = 0
    needs_vendor: Optional[bool] = None
    vendor_type: Optional[str] = None
    po_id: Optional[str] = None
    verified_by: Optional[str] = None
    closed_at: Optional[str] = None
    priority_score: int

    class Config:
        from_attributes = True
