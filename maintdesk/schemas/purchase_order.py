from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..core.enums import POStatus


class PurchaseOrderItemOut(BaseModel):
    part_id: str
    part_name: str
    qty: int = Field(gt=0)
    unit: Optional[str] = None

    class Config:
        from_attributes = True


class PurchaseOrderOut(BaseModel):
    id: str
    status: POStatus
    created_at: str
    created_by: str
    vendor: str
    eta_date: Optional[str] = None
    received_at: Optional[str] = None
    items: list[PurchaseOrderItemOut] = Field(default_factory=list)
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PurchaseOrderCreate(BaseModel):
    part_id: str
    qty: Optional[int] = Field(default=None, ge=1)
    vendor: Optional[str] = None
    eta_days: Optional[int] = Field(default=None, ge=0)
    ticket_id: Optional[str] = None


class PurchaseOrderCancel(BaseModel):
    reason: Optional[str] = None
