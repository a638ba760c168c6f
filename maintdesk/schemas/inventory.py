from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..core.enums import MovementType


class PartOut(BaseModel):
    id: str
    name: str
    category: str
    unit: str
    stock_on_hand: int = Field(ge=0)
    stock_reserved: int = Field(ge=0)
    min_stock: int = Field(ge=0)
    opening_on_hand: int = Field(default=0, ge=0)
    opening_reserved: int = Field(default=0, ge=0)
    preferred_vendor: Optional[str] = None
    lead_time_days: Optional[int] = None
    location: Optional[str] = None
    sku: Optional[str] = None

    class Config:
        from_attributes = True


class PartStockOut(PartOut):
    available: int
    low_stock: bool
    out_of_stock: bool
    should_reorder: bool
    suggested_reorder_qty: int


class MovementOut(BaseModel):
    id: str
    part_id: str
    part_name: Optional[str] = None
    type: MovementType
    qty: int = Field(gt=0)
    direction: int = 1
    date: str
    user: str
    note: Optional[str] = None
    ticket_id: Optional[str] = None
    po_id: Optional[str] = None
    on_hand_after: int = Field(ge=0)
    reserved_after: int = Field(ge=0)

    class Config:
        from_attributes = True


class StockAdjustment(BaseModel):
    part_id: str
    delta: int
    note: Optional[str] = None


class LedgerReplayOut(BaseModel):
    part_id: str
    on_hand: int
    reserved: int
    movements: int
    consistent: bool

    class Config:
        from_attributes = True
