"""Versioned JSON layout of the whole desk state."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .inventory import MovementOut, PartOut
from .purchase_order import PurchaseOrderOut
from .ticket import TicketOut

SCHEMA_VERSION = 1


class StateSnapshot(BaseModel):
    schema_version: Literal[1] = SCHEMA_VERSION
    exported_at: str
    tickets: list[TicketOut] = Field(default_factory=list)
    parts: list[PartOut] = Field(default_factory=list)
    # Oldest first, the order they were appended in.
    movements: list[MovementOut] = Field(default_factory=list)
    purchase_orders: list[PurchaseOrderOut] = Field(default_factory=list)
