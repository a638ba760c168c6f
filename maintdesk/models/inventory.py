"""SQLAlchemy models for stocked parts and their movement ledger."""


from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


class InventoryPart(Base):
    """A stocked maintenance component.

    ``stock_reserved`` is tracked independently of ``stock_on_hand``; both are
    clamped at zero by every write path.
    """

    __tablename__ = "parts"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, default="Otros")
    unit = Column(Text, nullable=False, default="pza")

    stock_on_hand = Column(Integer, nullable=False, default=0)
    stock_reserved = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)

    # Balances the ledger replay starts from.
    opening_on_hand = Column(Integer, nullable=False, default=0)
    opening_reserved = Column(Integer, nullable=False, default=0)

    preferred_vendor = Column(Text, nullable=True)
    lead_time_days = Column(Integer, nullable=True)
    location = Column(Text, nullable=True)
    sku = Column(Text, nullable=True)

    @property
    def available(self) -> int:
        return max(0, (self.stock_on_hand or 0) - (self.stock_reserved or 0))


class PartMovement(Base):
    """An immutable ledger entry.

    ``qty`` is always positive. ``direction`` is -1 only for ADJUST entries
    that removed stock; every other type implies its own sign.
    """

    __tablename__ = "part_movements"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Text, nullable=False, unique=True, index=True)
    part_id = Column(Text, ForeignKey("parts.id"), nullable=False, index=True)
    type = Column(Text, nullable=False)
    qty = Column(Integer, nullable=False)
    direction = Column(Integer, nullable=False, default=1)
    date = Column(Text, nullable=False)
    user = Column(Text, nullable=False)
    note = Column(Text, nullable=True)
    ticket_id = Column(Text, nullable=True, index=True)
    po_id = Column(Text, nullable=True, index=True)
    on_hand_after = Column(Integer, nullable=False)
    reserved_after = Column(Integer, nullable=False)

    part = relationship("InventoryPart", lazy="joined")

    @property
    def part_name(self) -> str | None:
        return self.part.name if self.part else None

    @property
    def signed_qty(self) -> int:
        return -self.qty if self.direction < 0 else self.qty


__all__ = ["InventoryPart", "PartMovement"]
