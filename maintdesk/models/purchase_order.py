"""SQLAlchemy models for replenishment purchase orders."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    __allow_unmapped__ = True

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Text, nullable=False, unique=True, index=True)
    status = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)
    created_by = Column(Text, nullable=False)
    vendor = Column(Text, nullable=False)
    eta_date = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    received_at = Column(Text, nullable=True)

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.line",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def total_qty(self) -> int:
        return sum(item.qty for item in self.items)


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    po_seq = Column(Integer, ForeignKey("purchase_orders.seq"), nullable=False, index=True)
    line = Column(Integer, nullable=False, default=1)
    part_id = Column(Text, ForeignKey("parts.id"), nullable=False, index=True)
    part_name = Column(Text, nullable=False)
    qty = Column(Integer, nullable=False)
    unit = Column(Text, nullable=True)

    purchase_order = relationship("PurchaseOrder", back_populates="items")


__all__ = ["PurchaseOrder", "PurchaseOrderItem"]
