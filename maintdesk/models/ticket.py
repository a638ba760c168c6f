"""SQLAlchemy model for maintenance tickets.

Notes and the audit history are stored as JSON lists on the ticket row so the
whole ticket (including its history) is one record, the same shape the
snapshot export uses.
"""


from __future__ import annotations
import json
from sqlalchemy import Boolean, Column, Integer, Text
from ..db.session import Base


class MalformedTicketData(ValueError):
    """A stored JSON column could not be decoded."""


def _decode_list(raw: str | None, column: str) -> list:
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise MalformedTicketData(f"ticket {column} is not valid JSON") from exc
    if not isinstance(decoded, list):
        raise MalformedTicketData(f"ticket {column} must be a JSON list")
    return decoded


class Ticket(Base):
    __tablename__ = "tickets"
    __allow_unmapped__ = True

    id = Column(Text, primary_key=True)
    room_number = Column(Text, nullable=False, index=True)
    is_occupied = Column(Boolean, nullable=False, default=False)
    asset = Column(Text, nullable=False)
    issue_type = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    urgency = Column(Text, nullable=False)
    impact = Column(Text, nullable=False)
    status = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)
    created_by = Column(Text, nullable=False)
    assigned_to = Column(Text, nullable=True)

    # Inventory linkage
    needs_part = Column(Boolean, nullable=True)
    part_id = Column(Text, nullable=True, index=True)
    part_name = Column(Text, nullable=True)
    part_qty = Column(Integer, nullable=True)
    # Units this ticket currently holds in stock_reserved. Only the
    # reservation engine writes it; part_qty is the last requested amount.
    reserved_qty = Column(Integer, nullable=False, default=0)

    needs_vendor = Column(Boolean, nullable=True)
    vendor_type = Column(Text, nullable=True)
    po_id = Column(Text, nullable=True)

    verified_by = Column(Text, nullable=True)
    closed_at = Column(Text, nullable=True)

    priority_score = Column(Integer, nullable=False, default=0)

    notes_blob = Column("notes", Text, nullable=True)
    history_blob = Column("history", Text, nullable=True)

    @property
    def notes(self) -> list[str]:
        return [str(item) for item in _decode_list(self.notes_blob, "notes")]

    @notes.setter
    def notes(self, value: list[str] | None) -> None:
        self.notes_blob = json.dumps(list(value or []), ensure_ascii=False)

    @property
    def history(self) -> list[dict[str, str]]:
        return [dict(item) for item in _decode_list(self.history_blob, "history") if isinstance(item, dict)]

    def append_history(self, event: dict[str, str]) -> None:
        records = self.history
        records.append(event)
        self.history_blob = json.dumps(records, ensure_ascii=False)

    @property
    def has_reservation(self) -> bool:
        """True while the ticket holds stock committed in ``part_id``."""
        return bool(self.part_id and self.reserved_qty and self.reserved_qty > 0)


__all__ = ["MalformedTicketData", "Ticket"]
