from __future__ import annotations

import math
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.enums import Impact, TicketStatus, Urgency
from ..crud import inventory as inventory_crud
from ..models.inventory import InventoryPart
from ..models.ticket import Ticket
from .priority import calculate_priority
from .timecalc import parse_iso, utcnow, within_last_days

TOP_PRIORITY_LIMIT = 5
GUEST_RISK_LIMIT = 6
STAFF_CAPACITY_PER_TECH = 4
HOTSPOT_WINDOW_DAYS = 7
HOTSPOT_MIN_TICKETS = 3
RECURRENCE_WINDOW_DAYS = 30

_ACTIONABLE = (TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value, TicketStatus.RESOLVED.value)
_BLOCKED = (TicketStatus.WAITING_PART.value, TicketStatus.VENDOR.value)


def is_critical(ticket: Ticket) -> bool:
    return ticket.urgency == Urgency.HIGH.value or ticket.impact == Impact.BLOCKING.value


def verified_at(ticket: Ticket) -> datetime | None:
    """``closed_at`` when present, otherwise the latest audit entry that
    mentions a verification."""

    if ticket.closed_at:
        return parse_iso(ticket.closed_at)
    for event in reversed(ticket.history):
        if "verific" in (event.get("action") or "").lower():
            return parse_iso(event.get("date"))
    return None


def _ticket_row(ticket: Ticket, score: int) -> Dict[str, Any]:
    return {
        "id": ticket.id,
        "room_number": ticket.room_number,
        "asset": ticket.asset,
        "issue_type": ticket.issue_type,
        "status": ticket.status,
        "priority_score": score,
        "part_name": ticket.part_name,
        "vendor_type": ticket.vendor_type,
    }


def _ranked(rows: Iterable[tuple[Ticket, int]]) -> list[tuple[Ticket, int]]:
    return sorted(rows, key=lambda pair: (pair[1], pair[0].created_at or ""), reverse=True)


def calculate_dashboard_metrics(db: Session, now: datetime | None = None) -> Dict[str, Any]:
    """Aggregate the management dashboard: workload, risk and inventory."""

    moment = now or utcnow()
    tickets: list[Ticket] = db.execute(select(Ticket)).scalars().all()
    parts: list[InventoryPart] = db.execute(select(InventoryPart).order_by(InventoryPart.id)).scalars().all()

    scored = [(ticket, calculate_priority(ticket, moment)) for ticket in tickets]
    pending = [(t, s) for t, s in scored if t.status != TicketStatus.VERIFIED.value]

    closed_last_7 = 0
    for ticket in tickets:
        if ticket.status != TicketStatus.VERIFIED.value:
            continue
        closed = verified_at(ticket)
        if closed is not None and (moment - closed).total_seconds() <= 7 * 24 * 3600:
            closed_last_7 += 1

    actionable = sum(1 for t in tickets if t.status in _ACTIONABLE)
    staffing = {
        "actionable": actionable,
        "morning": max(1, math.ceil(actionable * 0.6 / STAFF_CAPACITY_PER_TECH)),
        "evening": max(1, math.ceil(actionable * 0.4 / STAFF_CAPACITY_PER_TECH)),
    }

    by_asset = Counter(t.asset for t in tickets)
    issues_by_asset = [{"asset": name, "count": count} for name, count in by_asset.most_common()]

    rooms_7d = Counter(t.room_number for t in tickets if within_last_days(t.created_at, HOTSPOT_WINDOW_DAYS, moment))
    hotspots = sorted(room for room, count in rooms_7d.items() if count >= HOTSPOT_MIN_TICKETS)
    recurrence = Counter(
        (t.room_number, t.asset) for t in tickets if within_last_days(t.created_at, RECURRENCE_WINDOW_DAYS, moment)
    )
    recurrent = sorted(
        {t.id for t, _ in pending if recurrence[(t.room_number, t.asset)] > 1}
    )

    out_of_stock = [p for p in parts if inventory_crud.is_out_of_stock(p)]
    low_stock = [p for p in parts if inventory_crud.is_low_stock(p)]
    reorder = [
        {"part_id": p.id, "name": p.name, "qty": inventory_crud.suggested_reorder_qty(p)}
        for p in parts
        if inventory_crud.should_reorder(p)
    ]
    waiting_on_part = Counter(t.part_id for t, _ in pending if t.needs_part and t.part_id)
    stock_blocked = [p.id for p in out_of_stock if waiting_on_part.get(p.id)]

    return {
        "generated_at": moment.isoformat(),
        "totals": {
            "pending": len(pending),
            "critical": sum(1 for t, _ in pending if is_critical(t)),
            "blocked": sum(1 for t in tickets if t.status in _BLOCKED),
            "closed_last_7_days": closed_last_7,
        },
        "top_priority": [_ticket_row(t, s) for t, s in _ranked(pending)[:TOP_PRIORITY_LIMIT]],
        "parts_needed": [_ticket_row(t, s) for t, s in _ranked(pending) if t.needs_part],
        "vendor_needed": [_ticket_row(t, s) for t, s in _ranked(pending) if t.needs_vendor],
        "guest_risk": [_ticket_row(t, s) for t, s in _ranked(pending) if t.is_occupied][:GUEST_RISK_LIMIT],
        "staffing": staffing,
        "issues_by_asset": issues_by_asset,
        "hotspot_rooms": hotspots,
        "recurrent_tickets": recurrent,
        "inventory": {
            "parts": len(parts),
            "out_of_stock": [p.id for p in out_of_stock],
            "low_stock": [p.id for p in low_stock],
            "reorder_suggestions": reorder,
            "blocked_by_stock": stock_blocked,
        },
    }


__all__ = ["calculate_dashboard_metrics", "is_critical", "verified_at"]
