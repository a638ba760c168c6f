"""Priority scoring for maintenance tickets.

The score only ranks work; it is never stored independently of the fields it
is computed from. ``crud.tickets`` calls :func:`calculate_priority` on every
mutation so the persisted ``priority_score`` column always matches.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from ..core.enums import Impact, TicketStatus, Urgency
from .timecalc import days_between, utcnow

URGENCY_POINTS = {
    Urgency.HIGH: 50,
    Urgency.MEDIUM: 30,
    Urgency.LOW: 10,
}

IMPACT_POINTS = {
    Impact.BLOCKING: 40,
    Impact.ANNOYING: 20,
    Impact.NONE: 0,
}

OCCUPIED_POINTS = 30
AGE_POINTS_PER_DAY = 5
AGE_POINTS_CAP = 30


def _enum(enum_cls, value: Any):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def calculate_priority(ticket: Any, now: datetime | None = None) -> int:
    """Return the priority score for ``ticket`` evaluated at ``now``.

    ``ticket`` only needs ``status``, ``urgency``, ``impact``,
    ``is_occupied`` and ``created_at`` attributes, so ORM rows and pydantic
    payloads both work.
    """

    status = _enum(TicketStatus, ticket.status)
    if status is not None and status.is_closed:
        return 0

    moment = now or utcnow()
    score = 0.0
    score += URGENCY_POINTS.get(_enum(Urgency, ticket.urgency), 0)
    score += IMPACT_POINTS.get(_enum(Impact, ticket.impact), 0)
    if ticket.is_occupied:
        score += OCCUPIED_POINTS
    days_open = days_between(ticket.created_at, moment)
    score += min(days_open * AGE_POINTS_PER_DAY, AGE_POINTS_CAP)
    # Halves round up; round() would send them to the even neighbour.
    return math.floor(score + 0.5)
