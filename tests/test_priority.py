import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from maintdesk.core.enums import Role, TicketStatus, can_transition, normalize_role
from maintdesk.services.priority import calculate_priority
from maintdesk.services.timecalc import to_iso

import pytest

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _ticket(**overrides):
    data = {
        "status": "OPEN",
        "urgency": "LOW",
        "impact": "NONE",
        "is_occupied": False,
        "created_at": to_iso(NOW),
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def test_fresh_low_ticket_scores_urgency_only():
    assert calculate_priority(_ticket(), NOW) == 10


def test_high_blocking_occupied_ticket_with_age():
    ticket = _ticket(
        urgency="HIGH",
        impact="BLOCKING",
        is_occupied=True,
        created_at=to_iso(NOW - timedelta(hours=4)),
    )
    # 50 + 40 + 30 + (4/24 days * 5)
    assert calculate_priority(ticket, NOW) == 121


def test_age_points_are_capped():
    ticket = _ticket(created_at=to_iso(NOW - timedelta(days=40)))
    assert calculate_priority(ticket, NOW) == 40


def test_half_points_round_up():
    ticket = _ticket(created_at=to_iso(NOW - timedelta(hours=2, minutes=24)))
    assert calculate_priority(ticket, NOW) == 11


@pytest.mark.parametrize("status", ["RESOLVED", "VERIFIED"])
def test_closed_tickets_score_zero(status):
    ticket = _ticket(status=status, urgency="HIGH", impact="BLOCKING", is_occupied=True)
    assert calculate_priority(ticket, NOW) == 0


def test_raising_severity_strictly_increases_score():
    base = _ticket(created_at=to_iso(NOW - timedelta(days=1)))
    severe = _ticket(
        urgency="HIGH",
        impact="BLOCKING",
        is_occupied=True,
        created_at=base.created_at,
    )
    assert calculate_priority(severe, NOW) > calculate_priority(base, NOW)


def test_score_is_deterministic_for_same_instant():
    ticket = _ticket(urgency="MEDIUM", impact="ANNOYING", created_at=to_iso(NOW - timedelta(hours=30)))
    assert calculate_priority(ticket, NOW) == calculate_priority(ticket, NOW)


def test_status_transitions():
    assert can_transition(TicketStatus.OPEN, TicketStatus.RESOLVED)
    assert can_transition(TicketStatus.VENDOR, TicketStatus.IN_PROGRESS)
    assert can_transition(TicketStatus.RESOLVED, TicketStatus.VERIFIED)
    assert can_transition(TicketStatus.RESOLVED, TicketStatus.RESOLVED)
    assert not can_transition(TicketStatus.OPEN, TicketStatus.VERIFIED)
    assert not can_transition(TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS)
    assert not can_transition(TicketStatus.VERIFIED, TicketStatus.VERIFIED)


def test_normalize_role_accepts_names_and_labels():
    assert normalize_role("maintenance") is Role.MAINTENANCE
    assert normalize_role("Recepción") is Role.RECEPTION
    assert normalize_role(None) is Role.MANAGEMENT
    with pytest.raises(ValueError):
        normalize_role("Huésped")
