import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from maintdesk.db.session import Base
from maintdesk.core.enums import Role
from maintdesk.crud.tickets import create_ticket
from maintdesk.services.reporting import calculate_dashboard_metrics
from maintdesk.services.seed import load_seed_data

from maintdesk.models import inventory as inventory_model  # noqa: F401
from maintdesk.models import purchase_order as purchase_order_model  # noqa: F401
from maintdesk.models import ticket as ticket_model  # noqa: F401

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    load_seed_data(session, NOW)
    session.commit()
    try:
        yield session
    finally:
        session.close()


def test_dashboard_totals_for_seed_data(db_session):
    metrics = calculate_dashboard_metrics(db_session, NOW)

    assert metrics["totals"] == {
        "pending": 5,
        "critical": 1,
        "blocked": 2,
        "closed_last_7_days": 1,
    }
    assert metrics["staffing"] == {"actionable": 3, "morning": 1, "evening": 1}


def test_dashboard_lists(db_session):
    metrics = calculate_dashboard_metrics(db_session, NOW)

    assert metrics["top_priority"][0]["id"] == "T-1001"
    assert len(metrics["top_priority"]) == 5
    assert [row["id"] for row in metrics["parts_needed"]] == ["T-1003"]
    assert [row["id"] for row in metrics["vendor_needed"]] == ["T-1006"]
    assert {row["id"] for row in metrics["guest_risk"]} == {"T-1001", "T-1003", "T-1006"}
    assert metrics["issues_by_asset"][0] == {"asset": "Plomería", "count": 2}


def test_dashboard_inventory_kpis(db_session):
    inventory = calculate_dashboard_metrics(db_session, NOW)["inventory"]

    assert inventory["parts"] == 8
    assert inventory["out_of_stock"] == ["P-006"]
    assert inventory["low_stock"] == ["P-003", "P-004", "P-005"]
    assert {row["part_id"] for row in inventory["reorder_suggestions"]} == {"P-003", "P-004", "P-005", "P-006"}
    assert inventory["blocked_by_stock"] == []


def test_verification_older_than_a_week_is_not_counted(db_session):
    later = NOW + timedelta(days=6)
    assert calculate_dashboard_metrics(db_session, later)["totals"]["closed_last_7_days"] == 0


def test_hotspots_and_recurrence(db_session):
    for _ in range(2):
        create_ticket(
            db_session,
            {"room_number": "204", "asset": "Plomería", "issue_type": "Gotea", "urgency": "LOW", "impact": "NONE"},
            Role.CLEANING,
            now=NOW,
        )

    metrics = calculate_dashboard_metrics(db_session, NOW)

    assert metrics["hotspot_rooms"] == ["204"]
    assert metrics["recurrent_tickets"] == ["T-1002", "T-1007", "T-1008"]


def test_staffing_scales_with_actionable_work(db_session):
    for room in range(10):
        create_ticket(
            db_session,
            {"room_number": str(400 + room), "asset": "TV/WiFi", "issue_type": "Sin señal"},
            Role.RECEPTION,
            now=NOW,
        )

    staffing = calculate_dashboard_metrics(db_session, NOW)["staffing"]
    # 13 actionable: ceil(7.8 / 4) and ceil(5.2 / 4)
    assert staffing == {"actionable": 13, "morning": 2, "evening": 2}
