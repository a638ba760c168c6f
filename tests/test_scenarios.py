import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from maintdesk.db.session import Base
from maintdesk.core.enums import Role, TicketStatus
from maintdesk.crud.inventory import get_part, list_movements
from maintdesk.crud.tickets import get_ticket, set_ticket_status
from maintdesk.services.reservations import reserve_part
from maintdesk.services.scenarios import Scenario, run_scenario
from maintdesk.services.seed import load_seed_data

from maintdesk.models import inventory as inventory_model  # noqa: F401
from maintdesk.models import purchase_order as purchase_order_model  # noqa: F401
from maintdesk.models import ticket as ticket_model  # noqa: F401

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def empty_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def db_session(empty_session):
    load_seed_data(empty_session, NOW)
    empty_session.commit()
    return empty_session


def test_guest_complaint_creates_occupied_ticket(db_session):
    ticket = run_scenario(db_session, "GUEST_COMPLAINT", NOW)

    assert ticket.id == "T-1007"
    assert (ticket.room_number, ticket.is_occupied, ticket.status) == ("105", True, "OPEN")
    assert ticket.created_by == "RECEPTION"
    assert ticket.history[0]["action"] == "Ticket creado por Recepción (DEMO)"
    assert ticket.priority_score == 120


def test_cleaning_report_creates_ticket_as_cleaning(db_session):
    ticket = run_scenario(db_session, Scenario.CLEANING_REPORT, NOW)

    assert ticket.room_number == "112"
    assert ticket.created_by == "CLEANING"
    assert ticket.history[0]["user"] == "CLEANING"


def test_block_part_links_out_of_stock_part_without_reserving(db_session):
    ticket = run_scenario(db_session, Scenario.BLOCK_PART, NOW)

    assert ticket.id == "T-1001"
    assert ticket.status == "WAITING_PART"
    assert ticket.needs_part is True
    assert ticket.part_id == "P-006"
    assert ticket.part_qty is None
    assert ticket.has_reservation is False
    assert ticket.history[-1] == {
        "date": "2026-03-10T12:00:00.000Z",
        "action": "Marcado espera refacción: Cerradura electrónica (kit) (DEMO)",
        "user": "MAINTENANCE",
    }
    assert get_part(db_session, "P-006").stock_reserved == 0
    assert list_movements(db_session) == []


def test_block_part_leaves_tickets_holding_stock_alone(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, Role.MAINTENANCE, now=NOW)
    set_ticket_status(db_session, get_ticket(db_session, "T-1001"), TicketStatus.IN_PROGRESS, Role.MAINTENANCE, now=NOW)

    ticket = run_scenario(db_session, Scenario.BLOCK_PART, NOW)

    assert ticket.id == "T-1002"
    held = get_ticket(db_session, "T-1001")
    assert (held.part_id, held.reserved_qty, held.has_reservation) == ("P-001", 2, True)
    assert get_part(db_session, "P-001").stock_reserved == 2


def test_block_vendor_picks_highest_priority_ticket(db_session):
    ticket = run_scenario(db_session, Scenario.BLOCK_VENDOR, NOW)

    assert ticket.id == "T-1001"
    assert ticket.status == "VENDOR"
    assert ticket.needs_vendor is True


def test_block_scenarios_fabricate_a_ticket_when_none_qualifies(empty_session):
    vendor = run_scenario(empty_session, Scenario.BLOCK_VENDOR, NOW)
    assert (vendor.id, vendor.room_number, vendor.status) == ("T-1001", "120", "VENDOR")

    part = run_scenario(empty_session, Scenario.BLOCK_PART, NOW)
    assert (part.id, part.room_number, part.status) == ("T-1002", "101", "WAITING_PART")
    assert part.part_name == "Refacción (DEMO)"


def test_unknown_scenario_is_rejected(db_session):
    with pytest.raises(ValueError):
        run_scenario(db_session, "FIRE_DRILL", NOW)
