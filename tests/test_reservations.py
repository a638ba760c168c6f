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
from maintdesk.core.enums import Role
from maintdesk.core.errors import InsufficientStock, InvalidState, NotFound
from maintdesk.crud.inventory import adjust_stock, available_stock, get_part, list_movements, replay_ledger
from maintdesk.crud.tickets import get_ticket, mark_waiting_part, update_ticket
from maintdesk.services.reservations import issue_part, release_reservation, reserve_part
from maintdesk.services.seed import load_seed_data

from maintdesk.models import inventory as inventory_model  # noqa: F401
from maintdesk.models import purchase_order as purchase_order_model  # noqa: F401
from maintdesk.models import ticket as ticket_model  # noqa: F401

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TECH = Role.MAINTENANCE


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


def test_reserve_holds_stock_and_marks_ticket(db_session):
    ticket = reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    part = get_part(db_session, "P-001")

    assert part.stock_on_hand == 12
    assert part.stock_reserved == 2
    assert available_stock(part) == 10
    assert ticket.status == "WAITING_PART"
    assert ticket.needs_part is True
    assert (ticket.part_id, ticket.part_name, ticket.part_qty) == ("P-001", "Foco LED E27 9W", 2)
    assert ticket.reserved_qty == 2
    assert ticket.history[-1]["action"] == "Reservada refacción: Foco LED E27 9W (x2)"

    movement = list_movements(db_session, ticket_id="T-1001")[0]
    assert movement.type == "RESERVE"
    assert movement.qty == 2
    assert movement.reserved_after == 2


def test_last_unit_cannot_be_reserved_twice(db_session):
    reserve_part(db_session, "T-1001", "P-003", 1, TECH, now=NOW)
    assert available_stock(get_part(db_session, "P-003")) == 0

    with pytest.raises(InsufficientStock) as excinfo:
        reserve_part(db_session, "T-1002", "P-003", 1, TECH, now=NOW)

    assert excinfo.value.available == 0
    assert excinfo.value.requested == 1
    assert excinfo.value.message == "Stock insuficiente. Disponible: 0. Requerido: 1."
    assert get_ticket(db_session, "T-1002").part_id is None


def test_reserve_then_release_restores_reserved(db_session):
    before = get_part(db_session, "P-001").stock_reserved
    reserve_part(db_session, "T-1001", "P-001", 3, TECH, now=NOW)
    ticket = release_reservation(db_session, "T-1001", TECH, now=NOW)

    assert get_part(db_session, "P-001").stock_reserved == before
    assert ticket.needs_part is False
    assert ticket.part_id == "P-001"
    assert ticket.part_qty == 3
    assert ticket.reserved_qty == 0
    assert ticket.history[-1]["action"] == "Reserva liberada"


def test_release_twice_is_rejected(db_session):
    reserve_part(db_session, "T-1001", "P-001", 1, TECH, now=NOW)
    release_reservation(db_session, "T-1001", TECH, now=NOW)

    with pytest.raises(InvalidState):
        release_reservation(db_session, "T-1001", TECH, now=NOW)
    assert get_part(db_session, "P-001").stock_reserved == 0


def test_reserve_then_issue_consumes_both_balances(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    ticket = issue_part(db_session, "T-1001", TECH, now=NOW)
    part = get_part(db_session, "P-001")

    assert part.stock_on_hand == 10
    assert part.stock_reserved == 0
    assert ticket.needs_part is False
    assert ticket.history[-1]["action"] == "Refacción utilizada: Foco LED E27 9W (x2)"


def test_second_issue_is_rejected_and_stock_unchanged(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    issue_part(db_session, "T-1001", TECH, now=NOW)

    with pytest.raises(InvalidState):
        issue_part(db_session, "T-1001", TECH, now=NOW)

    part = get_part(db_session, "P-001")
    assert (part.stock_on_hand, part.stock_reserved) == (10, 0)


def test_issue_without_part_link_is_rejected(db_session):
    with pytest.raises(InvalidState):
        issue_part(db_session, "T-1002", TECH, now=NOW)


def test_seeded_reservation_can_be_issued(db_session):
    issue_part(db_session, "T-1003", TECH, now=NOW)
    part = get_part(db_session, "P-004")
    assert (part.stock_on_hand, part.stock_reserved) == (3, 0)


def test_supersession_on_same_part_nets_the_difference(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    reserve_part(db_session, "T-1001", "P-001", 5, TECH, now=NOW)

    assert get_part(db_session, "P-001").stock_reserved == 5
    kinds = [m.type for m in list_movements(db_session, ticket_id="T-1001")]
    # newest first
    assert kinds == ["RESERVE", "RELEASE", "RESERVE"]


def test_supersession_moves_hold_to_new_part(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    ticket = reserve_part(db_session, "T-1001", "P-007", 1, TECH, now=NOW)

    assert get_part(db_session, "P-001").stock_reserved == 0
    assert get_part(db_session, "P-007").stock_reserved == 1
    assert ticket.part_id == "P-007"


def test_quantity_is_floored_to_at_least_one(db_session):
    ticket = reserve_part(db_session, "T-1001", "P-001", 2.7, TECH, now=NOW)
    assert ticket.part_qty == 2
    ticket = reserve_part(db_session, "T-1002", "P-008", 0, TECH, now=NOW)
    assert ticket.part_qty == 1


def test_reserve_on_closed_ticket_is_rejected(db_session):
    with pytest.raises(InvalidState):
        reserve_part(db_session, "T-1004", "P-001", 1, TECH, now=NOW)
    assert get_part(db_session, "P-001").stock_reserved == 0


def test_unknown_ticket_or_part(db_session):
    with pytest.raises(NotFound):
        reserve_part(db_session, "T-9999", "P-001", 1, TECH, now=NOW)
    with pytest.raises(NotFound):
        reserve_part(db_session, "T-1001", "P-999", 1, TECH, now=NOW)
    with pytest.raises(NotFound):
        release_reservation(db_session, "T-9999", TECH, now=NOW)


def test_waiting_part_after_release_does_not_revive_the_hold(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    release_reservation(db_session, "T-1001", TECH, now=NOW)
    reserve_part(db_session, "T-1002", "P-001", 2, TECH, now=NOW)

    ticket = mark_waiting_part(db_session, get_ticket(db_session, "T-1001"), "Foco", TECH, now=NOW)
    assert ticket.needs_part is True
    assert ticket.has_reservation is False

    with pytest.raises(InvalidState):
        issue_part(db_session, "T-1001", TECH, now=NOW)

    part = get_part(db_session, "P-001")
    assert (part.stock_on_hand, part.stock_reserved) == (12, 2)
    assert get_ticket(db_session, "T-1002").reserved_qty == 2


def test_reserve_after_release_does_not_release_again(db_session):
    reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)
    release_reservation(db_session, "T-1001", TECH, now=NOW)
    reserve_part(db_session, "T-1002", "P-001", 2, TECH, now=NOW)

    reserve_part(db_session, "T-1001", "P-001", 1, TECH, now=NOW)

    assert get_part(db_session, "P-001").stock_reserved == 3
    kinds = [m.type for m in list_movements(db_session, ticket_id="T-1001")]
    assert kinds == ["RESERVE", "RELEASE", "RESERVE"]


def test_held_ticket_cannot_be_relinked_to_another_part(db_session):
    ticket = reserve_part(db_session, "T-1001", "P-001", 2, TECH, now=NOW)

    with pytest.raises(InvalidState):
        update_ticket(db_session, ticket, {"part_id": "P-002"}, "Cambio manual", TECH, now=NOW)

    assert ticket.part_id == "P-001"
    assert get_part(db_session, "P-001").stock_reserved == 2


def test_issue_clamps_each_balance_on_its_own(db_session):
    # T-1003 already holds 1 unit of P-004 (4 on hand).
    reserve_part(db_session, "T-1001", "P-004", 2, TECH, now=NOW)
    adjust_stock(db_session, "P-004", -4, Role.MANAGEMENT, note="Conteo físico", now=NOW)
    part = get_part(db_session, "P-004")
    assert (part.stock_on_hand, part.stock_reserved) == (0, 3)

    issue_part(db_session, "T-1001", TECH, now=NOW)

    part = get_part(db_session, "P-004")
    assert part.stock_on_hand == 0
    assert part.stock_reserved == 1
    issued = list_movements(db_session, ticket_id="T-1001")[0]
    assert (issued.type, issued.on_hand_after, issued.reserved_after) == ("ISSUE", 0, 1)

    replay = replay_ledger(db_session, part)
    assert (replay.on_hand, replay.reserved) == (0, 1)
    assert replay.consistent is True
