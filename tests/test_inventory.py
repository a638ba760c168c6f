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
from maintdesk.core.enums import MovementType, Role
from maintdesk.core.errors import InvalidState, NotFound
from maintdesk.crud.inventory import (
    adjust_stock,
    get_part,
    is_low_stock,
    is_out_of_stock,
    list_parts,
    replay_ledger,
    should_reorder,
    suggested_reorder_qty,
)
from maintdesk.models.inventory import InventoryPart
from maintdesk.services.purchasing import create_purchase_order, receive_purchase_order
from maintdesk.services.reservations import issue_part, release_reservation, reserve_part
from maintdesk.services.seed import load_seed_data

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


def _part(on_hand, reserved=0, minimum=0):
    return InventoryPart(id="X", name="X", stock_on_hand=on_hand, stock_reserved=reserved, min_stock=minimum)


def test_stock_predicates():
    assert is_out_of_stock(_part(2, 2, 1))
    assert not is_low_stock(_part(2, 2, 1))
    assert is_low_stock(_part(3, 0, 3))
    assert not is_low_stock(_part(1, 0, 0))
    assert should_reorder(_part(3, 0, 3))
    assert not should_reorder(_part(4, 0, 3))


def test_suggested_reorder_qty():
    assert suggested_reorder_qty(_part(2, 0, 6)) == 10
    assert suggested_reorder_qty(_part(0, 0, 0)) == 2
    assert suggested_reorder_qty(_part(50, 0, 1)) == 1


def test_movement_effects():
    assert MovementType.RESERVE.effect(3) == (0, 3)
    assert MovementType.RELEASE.effect(3) == (0, -3)
    assert MovementType.ISSUE.effect(3) == (-3, -3)
    assert MovementType.RECEIVE.effect(3) == (3, 0)
    assert MovementType.ADJUST.effect(3, -1) == (-3, 0)
    assert MovementType.PO_CREATED.effect(3) == (0, 0)
    assert MovementType.PO_RECEIVED.effect(3) == (0, 0)


def test_adjust_stock_records_absolute_qty_and_direction(db_session):
    up = adjust_stock(db_session, "P-001", 5, Role.MANAGEMENT, now=NOW)
    assert (up.qty, up.direction, up.note) == (5, 1, "Ajuste de stock +5")
    assert get_part(db_session, "P-001").stock_on_hand == 17

    down = adjust_stock(db_session, "P-001", -100, Role.MANAGEMENT, note="Conteo físico", now=NOW)
    assert (down.qty, down.direction, down.note) == (100, -1, "Conteo físico")
    assert down.signed_qty == -100
    assert get_part(db_session, "P-001").stock_on_hand == 0


def test_adjust_stock_truncates_and_rejects_zero(db_session):
    movement = adjust_stock(db_session, "P-002", 2.9, Role.MANAGEMENT, now=NOW)
    assert movement.qty == 2

    with pytest.raises(InvalidState):
        adjust_stock(db_session, "P-002", 0.4, Role.MANAGEMENT, now=NOW)
    with pytest.raises(NotFound):
        adjust_stock(db_session, "P-999", 1, Role.MANAGEMENT, now=NOW)


def test_list_parts_by_category(db_session):
    assert [p.id for p in list_parts(db_session, "HVAC")] == ["P-003", "P-005"]


def test_ledger_replay_matches_balances_after_mixed_activity(db_session):
    actor = Role.MANAGEMENT
    reserve_part(db_session, "T-1001", "P-003", 1, actor, now=NOW)
    reserve_part(db_session, "T-1002", "P-001", 2, actor, now=NOW)
    reserve_part(db_session, "T-1002", "P-001", 4, actor, now=NOW)
    issue_part(db_session, "T-1002", actor, now=NOW)
    release_reservation(db_session, "T-1001", actor, now=NOW)
    issue_part(db_session, "T-1003", actor, now=NOW)
    po = create_purchase_order(db_session, "P-005", actor, qty=12, now=NOW)
    receive_purchase_order(db_session, po.id, actor, now=NOW)
    receive_purchase_order(db_session, "OC-1", actor, now=NOW)
    adjust_stock(db_session, "P-008", -50, actor, now=NOW)
    adjust_stock(db_session, "P-008", 3, actor, now=NOW)

    for part in list_parts(db_session):
        replay = replay_ledger(db_session, part)
        assert replay.consistent, part.id
        assert part.stock_on_hand >= 0
        assert part.stock_reserved >= 0

    assert get_part(db_session, "P-008").stock_on_hand == 3
    assert replay_ledger(db_session, get_part(db_session, "P-001")).movements == 4
