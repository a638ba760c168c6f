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
from maintdesk.core.config import settings
from maintdesk.core.enums import Role
from maintdesk.core.errors import InvalidState, NotFound
from maintdesk.crud.inventory import create_part, get_part, list_movements
from maintdesk.crud.tickets import get_ticket
from maintdesk.services.purchasing import (
    cancel_purchase_order,
    create_purchase_order,
    create_suggested_purchase_orders,
    list_purchase_orders,
    receive_purchase_order,
)
from maintdesk.services.seed import load_seed_data
from maintdesk.services.timecalc import to_iso

from maintdesk.models import inventory as inventory_model  # noqa: F401
from maintdesk.models import purchase_order as purchase_order_model  # noqa: F401
from maintdesk.models import ticket as ticket_model  # noqa: F401

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
BOSS = Role.MANAGEMENT


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


def test_create_and_receive_purchase_order(db_session):
    po = create_purchase_order(db_session, "P-005", BOSS, qty=12, eta_days=5, now=NOW)

    assert po.id == "OC-2"
    assert po.status == "ORDERED"
    assert po.vendor == "Climas Pro"
    assert po.eta_date == to_iso(NOW + timedelta(days=5))
    assert [(i.part_id, i.qty, i.unit) for i in po.items] == [("P-005", 12, "pza")]
    assert get_part(db_session, "P-005").stock_on_hand == 2

    receive_purchase_order(db_session, po.id, BOSS, now=NOW)
    assert po.status == "RECEIVED"
    assert po.received_at == to_iso(NOW)
    assert get_part(db_session, "P-005").stock_on_hand == 14

    with pytest.raises(InvalidState):
        receive_purchase_order(db_session, po.id, BOSS, now=NOW)
    assert get_part(db_session, "P-005").stock_on_hand == 14

    kinds = [m.type for m in list_movements(db_session, po_id=po.id)]
    assert kinds == ["PO_RECEIVED", "RECEIVE", "PO_CREATED"]


def test_purchase_order_defaults_come_from_part(db_session):
    po = create_purchase_order(db_session, "P-006", BOSS, now=NOW)

    assert po.vendor == "Seguridad Hotelera"
    assert po.items[0].qty == 2
    assert po.eta_date == to_iso(NOW + timedelta(days=10))


def test_purchase_order_falls_back_to_configured_vendor_and_lead_time(db_session):
    create_part(db_session, {"id": "P-100", "name": "Tornillo", "category": "Otros", "unit": "pza", "min_stock": 0})

    po = create_purchase_order(db_session, "P-100", BOSS, qty=4, now=NOW)

    assert po.vendor == settings.DEFAULT_VENDOR
    assert po.eta_date == to_iso(NOW + timedelta(days=settings.DEFAULT_LEAD_TIME_DAYS))


def test_purchase_order_links_ticket_without_touching_status(db_session):
    po = create_purchase_order(db_session, "P-003", BOSS, qty=1, ticket_id="T-1001", now=NOW)
    ticket = get_ticket(db_session, "T-1001")

    assert ticket.po_id == po.id
    assert ticket.status == "OPEN"
    assert ticket.history[-1]["action"] == f"OC vinculada: {po.id}"


def test_unknown_part_or_ticket(db_session):
    with pytest.raises(NotFound):
        create_purchase_order(db_session, "P-999", BOSS, now=NOW)
    with pytest.raises(NotFound):
        create_purchase_order(db_session, "P-001", BOSS, ticket_id="T-9999", now=NOW)
    assert [po.id for po in list_purchase_orders(db_session)] == ["OC-1"]


def test_canceled_order_cannot_be_received(db_session):
    cancel_purchase_order(db_session, "OC-1", BOSS, reason="Proveedor sin stock", now=NOW)

    with pytest.raises(InvalidState):
        receive_purchase_order(db_session, "OC-1", BOSS, now=NOW)
    with pytest.raises(InvalidState):
        cancel_purchase_order(db_session, "OC-1", BOSS, now=NOW)
    assert get_part(db_session, "P-006").stock_on_hand == 0


def test_receive_unknown_order(db_session):
    with pytest.raises(NotFound):
        receive_purchase_order(db_session, "OC-99", BOSS, now=NOW)


def test_suggested_orders_skip_parts_with_open_orders(db_session):
    created = create_suggested_purchase_orders(db_session, BOSS, now=NOW)

    lines = {po.items[0].part_id: po.items[0].qty for po in created}
    # P-006 already has OC-1 open.
    assert lines == {"P-003": 1, "P-004": 3, "P-005": 10}

    assert create_suggested_purchase_orders(db_session, BOSS, now=NOW) == []
