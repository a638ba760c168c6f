"""Small idempotent migrations run at startup after ``create_all``."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# Columns added after the first release of each table. Additive only; a
# fresh database already has them from ``create_all``.
ADDITIVE_COLUMNS: dict[str, dict[str, str]] = {
    "tickets": {
        "po_id": "TEXT",
        "verified_by": "TEXT",
        "closed_at": "TEXT",
        "reserved_qty": "INTEGER DEFAULT 0 NOT NULL",
    },
    "parts": {
        "opening_on_hand": "INTEGER DEFAULT 0 NOT NULL",
        "opening_reserved": "INTEGER DEFAULT 0 NOT NULL",
        "location": "TEXT",
        "sku": "TEXT",
    },
    "part_movements": {
        "direction": "INTEGER DEFAULT 1 NOT NULL",
        "on_hand_after": "INTEGER DEFAULT 0 NOT NULL",
        "reserved_after": "INTEGER DEFAULT 0 NOT NULL",
    },
    "purchase_orders": {
        "received_at": "TEXT",
    },
}


def _column_names(engine: Engine, table: str) -> set[str]:
    with engine.connect() as conn:
        return {record["name"] for record in conn.execute(text(f"PRAGMA table_info({table})")).mappings()}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def _backfill_reserved_qty(engine: Engine) -> None:
    # Version 1 rows marked a live hold with needs_part plus part_qty.
    with engine.begin() as conn:
        conn.execute(
            text(
                "UPDATE tickets SET reserved_qty = part_qty "
                "WHERE needs_part = 1 AND part_id IS NOT NULL AND part_qty > 0"
            )
        )


def current_schema_version(engine: Engine) -> int:
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)"))
        row = conn.execute(text("SELECT MAX(version) FROM schema_version")).first()
    return int(row[0]) if row and row[0] is not None else 0


def run_migrations(engine: Engine) -> int:
    """Bring an existing SQLite schema up to date and record its version."""

    if engine.dialect.name != "sqlite":
        return current_schema_version(engine)

    for table, needed in ADDITIVE_COLUMNS.items():
        existing = _column_names(engine, table)
        if not existing:
            # Table absent: create_all builds it fresh.
            continue
        for name, dtype in needed.items():
            if name not in existing:
                _add_column_sqlite(engine, table, f"{name} {dtype}")
                logger.info("db.column_added", extra={"extra_data": {"table": table, "column": name}})
                if (table, name) == ("tickets", "reserved_qty"):
                    _backfill_reserved_qty(engine)

    _create_index_if_not_exists(engine, "part_movements", "ix_part_movements_ticket", ["ticket_id"])
    _create_index_if_not_exists(engine, "part_movements", "ix_part_movements_po", ["po_id"])

    version = current_schema_version(engine)
    if version < SCHEMA_VERSION:
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO schema_version (version) VALUES (:v)"), {"v": SCHEMA_VERSION})
        logger.info("db.schema_version", extra={"extra_data": {"from": version, "to": SCHEMA_VERSION}})
        version = SCHEMA_VERSION
    return version
