"""Human-readable id generation (``T-1001``, ``M-7``, ``OC-3``)."""

from __future__ import annotations

import re
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

TICKET_PREFIX = "T-"
MOVEMENT_PREFIX = "M-"
PO_PREFIX = "OC-"

TICKET_ID_FLOOR = 1000

_DIGITS = re.compile(r"\D")


def next_id(prefix: str, existing_ids: Iterable[str], start: int = 0) -> str:
    """Return ``prefix`` + (largest numeric part among ``existing_ids`` + 1).

    Ids without digits are ignored; ``start`` is the floor, so the first id
    generated is ``start + 1``.
    """

    highest = start
    for raw in existing_ids:
        digits = _DIGITS.sub("", str(raw))
        if digits:
            highest = max(highest, int(digits))
    return f"{prefix}{highest + 1}"


def next_id_for(db: Session, column, prefix: str, start: int = 0) -> str:
    # Pending (flushed) rows are visible because the query runs on the same session.
    ids = db.execute(select(column)).scalars().all()
    return next_id(prefix, ids, start)
