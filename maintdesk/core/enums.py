"""Shared status, severity, role and movement constants."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    MANAGEMENT = "MANAGEMENT"
    CLEANING = "CLEANING"
    RECEPTION = "RECEPTION"
    MAINTENANCE = "MAINTENANCE"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]

    @property
    def can_reserve(self) -> bool:
        """Reserve, release and issue parts."""
        return self in (Role.MANAGEMENT, Role.MAINTENANCE)

    @property
    def can_manage_stock(self) -> bool:
        """Purchase orders and manual stock adjustments."""
        return self is Role.MANAGEMENT


ROLE_LABELS = {
    Role.MANAGEMENT: "Gerencia (Marc)",
    Role.CLEANING: "Limpieza",
    Role.RECEPTION: "Recepción",
    Role.MAINTENANCE: "Mantenimiento",
}


class Urgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Impact(str, Enum):
    NONE = "NONE"
    ANNOYING = "ANNOYING"
    BLOCKING = "BLOCKING"


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_PART = "WAITING_PART"
    VENDOR = "VENDOR"
    RESOLVED = "RESOLVED"
    VERIFIED = "VERIFIED"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def is_closed(self) -> bool:
        return self in (TicketStatus.RESOLVED, TicketStatus.VERIFIED)


STATUS_LABELS = {
    TicketStatus.OPEN: "Reportado",
    TicketStatus.IN_PROGRESS: "En proceso",
    TicketStatus.WAITING_PART: "Espera Refacción",
    TicketStatus.VENDOR: "Requiere Proveedor",
    TicketStatus.RESOLVED: "Resuelto",
    TicketStatus.VERIFIED: "Verificado",
}

_WORKING_STATES = frozenset(
    {
        TicketStatus.IN_PROGRESS,
        TicketStatus.WAITING_PART,
        TicketStatus.VENDOR,
        TicketStatus.RESOLVED,
    }
)

# Same-status updates are handled separately (allowed until VERIFIED).
STATUS_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.OPEN: _WORKING_STATES,
    TicketStatus.IN_PROGRESS: _WORKING_STATES,
    TicketStatus.WAITING_PART: _WORKING_STATES,
    TicketStatus.VENDOR: _WORKING_STATES,
    TicketStatus.RESOLVED: frozenset({TicketStatus.VERIFIED}),
    TicketStatus.VERIFIED: frozenset(),
}


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    if current is TicketStatus.VERIFIED:
        return False
    if current is target:
        return True
    return target in STATUS_TRANSITIONS[current]


class MovementType(str, Enum):
    """Ledger entry kinds. ``qty`` on a movement is always positive; the type
    decides which balance it touches and in which direction."""

    RESERVE = "RESERVE"
    RELEASE = "RELEASE"
    ISSUE = "ISSUE"
    RECEIVE = "RECEIVE"
    ADJUST = "ADJUST"
    PO_CREATED = "PO_CREATED"
    PO_RECEIVED = "PO_RECEIVED"

    def effect(self, qty: int, direction: int = 1) -> tuple[int, int]:
        """Return the ``(on_hand, reserved)`` deltas for ``qty`` units.

        ``direction`` only matters for ADJUST, the one type whose sign is not
        implied by the type itself.
        """

        if self is MovementType.RESERVE:
            return 0, qty
        if self is MovementType.RELEASE:
            return 0, -qty
        if self is MovementType.ISSUE:
            return -qty, -qty
        if self is MovementType.RECEIVE:
            return qty, 0
        if self is MovementType.ADJUST:
            return (qty if direction >= 0 else -qty), 0
        return 0, 0


class POStatus(str, Enum):
    DRAFT = "DRAFT"
    ORDERED = "ORDERED"
    RECEIVED = "RECEIVED"
    CANCELED = "CANCELED"

    @property
    def is_open(self) -> bool:
        return self in (POStatus.DRAFT, POStatus.ORDERED)


PART_CATEGORIES = (
    "Eléctrico",
    "Plomería",
    "HVAC",
    "Cerrajería",
    "Mobiliario",
    "TV/WiFi",
    "Consumibles",
    "Otros",
)

PART_UNITS = ("pza", "kit", "m", "lt", "otro")


def normalize_role(value: str | Role | None, default: Role = Role.MANAGEMENT) -> Role:
    """Accept a role name or its display label; fall back to ``default``."""

    if isinstance(value, Role):
        return value
    cleaned = (value or "").strip()
    if not cleaned:
        return default
    upper = cleaned.upper()
    if upper in Role.__members__:
        return Role[upper]
    for role, label in ROLE_LABELS.items():
        if label.casefold() == cleaned.casefold():
            return role
    raise ValueError(f"Unknown role '{value}'")


__all__ = [
    "Impact",
    "MovementType",
    "PART_CATEGORIES",
    "PART_UNITS",
    "POStatus",
    "Role",
    "STATUS_TRANSITIONS",
    "TicketStatus",
    "Urgency",
    "can_transition",
    "normalize_role",
]
