# Overview: Pure lifecycle state machine for lottery books (no database access).

"""
Lottery Book Lifecycle

================================================================================
PURPOSE: One place that decides which status a book may move to, and which
derived events that move produces.
================================================================================

STATE MACHINE:
    IN_STOCK -> ACTIVE -> SOLD_OUT -> PENDING_SETTLEMENT -> SETTLED -> ARCHIVED

    IN_STOCK:            Received from the commission, not on display
    ACTIVE:              Activated on a register, tickets being sold
    SOLD_OUT:            Physically empty; settleable (sell-out normally lands
                         directly in PENDING_SETTLEMENT)
    PENDING_SETTLEMENT:  Awaiting financial closeout
    SETTLED:             Settlement recorded, amount due to the commission fixed
    ARCHIVED:            Terminal, kept for audit history

RULES (NON-NEGOTIABLE):
1. Transitions only move forward
2. A sold-out book lands in PENDING_SETTLEMENT in the same step
3. Only SETTLED books can be archived; books are never deleted

Callers persist the new status and append one ledger row per derived
event, so tests can assert on events without diffing fields.
"""

from __future__ import annotations

from dataclasses import dataclass


# Book statuses (must match models/books.py)
STATUS_IN_STOCK = "IN_STOCK"
STATUS_ACTIVE = "ACTIVE"
STATUS_SOLD_OUT = "SOLD_OUT"
STATUS_PENDING_SETTLEMENT = "PENDING_SETTLEMENT"
STATUS_SETTLED = "SETTLED"
STATUS_ARCHIVED = "ARCHIVED"

VALID_STATUSES = {
    STATUS_IN_STOCK,
    STATUS_ACTIVE,
    STATUS_SOLD_OUT,
    STATUS_PENDING_SETTLEMENT,
    STATUS_SETTLED,
    STATUS_ARCHIVED,
}

SETTLEABLE_STATUSES = {STATUS_PENDING_SETTLEMENT, STATUS_SOLD_OUT}

# Lifecycle events (inputs)
EVENT_ACTIVATE = "ACTIVATE"
EVENT_SELL_OUT = "SELL_OUT"
EVENT_RETURN = "RETURN"
EVENT_SETTLE = "SETTLE"
EVENT_ARCHIVE = "ARCHIVE"

# Derived events (outputs, also ledger event types)
BOOK_RECEIVED = "BOOK_RECEIVED"
BOOK_ACTIVATED = "BOOK_ACTIVATED"
SOLD_OUT_DETECTED = "SOLD_OUT_DETECTED"
BOOK_RETURNED = "BOOK_RETURNED"
SETTLEMENT_PENDING = "SETTLEMENT_PENDING"
BOOK_SETTLED = "BOOK_SETTLED"
BOOK_ARCHIVED = "BOOK_ARCHIVED"
POINTER_ADVANCED = "POINTER_ADVANCED"
COUNT_RECORDED = "COUNT_RECORDED"
COUNT_REGRESSION_FLAGGED = "COUNT_REGRESSION_FLAGGED"
COUNT_APPROVED = "COUNT_APPROVED"
SETTLEMENT_APPROVED = "SETTLEMENT_APPROVED"


# (from_status, event) -> (to_status, derived events)
_TRANSITIONS: dict[tuple[str, str], tuple[str, tuple[str, ...]]] = {
    (STATUS_IN_STOCK, EVENT_ACTIVATE): (STATUS_ACTIVE, (BOOK_ACTIVATED,)),
    (STATUS_ACTIVE, EVENT_SELL_OUT): (STATUS_PENDING_SETTLEMENT, (SOLD_OUT_DETECTED, SETTLEMENT_PENDING)),
    (STATUS_ACTIVE, EVENT_RETURN): (STATUS_PENDING_SETTLEMENT, (BOOK_RETURNED, SETTLEMENT_PENDING)),
    (STATUS_SOLD_OUT, EVENT_SETTLE): (STATUS_SETTLED, (BOOK_SETTLED,)),
    (STATUS_PENDING_SETTLEMENT, EVENT_SETTLE): (STATUS_SETTLED, (BOOK_SETTLED,)),
    (STATUS_SETTLED, EVENT_ARCHIVE): (STATUS_ARCHIVED, (BOOK_ARCHIVED,)),
}

# Human wording for rejected transitions
_REQUIRED_STATUS = {
    EVENT_ACTIVATE: "IN_STOCK",
    EVENT_SELL_OUT: "ACTIVE",
    EVENT_RETURN: "ACTIVE",
    EVENT_SETTLE: "PENDING_SETTLEMENT or SOLD_OUT",
    EVENT_ARCHIVE: "SETTLED",
}


class BookTransitionError(ValueError):
    """
    Raised by transition() for a disallowed (status, event) pair.

    The inventory service re-raises it as InvalidStateError with the book id.
    """

    def __init__(self, from_status: str, event: str):
        required = _REQUIRED_STATUS.get(event)
        detail = f", must be '{required}'" if required else ""
        super().__init__(f"cannot {event.lower().replace('_', ' ')}: current status is '{from_status}'{detail}")
        self.from_status = from_status
        self.event = event


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str
    events: tuple[str, ...]


def can_transition(from_status: str, event: str) -> bool:
    return (from_status, event) in _TRANSITIONS


def transition(from_status: str, event: str) -> Transition:
    """
    Apply a lifecycle event to a status.

    Returns the new status plus the derived events it produces.
    Raises BookTransitionError when the pair is not in the table.
    """
    try:
        to_status, events = _TRANSITIONS[(from_status, event)]
    except KeyError:
        raise BookTransitionError(from_status, event) from None
    return Transition(from_status=from_status, to_status=to_status, events=events)
