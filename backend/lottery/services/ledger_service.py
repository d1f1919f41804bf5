# Overview: Append-only audit ledger for lottery lifecycle events.

from __future__ import annotations

import json
from typing import Any, Optional
from datetime import datetime

from ..extensions import db
from ..models import LotteryLedgerEvent
"""
Lottery Ledger Invariants (authoritative)

- Append-only audit log of book lifecycle and reconciliation events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the mutation they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_lottery_event(
    *,
    location_id: int,
    event_type: str,
    book_id: int | None = None,
    actor: str | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LotteryLedgerEvent:
    """
    Append-only lottery ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - Flushed, not committed: the caller's transaction owns the write.
    """
    ev = LotteryLedgerEvent(
        location_id=location_id,
        book_id=book_id,
        event_type=event_type,
        actor=actor,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else None,
        payload=json.dumps(payload, sort_keys=True, default=str) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def append_book_events(book, events, *, actor: str | None = None, note: str | None = None,
                       payload: Optional[dict[str, Any]] = None) -> list[LotteryLedgerEvent]:
    """One ledger row per derived event of a book transition."""
    return [
        append_lottery_event(
            location_id=book.location_id,
            book_id=book.id,
            event_type=event_type,
            actor=actor,
            note=note,
            payload=payload,
        )
        for event_type in events
    ]


def list_book_events(book_id: int, location_id: int) -> list[LotteryLedgerEvent]:
    return (
        db.session.query(LotteryLedgerEvent)
        .filter_by(book_id=book_id, location_id=location_id)
        .order_by(LotteryLedgerEvent.id.asc())
        .all()
    )
