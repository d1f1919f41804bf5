# Overview: Daily physical-count reconciliation for active lottery books.

"""
Lottery Reconciliation Service

WHY: The ticket pointer only knows what was counted before. A daily
physical count of tickets left in each active book is compared against
what the pointer expects; the difference is the day's sales (negative
variance) or a bookkeeping problem (positive variance).

FLOW (one atomic unit per count):
1. Lock the book; it must be ACTIVE
2. expected_remaining = ticket_end - current_ticket + 1
3. variance = physical_remaining - expected_remaining
4. variance_amount = variance * ticket_price (current catalog price)
5. Append the count (never overwrite, never merge)
6. implied pointer = ticket_end - physical_remaining + 1; advance only if forward
7. physical_remaining == 0 -> book sold out

REGRESSIVE COUNTS:
A count implying fewer tickets sold than already recorded is a human
miscount, not a fault. It is stored with flag=REGRESSION for manager
review, the pointer is left alone, and the caller receives an alert
instead of an exception. Such a count must carry a reason code: one
submitted without it is rejected with ReasonCodeRequiredError and nothing
is stored, so the counter can resubmit it with the reason attached.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import LotteryDailyCount
from ..errors import (
    CountNotFoundError,
    InvalidRangeError,
    InvalidStateError,
    ReasonCodeRequiredError,
    ValidationError,
)
from ..validation import coerce_int, optional_text
from ..time_utils import utcnow, today, parse_business_date
from . import book_state
from .book_inventory_service import load_book_for_update, apply_consumption, apply_sold_out
from .concurrency import run_atomic, lock_for_update
from .ledger_service import append_lottery_event
from .location_service import require_location


# Count flag constants
FLAG_NONE = "NONE"
FLAG_REGRESSION = "REGRESSION"

# Reasons an operator may give for more tickets on hand than expected
REASON_CODES = {
    "MISCOUNT",
    "MISFILED",
    "DAMAGED",
    "RETURNED_TICKET",
    "POINTER_ERROR",
    "OTHER",
}


@dataclass
class CountOutcome:
    """Result of one count submission."""
    count: LotteryDailyCount
    events: tuple[str, ...] = ()
    alert: str | None = None

    @property
    def pointer_moved(self) -> bool:
        return self.count.pointer_after != self.count.pointer_before

    @property
    def sold_out(self) -> bool:
        return book_state.SOLD_OUT_DETECTED in self.events


@dataclass
class _CountInput:
    physical_remaining: int
    count_date: date
    reason_code: str | None
    notes: str | None
    logged_by: str | None


def _normalize_reason_code(reason_code: str | None) -> str | None:
    if reason_code is None:
        return None
    code = str(reason_code).strip().upper()
    if not code:
        return None
    if code not in REASON_CODES:
        raise ValidationError(
            f"Invalid reason_code '{reason_code}'. Must be one of: {', '.join(sorted(REASON_CODES))}"
        )
    return code


def record_daily_count(
    book_id: int,
    location_id: int,
    count_date: date | str | None,
    physical_remaining: int,
    reason_code: str | None = None,
    notes: str | None = None,
    logged_by: str | None = None,
) -> CountOutcome:
    """
    Record a physical count and reconcile the book's pointer against it.

    Args:
        book_id: Book being counted
        location_id: Location context
        count_date: Business date of the count (None means today)
        physical_remaining: Tickets physically left in the book
        reason_code: Required when more tickets are on hand than expected
        notes: Free-text operator notes
        logged_by: Identity string of the counting operator

    Returns:
        CountOutcome with the persisted count, derived events and any
        regression alert for manager review

    Raises:
        BookNotFoundError: unknown book at this location
        InvalidStateError: book is not ACTIVE
        InvalidRangeError: physical_remaining outside [0, total_tickets]
        ReasonCodeRequiredError: positive variance without reason_code
    """
    try:
        parsed_date = parse_business_date(count_date) or today()
    except ValueError:
        raise ValidationError("count_date must be YYYY-MM-DD")

    data = _CountInput(
        physical_remaining=coerce_int("physical_remaining", physical_remaining),
        count_date=parsed_date,
        reason_code=_normalize_reason_code(reason_code),
        notes=optional_text("notes", notes, max_length=2000),
        logged_by=optional_text("logged_by", logged_by, max_length=120),
    )

    def _op():
        events = [book_state.COUNT_RECORDED]
        book = load_book_for_update(book_id, location_id)

        if book.status != book_state.STATUS_ACTIVE:
            raise InvalidStateError(
                f"Cannot count book {book.id}: current status is '{book.status}', must be 'ACTIVE'"
            )

        physical = data.physical_remaining
        if physical < 0 or physical > book.total_tickets:
            raise InvalidRangeError(
                f"Physical count {physical} is outside 0-{book.total_tickets} for book {book.id}"
            )

        price_cents = book.game.ticket_price_cents
        expected = book.expected_remaining
        variance = physical - expected
        implied = book.ticket_end - physical + 1
        pointer_before = book.current_ticket

        if variance > 0 and data.reason_code is None:
            raise ReasonCodeRequiredError(
                f"Count of {physical} is {variance} more than the {expected} expected on book {book.id}; "
                f"a reason_code is required"
            )

        alert = None
        flag = FLAG_NONE
        if implied < pointer_before:
            flag = FLAG_REGRESSION
            alert = (
                f"Count would move ticket pointer backward from {pointer_before} to {implied} "
                f"on book {book.id} ({book.game_name} #{book.book_number}); pointer left unchanged"
            )
        elif implied > pointer_before:
            apply_consumption(book, implied)
            events.append(book_state.POINTER_ADVANCED)

        if physical == 0:
            result = apply_sold_out(book, actor=data.logged_by)
            events.extend(result.events)

        count = LotteryDailyCount(
            location_id=book.location_id,
            book_id=book.id,
            count_date=data.count_date,
            expected_remaining=expected,
            physical_remaining=physical,
            variance=variance,
            ticket_price_cents=price_cents,
            variance_amount_cents=variance * price_cents,
            pointer_before=pointer_before,
            pointer_after=book.current_ticket,
            tickets_sold=book.current_ticket - pointer_before,
            flag=flag,
            reason_code=data.reason_code,
            notes=data.notes,
            logged_by=data.logged_by,
        )
        db.session.add(count)
        db.session.flush()

        append_lottery_event(
            location_id=book.location_id,
            book_id=book.id,
            event_type=book_state.COUNT_RECORDED,
            actor=data.logged_by,
            payload={"count_id": count.id, "physical_remaining": physical, "variance": variance},
        )
        if flag == FLAG_REGRESSION:
            events.append(book_state.COUNT_REGRESSION_FLAGGED)
            append_lottery_event(
                location_id=book.location_id,
                book_id=book.id,
                event_type=book_state.COUNT_REGRESSION_FLAGGED,
                actor=data.logged_by,
                note=alert,
                payload={"count_id": count.id, "reason_code": data.reason_code},
            )

        return CountOutcome(count=count, events=tuple(events), alert=alert)

    outcome = run_atomic(_op)

    if outcome.alert:
        current_app.logger.warning("Lottery reconciliation alert: %s", outcome.alert)
    else:
        current_app.logger.info(
            "Lottery count recorded for book %s: physical=%d variance=%d",
            book_id, outcome.count.physical_remaining, outcome.count.variance,
        )
    return outcome


def approve_count(count_id: int, location_id: int, approved_by: str) -> LotteryDailyCount:
    """
    Manager sign-off on a count (typically a flagged one).

    The review stamp is written once; the counted figures never change.

    Raises:
        CountNotFoundError: unknown count at this location
        InvalidStateError: count already approved
    """
    approved_by = optional_text("approved_by", approved_by, max_length=120)
    if approved_by is None:
        raise ValidationError("approved_by is required")

    def _op():
        require_location(location_id)
        count = lock_for_update(
            db.session.query(LotteryDailyCount).filter_by(id=count_id, location_id=location_id)
        ).first()
        if count is None:
            raise CountNotFoundError(f"Count {count_id} not found at location {location_id}")
        if count.approved_at is not None:
            raise InvalidStateError(f"Count {count_id} already approved by {count.approved_by}")

        count.approved_by = approved_by
        count.approved_at = utcnow()
        append_lottery_event(
            location_id=location_id,
            book_id=count.book_id,
            event_type=book_state.COUNT_APPROVED,
            actor=approved_by,
            payload={"count_id": count.id, "flag": count.flag},
        )
        return count

    return run_atomic(_op)


def list_counts(
    location_id: int,
    *,
    book_id: int | None = None,
    count_date: date | str | None = None,
) -> list[LotteryDailyCount]:
    require_location(location_id)
    q = db.session.query(LotteryDailyCount).filter_by(location_id=location_id)
    if book_id is not None:
        q = q.filter_by(book_id=book_id)
    if count_date is not None:
        try:
            q = q.filter_by(count_date=parse_business_date(count_date))
        except ValueError:
            raise ValidationError("count_date must be YYYY-MM-DD")
    return q.order_by(LotteryDailyCount.id.asc()).all()


def list_unresolved_counts(location_id: int) -> list[LotteryDailyCount]:
    """Flagged counts still waiting for a manager (review queue)."""
    require_location(location_id)
    return (
        db.session.query(LotteryDailyCount)
        .filter(
            LotteryDailyCount.location_id == location_id,
            LotteryDailyCount.flag != FLAG_NONE,
            LotteryDailyCount.approved_at.is_(None),
        )
        .order_by(LotteryDailyCount.created_at.desc(), LotteryDailyCount.id.desc())
        .all()
    )
