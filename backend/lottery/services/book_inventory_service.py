# Overview: Service-layer operations for lottery book inventory; owns every book mutation.

"""
Lottery Book Inventory Service

================================================================================
PURPOSE: Receive, activate, consume, sell out, settle and archive ticket books
================================================================================

WHY THIS EXISTS:
- The store answers to the commission for every ticket of every book it received
- The ticket pointer is the only record of how far a book has sold
- Reconciliation and settlement change books only through this module

INVARIANTS:
1. ticket_start <= current_ticket <= ticket_end + 1, after every operation
2. current_ticket never decreases
3. Status only moves forward (see book_state.py)
4. A SETTLED book has exactly one LotterySettlement

Every public mutation runs as one atomic unit under a row lock on the book
(run_atomic + lock_for_update). The apply_* helpers are the same rules for
callers that already hold the book inside their own transaction
(reconciliation_service, settlement_service).
================================================================================
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import LotteryBook, LotteryGame, LotterySettlement
from ..errors import (
    AlreadySettledError,
    BookNotFoundError,
    GameNotFoundError,
    InvalidRangeError,
    InvalidStateError,
    RangeExceededError,
    RegressionError,
    ValidationError,
)
from ..validation import coerce_int, coerce_optional_int, require_text, optional_text
from ..time_utils import utcnow, today, parse_business_date
from . import book_state
from .book_state import BookTransitionError, Transition
from .concurrency import run_atomic, lock_for_update
from .game_catalog_service import GAME_STATUS_ACTIVE
from .ledger_service import append_book_events
from .location_service import require_location


# =============================================================================
# LOOKUPS
# =============================================================================

def get_book(book_id: int, location_id: int) -> LotteryBook:
    """
    Fetch a book scoped to a location.

    A book at another location is reported as not found.
    """
    require_location(location_id)
    book = db.session.query(LotteryBook).filter_by(id=book_id, location_id=location_id).first()
    if book is None:
        raise BookNotFoundError(f"Book {book_id} not found at location {location_id}")
    return book


def load_book_for_update(book_id: int, location_id: int) -> LotteryBook:
    """Row-locked fetch for read-modify-write inside a transaction."""
    require_location(location_id)
    book = lock_for_update(
        db.session.query(LotteryBook).filter_by(id=book_id, location_id=location_id)
    ).first()
    if book is None:
        raise BookNotFoundError(f"Book {book_id} not found at location {location_id}")
    return book


def list_books(
    location_id: int,
    *,
    status: str | None = None,
    game_id: int | None = None,
) -> list[LotteryBook]:
    require_location(location_id)
    q = db.session.query(LotteryBook).filter_by(location_id=location_id)
    if status is not None:
        if status not in book_state.VALID_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(sorted(book_state.VALID_STATUSES))}"
            )
        q = q.filter_by(status=status)
    if game_id is not None:
        q = q.filter_by(game_id=game_id)
    return q.order_by(LotteryBook.game_name.asc(), LotteryBook.book_number.asc()).all()


def book_progress(book: LotteryBook) -> dict:
    """Sell-through figures derived from the pointer."""
    return {
        "total_tickets": book.total_tickets,
        "tickets_sold": book.tickets_sold,
        "expected_remaining": book.expected_remaining,
    }


# =============================================================================
# IN-TRANSACTION RULES
# =============================================================================

def apply_transition(book: LotteryBook, event: str, *, actor: str | None = None,
                     note: str | None = None, payload: dict | None = None) -> Transition:
    """
    Move a locked book through the state machine and log derived events.

    Raises:
        InvalidStateError: event not allowed from the book's status
    """
    try:
        result = book_state.transition(book.status, event)
    except BookTransitionError as e:
        raise InvalidStateError(f"Book {book.id} ({book.game_name} #{book.book_number}): {e}")

    book.status = result.to_status
    append_book_events(book, result.events, actor=actor, note=note, payload=payload)
    return result


def apply_consumption(book: LotteryBook, new_current_ticket: int) -> bool:
    """
    Move the pointer of a locked ACTIVE book forward.

    Returns True when the pointer moved, False when it was already there.

    Raises:
        InvalidStateError: book not ACTIVE
        RegressionError: new pointer below the current one
        RangeExceededError: new pointer past ticket_end + 1
    """
    if book.status != book_state.STATUS_ACTIVE:
        raise InvalidStateError(
            f"Cannot advance ticket pointer on book {book.id}: current status is '{book.status}', must be 'ACTIVE'"
        )
    if new_current_ticket < book.current_ticket:
        raise RegressionError(book.id, book.current_ticket, new_current_ticket)
    if new_current_ticket > book.ticket_end + 1:
        raise RangeExceededError(book.id, book.ticket_end, new_current_ticket)
    if new_current_ticket == book.current_ticket:
        return False

    before = book.current_ticket
    book.current_ticket = new_current_ticket
    append_book_events(
        book,
        (book_state.POINTER_ADVANCED,),
        payload={"from": before, "to": new_current_ticket},
    )
    return True


def apply_sold_out(book: LotteryBook, *, actor: str | None = None) -> Transition:
    """
    Close out a physically empty book.

    The pointer is forced to ticket_end + 1 regardless of where counts left
    it: an empty book is accounted as fully sold.
    """
    before = book.current_ticket
    result = apply_transition(
        book,
        book_state.EVENT_SELL_OUT,
        actor=actor,
        payload={"pointer_before": before, "pointer_after": book.ticket_end + 1},
    )
    book.current_ticket = book.ticket_end + 1
    book.sold_out_date = utcnow()
    return result


def apply_settlement(book: LotteryBook, settlement: LotterySettlement, *,
                     actor: str | None = None) -> Transition:
    """
    Mark a locked book SETTLED against its settlement record.

    Raises:
        AlreadySettledError: another settlement already references the book
    """
    if settlement.book_id != book.id:
        raise ValidationError(f"Settlement {settlement.id} belongs to book {settlement.book_id}, not book {book.id}")

    existing = (
        db.session.query(LotterySettlement)
        .filter(LotterySettlement.book_id == book.id, LotterySettlement.id != settlement.id)
        .first()
    )
    if existing is not None:
        raise AlreadySettledError(f"Book {book.id} already settled (settlement {existing.id})")

    result = apply_transition(
        book,
        book_state.EVENT_SETTLE,
        actor=actor,
        payload={"settlement_id": settlement.id, "net_due_cents": settlement.net_due_cents},
    )
    book.settled_date = utcnow()
    return result


# =============================================================================
# RECEIVING
# =============================================================================

def _find_overlapping_book(location_id: int, book_number: str, ticket_start: int,
                           ticket_end: int) -> LotteryBook | None:
    return (
        db.session.query(LotteryBook)
        .filter(
            LotteryBook.location_id == location_id,
            LotteryBook.book_number == book_number,
            LotteryBook.status != book_state.STATUS_ARCHIVED,
            LotteryBook.ticket_start <= ticket_end,
            LotteryBook.ticket_end >= ticket_start,
        )
        .first()
    )


def receive_book(
    *,
    location_id: int,
    game_id: int,
    book_number: str,
    ticket_start: int | None = None,
    ticket_end: int | None = None,
    received_by: str | None = None,
    received_date: date | str | None = None,
) -> LotteryBook:
    """
    Record a book delivered by the commission (status: IN_STOCK).

    Args:
        location_id: Location receiving the book
        game_id: Catalog game printed on the pack
        book_number: Pack number as printed (leading zeros kept)
        ticket_start: First ticket number; defaults to LOTTERY_TICKET_NUMBER_BASE
        ticket_end: Last ticket number; defaults to start + tickets_per_book - 1
        received_by: Identity string of the receiving operator
        received_date: Business date of receipt (defaults to today)

    Raises:
        InvalidRangeError: inverted, negative, wrongly sized or overlapping range
        InvalidStateError: game is not ACTIVE
    """
    book_number = require_text("book_number", book_number, max_length=32)
    received_by = optional_text("received_by", received_by, max_length=120)
    start = coerce_optional_int("ticket_start", ticket_start)
    end = coerce_optional_int("ticket_end", ticket_end)
    try:
        received_on = parse_business_date(received_date) or today()
    except ValueError:
        raise ValidationError("received_date must be YYYY-MM-DD")

    def _op():
        require_location(location_id)
        game = db.session.get(LotteryGame, game_id)
        if game is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        if game.status != GAME_STATUS_ACTIVE:
            raise InvalidStateError(f"Game {game.game_number} is {game.status}; cannot receive new books")

        first = start if start is not None else int(current_app.config.get("LOTTERY_TICKET_NUMBER_BASE", 0))
        last = end if end is not None else first + game.tickets_per_book - 1

        if first < 0:
            raise InvalidRangeError(f"ticket_start must be >= 0, got {first}")
        if first > last:
            raise InvalidRangeError(f"ticket_start {first} is after ticket_end {last}")

        size = last - first + 1
        if current_app.config.get("LOTTERY_ENFORCE_BOOK_SIZE", True) and size != game.tickets_per_book:
            raise InvalidRangeError(
                f"Range {first}-{last} holds {size} tickets but game {game.game_number} "
                f"books hold {game.tickets_per_book}"
            )

        clash = _find_overlapping_book(location_id, book_number, first, last)
        if clash is not None:
            raise InvalidRangeError(
                f"Book {book_number} tickets {first}-{last} overlap book {clash.id} "
                f"({clash.ticket_start}-{clash.ticket_end}, {clash.status}) at this location"
            )

        book = LotteryBook(
            location_id=location_id,
            game_id=game.id,
            game_name=game.name,
            book_number=book_number,
            ticket_start=first,
            ticket_end=last,
            current_ticket=first,
            status=book_state.STATUS_IN_STOCK,
            received_date=received_on,
            received_by=received_by,
        )
        db.session.add(book)
        db.session.flush()

        append_book_events(
            book,
            (book_state.BOOK_RECEIVED,),
            actor=received_by,
            payload={"game_number": game.game_number, "ticket_start": first, "ticket_end": last},
        )
        return book

    book = run_atomic(_op)
    current_app.logger.info(
        "Received lottery book %s #%s at location %s", book.game_name, book.book_number, location_id
    )
    return book


# =============================================================================
# LIFECYCLE OPERATIONS
# =============================================================================

def activate_book(book_id: int, location_id: int, register: str, *, actor: str | None = None) -> LotteryBook:
    """
    Put an IN_STOCK book on sale at a register (IN_STOCK -> ACTIVE).

    Raises:
        InvalidStateError: book is not IN_STOCK
    """
    register = require_text("register", register, max_length=64)

    def _op():
        book = load_book_for_update(book_id, location_id)
        apply_transition(book, book_state.EVENT_ACTIVATE, actor=actor, payload={"register": register})
        book.activation_date = utcnow()
        book.assigned_register = register
        return book

    book = run_atomic(_op)
    current_app.logger.info("Activated lottery book %s on register %s", book_id, register)
    return book


def advance_consumption(book_id: int, location_id: int, new_current_ticket: int) -> LotteryBook:
    """
    Move the ticket pointer forward.

    Normally driven by reconciliation_service; exposed for corrections that
    arrive as an explicit "next ticket" number.

    Raises:
        RegressionError: pointer would move backward
        RangeExceededError: pointer past ticket_end + 1
    """
    new_current_ticket = coerce_int("new_current_ticket", new_current_ticket)

    def _op():
        book = load_book_for_update(book_id, location_id)
        apply_consumption(book, new_current_ticket)
        return book

    return run_atomic(_op)


def mark_sold_out(book_id: int, location_id: int, *, actor: str | None = None) -> LotteryBook:
    """
    Manager action: the book is physically empty (ACTIVE -> PENDING_SETTLEMENT).

    Forces the pointer to ticket_end + 1, overriding any count gap.
    """
    def _op():
        book = load_book_for_update(book_id, location_id)
        apply_sold_out(book, actor=actor)
        return book

    book = run_atomic(_op)
    current_app.logger.info("Lottery book %s marked sold out", book_id)
    return book


def return_book(book_id: int, location_id: int, *, actor: str | None = None) -> LotteryBook:
    """
    Pull an ACTIVE book from sale and send unsold tickets back for credit.

    The pointer stays where the last count left it; settlement bills only
    tickets sold and reports the rest as returned.
    """
    def _op():
        book = load_book_for_update(book_id, location_id)
        apply_transition(
            book,
            book_state.EVENT_RETURN,
            actor=actor,
            payload={"tickets_sold": book.tickets_sold, "tickets_returned": book.expected_remaining},
        )
        book.returned_date = utcnow()
        return book

    book = run_atomic(_op)
    current_app.logger.info(
        "Lottery book %s returned with %d unsold ticket(s)", book_id, book.expected_remaining
    )
    return book


def record_settlement(book_id: int, location_id: int, settlement: LotterySettlement, *,
                      actor: str | None = None) -> LotteryBook:
    """
    Mark a book SETTLED against an already persisted settlement.

    Raises:
        AlreadySettledError: a different settlement already references the book
        InvalidStateError: book is not PENDING_SETTLEMENT or SOLD_OUT
    """
    def _op():
        book = load_book_for_update(book_id, location_id)
        apply_settlement(book, settlement, actor=actor)
        return book

    return run_atomic(_op)


def archive_book(book_id: int, location_id: int, *, actor: str | None = None) -> LotteryBook:
    """Administrative retirement of a SETTLED book (SETTLED -> ARCHIVED)."""
    def _op():
        book = load_book_for_update(book_id, location_id)
        apply_transition(book, book_state.EVENT_ARCHIVE, actor=actor)
        book.archived_date = utcnow()
        return book

    return run_atomic(_op)
