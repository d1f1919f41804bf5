# Overview: Computes and records the financial closeout of retired lottery books.

"""
Lottery Settlement Service

WHY: When a book leaves sale (sold out or returned) the store owes the
commission for every ticket sold, less its commission. The settlement is
the single record of that amount and must never be computed twice.

AMOUNTS (integer cents):
    total      = ticket_end - ticket_start + 1
    sold       = clamp(current_ticket - ticket_start, 0, total)
    returned   = total - sold
    gross      = sold * ticket_price_cents
    commission = round_half_up(gross * commission_rate_bps / 10000)
    net        = gross - commission

Price and rate come from the catalog at settlement time and are frozen on
the record.

LIFECYCLE:
1. settle_book(): PENDING settlement written, book -> SETTLED
2. approve_settlement(): PENDING -> APPROVED (no recomputation)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LotterySettlement
from ..errors import (
    DuplicateSettlementError,
    InvalidStateError,
    SettlementNotFoundError,
    ValidationError,
)
from ..validation import apply_rate_bps, optional_text
from ..time_utils import utcnow, today, parse_business_date
from . import book_state
from .book_inventory_service import load_book_for_update, apply_settlement
from .concurrency import run_atomic, lock_for_update
from .ledger_service import append_lottery_event
from .location_service import require_location


# Settlement status constants
SETTLEMENT_STATUS_PENDING = "PENDING"
SETTLEMENT_STATUS_APPROVED = "APPROVED"

VALID_SETTLEMENT_STATUSES = {SETTLEMENT_STATUS_PENDING, SETTLEMENT_STATUS_APPROVED}


@dataclass(frozen=True)
class SettlementAmounts:
    total_tickets: int
    tickets_sold: int
    tickets_returned: int
    gross_sales_cents: int
    commission_cents: int
    net_due_cents: int


def compute_settlement_amounts(
    ticket_start: int,
    ticket_end: int,
    current_ticket: int,
    ticket_price_cents: int,
    commission_rate_bps: int,
) -> SettlementAmounts:
    """Pure settlement arithmetic; commission + net always equals gross."""
    total = ticket_end - ticket_start + 1
    sold = min(max(current_ticket - ticket_start, 0), total)
    gross = sold * ticket_price_cents
    commission = apply_rate_bps(gross, commission_rate_bps)
    return SettlementAmounts(
        total_tickets=total,
        tickets_sold=sold,
        tickets_returned=total - sold,
        gross_sales_cents=gross,
        commission_cents=commission,
        net_due_cents=gross - commission,
    )


def _existing_settlement(book_id: int) -> LotterySettlement | None:
    return db.session.query(LotterySettlement).filter_by(book_id=book_id).first()


def settle_book(
    book_id: int,
    location_id: int,
    settled_by: str | None = None,
    settlement_date: date | str | None = None,
) -> LotterySettlement:
    """
    Compute and record the settlement of a retired book.

    Raises:
        BookNotFoundError: unknown book at this location
        DuplicateSettlementError: the book already has a settlement
        InvalidStateError: book is not PENDING_SETTLEMENT or SOLD_OUT
    """
    settled_by = optional_text("settled_by", settled_by, max_length=120)
    try:
        settled_on = parse_business_date(settlement_date) or today()
    except ValueError:
        raise ValidationError("settlement_date must be YYYY-MM-DD")

    def _op():
        book = load_book_for_update(book_id, location_id)

        # Checked before status so a settled or archived book reports the duplicate
        existing = _existing_settlement(book.id)
        if existing is not None:
            raise DuplicateSettlementError(
                f"Book {book.id} ({book.game_name} #{book.book_number}) already has settlement {existing.id}"
            )
        if book.status not in book_state.SETTLEABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot settle book {book.id}: current status is '{book.status}', "
                f"must be one of {', '.join(sorted(book_state.SETTLEABLE_STATUSES))}"
            )

        game = book.game
        amounts = compute_settlement_amounts(
            book.ticket_start,
            book.ticket_end,
            book.current_ticket,
            game.ticket_price_cents,
            game.commission_rate_bps,
        )

        settlement = LotterySettlement(
            location_id=book.location_id,
            book_id=book.id,
            game_name=game.name,
            book_number=book.book_number,
            total_tickets=amounts.total_tickets,
            tickets_sold=amounts.tickets_sold,
            tickets_returned=amounts.tickets_returned,
            ticket_price_cents=game.ticket_price_cents,
            commission_rate_bps=game.commission_rate_bps,
            gross_sales_cents=amounts.gross_sales_cents,
            commission_cents=amounts.commission_cents,
            net_due_cents=amounts.net_due_cents,
            settlement_date=settled_on,
            status=SETTLEMENT_STATUS_PENDING,
            settled_by=settled_by,
        )
        label = f"Book {book_id} ({book.game_name} #{book.book_number})"
        db.session.add(settlement)
        try:
            db.session.flush()
        except IntegrityError:
            # The failed flush expires the book; only plain values are safe here
            raise DuplicateSettlementError(f"{label} already has a settlement")

        apply_settlement(book, settlement, actor=settled_by)
        return settlement

    settlement = run_atomic(_op)
    current_app.logger.info(
        "Settled lottery book %s: sold=%d gross=%d commission=%d net=%d",
        book_id,
        settlement.tickets_sold,
        settlement.gross_sales_cents,
        settlement.commission_cents,
        settlement.net_due_cents,
    )
    return settlement


def approve_settlement(settlement_id: int, location_id: int, approved_by: str) -> LotterySettlement:
    """Manager acknowledgement of a PENDING settlement. Amounts are not recomputed."""
    approved_by = optional_text("approved_by", approved_by, max_length=120)
    if approved_by is None:
        raise ValidationError("approved_by is required")

    def _op():
        require_location(location_id)
        settlement = lock_for_update(
            db.session.query(LotterySettlement).filter_by(id=settlement_id, location_id=location_id)
        ).first()
        if settlement is None:
            raise SettlementNotFoundError(f"Settlement {settlement_id} not found at location {location_id}")
        if settlement.status != SETTLEMENT_STATUS_PENDING:
            raise InvalidStateError(
                f"Cannot approve settlement {settlement_id}: current status is '{settlement.status}', must be 'PENDING'"
            )

        settlement.status = SETTLEMENT_STATUS_APPROVED
        settlement.approved_by = approved_by
        settlement.approved_at = utcnow()
        append_lottery_event(
            location_id=location_id,
            book_id=settlement.book_id,
            event_type=book_state.SETTLEMENT_APPROVED,
            actor=approved_by,
            payload={"settlement_id": settlement.id, "net_due_cents": settlement.net_due_cents},
        )
        return settlement

    settlement = run_atomic(_op)
    current_app.logger.info("Lottery settlement %s approved by %s", settlement_id, approved_by)
    return settlement


def get_settlement(settlement_id: int, location_id: int) -> LotterySettlement:
    require_location(location_id)
    settlement = (
        db.session.query(LotterySettlement).filter_by(id=settlement_id, location_id=location_id).first()
    )
    if settlement is None:
        raise SettlementNotFoundError(f"Settlement {settlement_id} not found at location {location_id}")
    return settlement


def list_settlements(location_id: int, status: str | None = None) -> list[LotterySettlement]:
    require_location(location_id)
    q = db.session.query(LotterySettlement).filter_by(location_id=location_id)
    if status is not None:
        if status not in VALID_SETTLEMENT_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_SETTLEMENT_STATUSES))}"
            )
        q = q.filter_by(status=status)
    return q.order_by(LotterySettlement.settlement_date.desc(), LotterySettlement.id.desc()).all()
