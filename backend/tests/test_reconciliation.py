"""
Tests for daily count reconciliation against the ticket pointer.
"""

import logging
from datetime import date

import pytest

from lottery.errors import (
    BookNotFoundError,
    CountNotFoundError,
    InvalidRangeError,
    InvalidStateError,
    ReasonCodeRequiredError,
    ValidationError,
)
from lottery.models import LotteryDailyCount
from lottery.services import (
    book_inventory_service,
    book_state,
    game_catalog_service,
    ledger_service,
    reconciliation_service,
)
from lottery.services.reconciliation_service import FLAG_NONE, FLAG_REGRESSION


COUNT_DATE = date(2026, 3, 1)


def _count(book, location, physical, **kwargs):
    return reconciliation_service.record_daily_count(book.id, location.id, COUNT_DATE, physical, **kwargs)


def test_count_advances_pointer(active_book, location):
    outcome = _count(active_book, location, 40, logged_by="clerk")
    count = outcome.count

    assert count.expected_remaining == 100
    assert count.physical_remaining == 40
    assert count.variance == -60
    assert count.variance_amount_cents == -30000
    assert count.pointer_before == 1
    assert count.pointer_after == 61
    assert count.tickets_sold == 60
    assert count.flag == FLAG_NONE
    assert outcome.alert is None
    assert outcome.pointer_moved
    assert outcome.events == (book_state.COUNT_RECORDED, book_state.POINTER_ADVANCED)

    book = book_inventory_service.get_book(active_book.id, location.id)
    assert book.current_ticket == 61
    assert book.status == book_state.STATUS_ACTIVE


def test_count_of_zero_sells_out_book(active_book, location):
    outcome = _count(active_book, location, 0)

    assert outcome.count.variance == -100
    assert outcome.count.pointer_after == 101
    assert outcome.sold_out
    assert book_state.SETTLEMENT_PENDING in outcome.events

    book = book_inventory_service.get_book(active_book.id, location.id)
    assert book.current_ticket == 101
    assert book.status == book_state.STATUS_PENDING_SETTLEMENT
    assert book.sold_out_date is not None


def test_regressive_count_is_flagged_not_applied(active_book, location, caplog):
    _count(active_book, location, 40)

    with caplog.at_level(logging.WARNING):
        outcome = _count(active_book, location, 50, reason_code="MISCOUNT", notes="recount tomorrow")

    count = outcome.count
    assert count.flag == FLAG_REGRESSION
    assert count.variance == 10
    assert count.variance_amount_cents == 5000
    assert count.reason_code == "MISCOUNT"
    assert count.pointer_before == count.pointer_after == 61
    assert count.tickets_sold == 0
    assert outcome.alert is not None
    assert "from 61 to 51" in outcome.alert
    assert book_state.COUNT_REGRESSION_FLAGGED in outcome.events
    assert "backward" in caplog.text

    book = book_inventory_service.get_book(active_book.id, location.id)
    assert book.current_ticket == 61


def test_positive_variance_requires_reason_code(active_book, location, db_session):
    _count(active_book, location, 40)

    with pytest.raises(ReasonCodeRequiredError):
        _count(active_book, location, 50)
    # ReasonCodeRequiredError is a ValidationError
    with pytest.raises(ValidationError):
        _count(active_book, location, 45, reason_code="  ")

    assert db_session.query(LotteryDailyCount).count() == 1
    assert book_inventory_service.get_book(active_book.id, location.id).current_ticket == 61


def test_count_failure_rolls_back_pointer_and_status(active_book, location, db_session, monkeypatch):
    def _fail(**kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(reconciliation_service, "append_lottery_event", _fail)
    with pytest.raises(RuntimeError):
        _count(active_book, location, 0)

    book = book_inventory_service.get_book(active_book.id, location.id)
    assert book.current_ticket == 1
    assert book.status == book_state.STATUS_ACTIVE
    assert book.sold_out_date is None
    assert db_session.query(LotteryDailyCount).count() == 0
    events = [e.event_type for e in ledger_service.list_book_events(active_book.id, location.id)]
    assert book_state.SOLD_OUT_DETECTED not in events


def test_unknown_reason_code_rejected(active_book, location):
    with pytest.raises(ValidationError):
        _count(active_book, location, 40, reason_code="LOST_IT")


def test_reason_code_normalized(active_book, location):
    _count(active_book, location, 40)
    outcome = _count(active_book, location, 41, reason_code="pointer_error")
    assert outcome.count.reason_code == "POINTER_ERROR"


def test_count_equal_to_expected_is_noop_on_pointer(active_book, location):
    _count(active_book, location, 40)
    outcome = _count(active_book, location, 40)
    assert outcome.count.variance == 0
    assert not outcome.pointer_moved
    assert outcome.events == (book_state.COUNT_RECORDED,)


def test_physical_outside_range_rejected(active_book, location, db_session):
    with pytest.raises(InvalidRangeError):
        _count(active_book, location, -1)
    with pytest.raises(InvalidRangeError):
        _count(active_book, location, 101)
    assert db_session.query(LotteryDailyCount).count() == 0


def test_count_requires_active_book(book, location):
    with pytest.raises(InvalidStateError):
        _count(book, location, 50)


def test_count_at_wrong_location_fails(active_book, other_location):
    with pytest.raises(BookNotFoundError):
        _count(active_book, other_location, 50)


def test_non_integer_physical_rejected(active_book, location):
    with pytest.raises(ValidationError):
        _count(active_book, location, "12.5")


def test_multiple_counts_same_day_each_persist(active_book, location):
    _count(active_book, location, 90)
    _count(active_book, location, 80)
    _count(active_book, location, 70)

    counts = reconciliation_service.list_counts(location.id, book_id=active_book.id, count_date=COUNT_DATE)
    assert [c.physical_remaining for c in counts] == [90, 80, 70]
    assert [c.tickets_sold for c in counts] == [10, 10, 10]


def test_variance_uses_current_catalog_price(active_book, location, game, db_session):
    # Terms are frozen while books are live, so price a fresh book on a superseded game
    new_game = game_catalog_service.supersede_game(game.id, new_game_number="1299", ticket_price_cents=1000)
    book = book_inventory_service.receive_book(
        location_id=location.id, game_id=new_game.id, book_number="0900", ticket_start=1, ticket_end=100,
    )
    book_inventory_service.activate_book(book.id, location.id, "REG-02")

    outcome = _count(book, location, 90)
    assert outcome.count.ticket_price_cents == 1000
    assert outcome.count.variance_amount_cents == -10000


def test_count_writes_ledger_events(active_book, location):
    outcome = _count(active_book, location, 40, logged_by="clerk")
    events = ledger_service.list_book_events(active_book.id, location.id)
    types = [e.event_type for e in events]
    assert types[-2:] == [book_state.POINTER_ADVANCED, book_state.COUNT_RECORDED]
    assert events[-1].actor == "clerk"
    assert str(outcome.count.id) in events[-1].payload


def test_pointer_never_decreases_across_counts(active_book, location):
    pointers = []
    for physical, reason in ((90, None), (95, "MISCOUNT"), (70, None), (75, "DAMAGED"), (10, None)):
        outcome = _count(active_book, location, physical, reason_code=reason)
        pointers.append(outcome.count.pointer_after)
    assert pointers == sorted(pointers)
    assert pointers[-1] == 91


# =============================================================================
# REVIEW QUEUE
# =============================================================================

def test_unresolved_counts_and_approval(active_book, location):
    _count(active_book, location, 40)
    flagged = _count(active_book, location, 50, reason_code="MISFILED").count

    pending = reconciliation_service.list_unresolved_counts(location.id)
    assert [c.id for c in pending] == [flagged.id]

    approved = reconciliation_service.approve_count(flagged.id, location.id, "manager")
    assert approved.approved_by == "manager"
    assert approved.approved_at is not None
    # Counted figures untouched by approval
    assert approved.physical_remaining == 50
    assert approved.flag == FLAG_REGRESSION

    assert reconciliation_service.list_unresolved_counts(location.id) == []


def test_approve_count_twice_fails(active_book, location):
    count = _count(active_book, location, 40).count
    reconciliation_service.approve_count(count.id, location.id, "manager")
    with pytest.raises(InvalidStateError):
        reconciliation_service.approve_count(count.id, location.id, "owner")


def test_approve_unknown_count(location):
    with pytest.raises(CountNotFoundError):
        reconciliation_service.approve_count(12345, location.id, "manager")


def test_approve_requires_approver(active_book, location):
    count = _count(active_book, location, 40).count
    with pytest.raises(ValidationError):
        reconciliation_service.approve_count(count.id, location.id, "")
