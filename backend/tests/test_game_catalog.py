"""
Tests for the lottery game catalog: registration, frozen terms, supersession.
"""

import pytest

from lottery.errors import (
    DuplicateGameNumberError,
    GameInUseError,
    GameNotFoundError,
    InvalidStateError,
    ValidationError,
)
from lottery.models import LotteryGame
from lottery.services import book_inventory_service, game_catalog_service, settlement_service


def test_add_game_stores_cents_and_bps(game):
    assert game.id is not None
    assert game.ticket_price_cents == 500
    assert game.tickets_per_book == 100
    assert game.commission_rate_bps == 500
    assert game.status == game_catalog_service.GAME_STATUS_ACTIVE


def test_add_game_rejects_duplicate_number(game):
    with pytest.raises(DuplicateGameNumberError):
        game_catalog_service.add_game(
            game_number="1234",
            name="Another",
            ticket_price_cents=100,
            tickets_per_book=50,
            commission_rate_bps=0,
        )


@pytest.mark.parametrize("price,size,bps", [
    (0, 100, 500),
    (-100, 100, 500),
    (500, 0, 500),
    (500, 100, -1),
    (500, 100, 10000),
])
def test_add_game_rejects_bad_terms(db_session, price, size, bps):
    with pytest.raises(ValidationError):
        game_catalog_service.add_game(
            game_number="9999",
            name="Bad",
            ticket_price_cents=price,
            tickets_per_book=size,
            commission_rate_bps=bps,
        )
    assert db_session.query(LotteryGame).count() == 0


def test_lookup_by_id_and_number(game):
    assert game_catalog_service.get_game(game.id).name == "Lucky 7s"
    assert game_catalog_service.get_game_by_number(" 1234 ").id == game.id
    with pytest.raises(GameNotFoundError):
        game_catalog_service.get_game(game.id + 100)
    with pytest.raises(GameNotFoundError):
        game_catalog_service.get_game_by_number("0000")


def test_update_terms_allowed_without_books(game):
    updated = game_catalog_service.update_game_terms(game.id, ticket_price_cents=1000)
    assert updated.ticket_price_cents == 1000
    assert updated.commission_rate_bps == 500


def test_update_terms_refused_while_books_live(game, book):
    with pytest.raises(GameInUseError):
        game_catalog_service.update_game_terms(game.id, commission_rate_bps=600)
    # GameInUseError is an InvalidStateError
    with pytest.raises(InvalidStateError):
        game_catalog_service.update_game_terms(game.id, ticket_price_cents=1000)
    assert game_catalog_service.get_game(game.id).ticket_price_cents == 500


def test_update_terms_allowed_once_books_archived(game, active_book, location):
    book_inventory_service.mark_sold_out(active_book.id, location.id)
    settlement_service.settle_book(active_book.id, location.id)
    book_inventory_service.archive_book(active_book.id, location.id)

    updated = game_catalog_service.update_game_terms(game.id, commission_rate_bps=600)
    assert updated.commission_rate_bps == 600


def test_supersede_creates_new_game_and_retires_old(game, book):
    new = game_catalog_service.supersede_game(game.id, new_game_number="1299", ticket_price_cents=1000)

    old = game_catalog_service.get_game(game.id)
    assert old.status == game_catalog_service.GAME_STATUS_INACTIVE
    assert old.superseded_by_game_id == new.id
    assert old.deactivated_at is not None
    assert old.ticket_price_cents == 500

    assert new.status == game_catalog_service.GAME_STATUS_ACTIVE
    assert new.ticket_price_cents == 1000
    assert new.tickets_per_book == 100
    assert new.name == "Lucky 7s"

    # Existing books keep their game
    assert book.game_id == game.id
    assert [g.game_number for g in game_catalog_service.list_active_games()] == ["1299"]


def test_supersede_inactive_game_fails(game):
    game_catalog_service.deactivate_game(game.id)
    with pytest.raises(InvalidStateError):
        game_catalog_service.supersede_game(game.id, new_game_number="1300")


def test_supersede_race_on_game_number_reports_duplicate(game, monkeypatch):
    game_catalog_service.add_game(
        game_number="1300",
        name="Other",
        ticket_price_cents=100,
        tickets_per_book=50,
        commission_rate_bps=0,
    )
    # Another supersede claimed the number after this one checked it
    monkeypatch.setattr(game_catalog_service, "_game_number_taken", lambda game_number: False)

    with pytest.raises(DuplicateGameNumberError):
        game_catalog_service.supersede_game(game.id, new_game_number="1300")

    old = game_catalog_service.get_game(game.id)
    assert old.status == game_catalog_service.GAME_STATUS_ACTIVE
    assert old.superseded_by_game_id is None


def test_deactivated_game_cannot_receive_books(game, location):
    game_catalog_service.deactivate_game(game.id)
    with pytest.raises(InvalidStateError):
        book_inventory_service.receive_book(
            location_id=location.id,
            game_id=game.id,
            book_number="0001",
            ticket_start=1,
            ticket_end=100,
        )


def test_list_active_games_sorted_by_number(db_session):
    for number in ("300", "100", "200"):
        game_catalog_service.add_game(
            game_number=number,
            name=f"Game {number}",
            ticket_price_cents=100,
            tickets_per_book=50,
            commission_rate_bps=0,
        )
    assert [g.game_number for g in game_catalog_service.list_active_games()] == ["100", "200", "300"]
