# Overview: Service-layer operations for the lottery game catalog.

"""
Game Catalog Service

WHY: Books, counts and settlements all price tickets from the catalog.
A settlement must reproduce the terms in effect when it was computed, so
a game's price and commission rate are frozen as soon as a live book uses
them; a changed term means a new game that supersedes the old one.

READ-MOSTLY: games are added a few times a month and read on every count.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LotteryGame, LotteryBook
from ..errors import DuplicateGameNumberError, GameInUseError, GameNotFoundError, InvalidStateError
from ..validation import coerce_int, enforce_rules_game, require_text
from ..time_utils import utcnow
from .book_state import STATUS_ARCHIVED
from .concurrency import run_atomic, lock_for_update


GAME_STATUS_ACTIVE = "ACTIVE"
GAME_STATUS_INACTIVE = "INACTIVE"


def _normalize_terms(ticket_price_cents, tickets_per_book, commission_rate_bps) -> dict:
    patch = {
        "ticket_price_cents": coerce_int("ticket_price_cents", ticket_price_cents),
        "tickets_per_book": coerce_int("tickets_per_book", tickets_per_book),
        "commission_rate_bps": coerce_int("commission_rate_bps", commission_rate_bps),
    }
    enforce_rules_game(patch)
    return patch


def _game_number_taken(game_number: str) -> bool:
    return db.session.query(LotteryGame.id).filter_by(game_number=game_number).first() is not None


def add_game(
    *,
    game_number: str,
    name: str,
    ticket_price_cents: int,
    tickets_per_book: int,
    commission_rate_bps: int,
) -> LotteryGame:
    """
    Register a new game in the catalog.

    Raises:
        ValidationError: bad price, size or rate
        DuplicateGameNumberError: game_number already registered
    """
    game_number = require_text("game_number", game_number, max_length=32)
    name = require_text("name", name, max_length=255)
    terms = _normalize_terms(ticket_price_cents, tickets_per_book, commission_rate_bps)

    def _op():
        if _game_number_taken(game_number):
            raise DuplicateGameNumberError(f"Game number '{game_number}' already exists in the catalog")

        game = LotteryGame(game_number=game_number, name=name, status=GAME_STATUS_ACTIVE, **terms)
        db.session.add(game)
        try:
            db.session.flush()
        except IntegrityError:
            raise DuplicateGameNumberError(f"Game number '{game_number}' already exists in the catalog")
        return game

    game = run_atomic(_op)
    current_app.logger.info("Added lottery game %s (%s)", game.game_number, game.name)
    return game


def get_game(game_id: int) -> LotteryGame:
    game = db.session.get(LotteryGame, game_id)
    if game is None:
        raise GameNotFoundError(f"Game {game_id} not found")
    return game


def get_game_by_number(game_number: str) -> LotteryGame:
    game = db.session.query(LotteryGame).filter_by(game_number=str(game_number).strip()).first()
    if game is None:
        raise GameNotFoundError(f"Game number '{game_number}' not found")
    return game


def list_active_games() -> list[LotteryGame]:
    return (
        db.session.query(LotteryGame)
        .filter_by(status=GAME_STATUS_ACTIVE)
        .order_by(LotteryGame.game_number.asc())
        .all()
    )


def count_live_books(game_id: int) -> int:
    """Books referencing the game that are not yet archived."""
    return (
        db.session.query(LotteryBook)
        .filter(LotteryBook.game_id == game_id, LotteryBook.status != STATUS_ARCHIVED)
        .count()
    )


def update_game_terms(
    game_id: int,
    *,
    ticket_price_cents: int | None = None,
    commission_rate_bps: int | None = None,
) -> LotteryGame:
    """
    Change price or commission rate in place.

    Only allowed while no non-archived book references the game; otherwise
    use supersede_game() so existing books keep their terms.

    Raises:
        GameInUseError: live books reference the game
    """
    def _op():
        game = lock_for_update(db.session.query(LotteryGame).filter_by(id=game_id)).first()
        if game is None:
            raise GameNotFoundError(f"Game {game_id} not found")

        live = count_live_books(game_id)
        if live:
            raise GameInUseError(
                f"Game {game.game_number} terms are frozen: {live} non-archived book(s) reference it. "
                f"Supersede it with a new game instead."
            )

        patch = {}
        if ticket_price_cents is not None:
            patch["ticket_price_cents"] = coerce_int("ticket_price_cents", ticket_price_cents)
        if commission_rate_bps is not None:
            patch["commission_rate_bps"] = coerce_int("commission_rate_bps", commission_rate_bps)
        enforce_rules_game(patch)

        for key, value in patch.items():
            setattr(game, key, value)
        return game

    return run_atomic(_op)


def supersede_game(
    game_id: int,
    *,
    new_game_number: str,
    name: str | None = None,
    ticket_price_cents: int | None = None,
    tickets_per_book: int | None = None,
    commission_rate_bps: int | None = None,
) -> LotteryGame:
    """
    Replace a game with a new catalog record carrying new terms.

    Omitted terms are carried over. The old game becomes INACTIVE and points
    at its successor; its books keep referencing it untouched.
    """
    new_game_number = require_text("game_number", new_game_number, max_length=32)

    def _op():
        old = lock_for_update(db.session.query(LotteryGame).filter_by(id=game_id)).first()
        if old is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        if old.status != GAME_STATUS_ACTIVE:
            raise InvalidStateError(f"Game {old.game_number} is already {old.status}")
        if _game_number_taken(new_game_number):
            raise DuplicateGameNumberError(f"Game number '{new_game_number}' already exists in the catalog")

        terms = _normalize_terms(
            old.ticket_price_cents if ticket_price_cents is None else ticket_price_cents,
            old.tickets_per_book if tickets_per_book is None else tickets_per_book,
            old.commission_rate_bps if commission_rate_bps is None else commission_rate_bps,
        )
        new = LotteryGame(
            game_number=new_game_number,
            name=require_text("name", name, max_length=255) if name is not None else old.name,
            status=GAME_STATUS_ACTIVE,
            **terms,
        )
        db.session.add(new)
        try:
            db.session.flush()
        except IntegrityError:
            raise DuplicateGameNumberError(f"Game number '{new_game_number}' already exists in the catalog")

        old.status = GAME_STATUS_INACTIVE
        old.superseded_by_game_id = new.id
        old.deactivated_at = utcnow()
        return new

    new = run_atomic(_op)
    current_app.logger.info("Game %s superseded by %s", game_id, new.game_number)
    return new


def deactivate_game(game_id: int) -> LotteryGame:
    """Stop receiving new books for a game. Existing books are unaffected."""
    def _op():
        game = lock_for_update(db.session.query(LotteryGame).filter_by(id=game_id)).first()
        if game is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        if game.status == GAME_STATUS_INACTIVE:
            return game
        game.status = GAME_STATUS_INACTIVE
        game.deactivated_at = utcnow()
        return game

    return run_atomic(_op)
