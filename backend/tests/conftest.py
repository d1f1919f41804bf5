"""
Pytest fixtures for lottery backend tests.

Provides an in-memory database, a per-test clean slate, and the usual
location / game / book setup most lottery tests start from.
"""

import pytest
from lottery import create_app
from lottery.extensions import db
from lottery.services import book_inventory_service, game_catalog_service, location_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOTTERY_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def location(db_session):
    """Create the store location lottery books are held at."""
    return location_service.create_location("Main Street", code="MAIN")


@pytest.fixture(scope='function')
def other_location(db_session):
    return location_service.create_location("Harbor Road", code="HARBOR")


@pytest.fixture(scope='function')
def game(db_session):
    """$5 game, 100 tickets per book, 5% retailer commission."""
    return game_catalog_service.add_game(
        game_number="1234",
        name="Lucky 7s",
        ticket_price_cents=500,
        tickets_per_book=100,
        commission_rate_bps=500,
    )


@pytest.fixture(scope='function')
def book(db_session, location, game):
    """IN_STOCK book numbered 1-100."""
    return book_inventory_service.receive_book(
        location_id=location.id,
        game_id=game.id,
        book_number="0042",
        ticket_start=1,
        ticket_end=100,
        received_by="clerk",
    )


@pytest.fixture(scope='function')
def active_book(book, location):
    """Book 1-100 on sale at register REG-01, pointer at 1."""
    return book_inventory_service.activate_book(book.id, location.id, "REG-01", actor="manager")
