"""
Tests for the lottery Flask CLI groups.
"""

import json

import pytest

from lottery.models import Location, LotteryBook, LotteryDailyCount, LotterySettlement
from lottery.services import book_state


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def _invoke(runner, *args):
    return runner.invoke(args=[str(a) for a in args])


def test_system_init_creates_default_location(runner, db_session):
    result = _invoke(runner, "system", "init", "--location", "Corner Store")
    assert result.exit_code == 0, result.output
    assert "PASS Created default location: Corner Store" in result.output

    again = _invoke(runner, "system", "init")
    assert again.exit_code == 0
    assert "Using existing location" in again.output
    assert db_session.query(Location).count() == 1


def test_games_add_parses_dollars_and_rate(runner, db_session):
    result = _invoke(
        runner, "games", "add", "--number", "1234", "--name", "Lucky 7s",
        "--price", "5.00", "--tickets-per-book", "100", "--commission-rate", "0.05",
    )
    assert result.exit_code == 0, result.output
    assert "$5.00 x 100" in result.output

    listing = _invoke(runner, "games", "list")
    assert "Lucky 7s" in listing.output
    assert "5.00" in listing.output


def test_games_add_duplicate_fails(runner, game):
    result = _invoke(
        runner, "games", "add", "--number", "1234", "--name", "Again",
        "--price", "1", "--tickets-per-book", "10",
    )
    assert result.exit_code == 1
    assert result.output.startswith("FAIL")


def test_games_add_rejects_fractional_cents(runner, db_session):
    result = _invoke(
        runner, "games", "add", "--number", "1", "--name", "X",
        "--price", "1.005", "--tickets-per-book", "10",
    )
    assert result.exit_code == 1
    assert "fractions of a cent" in result.output


def test_book_lifecycle_through_cli(runner, location, game, db_session):
    result = _invoke(
        runner, "books", "receive", "--location-id", location.id, "--game-id", game.id,
        "--book-number", "0042", "--start", 1, "--end", 100,
    )
    assert result.exit_code == 0, result.output
    book = db_session.query(LotteryBook).one()

    result = _invoke(runner, "books", "activate", book.id, "--location-id", location.id, "--register", "REG-01")
    assert result.exit_code == 0, result.output

    result = _invoke(runner, "counts", "record", book.id, "--location-id", location.id, "--remaining", 40)
    assert result.exit_code == 0, result.output
    assert "variance -60" in result.output

    result = _invoke(runner, "books", "list", "--location-id", location.id, "--status", "ACTIVE")
    assert "0042" in result.output

    result = _invoke(runner, "books", "sold-out", book.id, "--location-id", location.id)
    assert result.exit_code == 0, result.output

    result = _invoke(runner, "settlements", "settle", book.id, "--location-id", location.id, "--by", "manager")
    assert result.exit_code == 0, result.output
    assert "net due $475.00" in result.output

    settlement = db_session.query(LotterySettlement).one()
    result = _invoke(runner, "settlements", "approve", settlement.id, "--location-id", location.id, "--by", "owner")
    assert result.exit_code == 0, result.output
    assert "APPROVED" in result.output

    result = _invoke(runner, "books", "archive", book.id, "--location-id", location.id)
    assert result.exit_code == 0, result.output
    db_session.expire_all()
    assert db_session.get(LotteryBook, book.id).status == book_state.STATUS_ARCHIVED


def test_settle_twice_fails(runner, active_book, location):
    _invoke(runner, "books", "sold-out", active_book.id, "--location-id", location.id)
    first = _invoke(runner, "settlements", "settle", active_book.id, "--location-id", location.id)
    assert first.exit_code == 0, first.output

    second = _invoke(runner, "settlements", "settle", active_book.id, "--location-id", location.id)
    assert second.exit_code == 1
    assert "FAIL" in second.output
    assert "already has settlement" in second.output


def test_regressive_count_warns_and_lands_in_pending(runner, active_book, location, db_session):
    _invoke(runner, "counts", "record", active_book.id, "--location-id", location.id, "--remaining", 40)

    missing_reason = _invoke(runner, "counts", "record", active_book.id, "--location-id", location.id, "--remaining", 50)
    assert missing_reason.exit_code == 1
    assert "reason_code is required" in missing_reason.output

    result = _invoke(
        runner, "counts", "record", active_book.id, "--location-id", location.id,
        "--remaining", 50, "--reason", "MISCOUNT",
    )
    assert result.exit_code == 0, result.output
    assert "WARN" in result.output

    pending = _invoke(runner, "counts", "pending", "--location-id", location.id)
    assert "REGRESSION" in pending.output

    flagged = db_session.query(LotteryDailyCount).filter_by(flag="REGRESSION").one()
    approved = _invoke(runner, "counts", "approve", flagged.id, "--location-id", location.id, "--by", "manager")
    assert approved.exit_code == 0, approved.output

    empty = _invoke(runner, "counts", "pending", "--location-id", location.id)
    assert "No counts awaiting review." in empty.output


def test_location_from_environment(runner, active_book, location, monkeypatch):
    monkeypatch.setenv("LOTTERY_LOCATION_ID", str(location.id))
    result = _invoke(runner, "books", "list")
    assert result.exit_code == 0, result.output
    assert "0042" in result.output


def test_unknown_location_fails(runner, db_session):
    result = _invoke(runner, "books", "list", "--location-id", 999)
    assert result.exit_code == 1
    assert "FAIL Location 999 not found" in result.output


def test_online_record_and_totals(runner, location):
    result = _invoke(
        runner, "online", "record", "--location-id", location.id, "--date", "2026-03-01",
        "--total", "812.50", "--payouts", "300.00", "--commission", "40.63",
    )
    assert result.exit_code == 0, result.output
    assert "net due $471.87" in result.output

    totals = _invoke(
        runner, "online", "totals", "--location-id", location.id, "--start", "2026-03-01", "--end", "2026-03-01",
    )
    assert "Total sales: $812.50" in totals.output


def test_report_daily_json(runner, active_book, location):
    _invoke(
        runner, "counts", "record", active_book.id, "--location-id", location.id,
        "--remaining", 90, "--date", "2026-03-01",
    )
    result = _invoke(runner, "report", "daily", "--location-id", location.id, "--date", "2026-03-01", "--json")
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["instant"]["tickets_sold"] == 10
    assert report["instant"]["sales_cents"] == 5000


def test_report_daily_text(runner, active_book, location):
    result = _invoke(runner, "report", "daily", "--location-id", location.id, "--date", "2026-03-01")
    assert result.exit_code == 0, result.output
    assert "LOTTERY DAILY REPORT" in result.output
