# Overview: Flask CLI command groups for lottery bootstrap, book handling and reports.

# backend/lottery/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app lottery <group> <command> [options]
# - Commands taking --location-id also read LOTTERY_LOCATION_ID.
#
# System bootstrap/repair:
# - python -m flask --app lottery system init [--location "Main Store"]
#   Idempotent bootstrap: creates tables and a default location.
# - python -m flask --app lottery system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Locations:
# - python -m flask --app lottery locations create --name "Corner Store" --code CORNER
# - python -m flask --app lottery locations list [--all]
#
# Game catalog:
# - python -m flask --app lottery games add --number 1234 --name "Lucky 7s" --price 5.00 --tickets-per-book 100 --commission-rate 0.05
# - python -m flask --app lottery games list
# - python -m flask --app lottery games supersede 3 --number 1299 --price 10.00
#   New catalog record with new terms; the old game stops receiving books.
#
# Books:
# - python -m flask --app lottery books receive --game-id 3 --book-number 0042 [--start 0] [--end 99]
# - python -m flask --app lottery books activate 12 --register REG-01
# - python -m flask --app lottery books list [--status ACTIVE]
# - python -m flask --app lottery books sold-out 12
# - python -m flask --app lottery books return 12
# - python -m flask --app lottery books archive 12
#
# Daily counts:
# - python -m flask --app lottery counts record 12 --remaining 40 [--date 2026-03-01] [--reason MISCOUNT]
# - python -m flask --app lottery counts pending
#   Flagged counts waiting for manager review.
# - python -m flask --app lottery counts approve 7 --by manager
#
# Settlements:
# - python -m flask --app lottery settlements settle 12 [--by manager]
# - python -m flask --app lottery settlements approve 4 --by manager
# - python -m flask --app lottery settlements list [--status PENDING]
#
# Online sales and reports:
# - python -m flask --app lottery online record --total 812.50 --payouts 300.00 --commission 40.63
# - python -m flask --app lottery online totals --start 2026-03-01 --end 2026-03-31
# - python -m flask --app lottery report daily [--date 2026-03-01] [--json]

import functools
import json
import sys

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import Location
from .errors import LotteryError
from .validation import cents_to_display, parse_money_cents, parse_rate_bps
from .services import (
    book_inventory_service,
    game_catalog_service,
    location_service,
    online_sales_service,
    reconciliation_service,
    report_service,
    settlement_service,
)


def lottery_command(func):
    """Report domain failures as FAIL lines and a non-zero exit status."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LotteryError as e:
            click.echo(f"FAIL {e.message}")
            sys.exit(1)
        except SQLAlchemyError:
            current_app.logger.exception("Lottery CLI command %s failed", func.__name__)
            click.echo("FAIL Database error, see log for details")
            sys.exit(1)
    return wrapper


location_option = click.option(
    '--location-id', type=int, required=True, envvar='LOTTERY_LOCATION_ID', help='Location ID'
)


def _echo_rule(width: int = 100):
    click.echo("=" * width)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--location', 'location_name', default='Main Store', help='Default location name')
@click.option('--code', default='MAIN', help='Default location code')
@with_appcontext
@lottery_command
def init_system(location_name, code):
    """Create tables and a default location (safe to re-run)."""
    click.echo("START Initializing lottery database...")
    db.create_all()
    click.echo("PASS Tables ready")

    location = db.session.query(Location).order_by(Location.id.asc()).first()
    if location is None:
        location = location_service.create_location(location_name, code=code)
        click.echo(f"PASS Created default location: {location.name} (ID: {location.id}, Code: {location.code})")
    else:
        click.echo(f"PASS Using existing location: {location.name} (ID: {location.id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'flask --app lottery system init' to initialize.")


@click.group('locations')
def locations_group():
    """Location (store) management."""


@locations_group.command('create')
@click.option('--name', required=True)
@click.option('--code', default=None)
@click.option('--timezone', 'tz', default='UTC', show_default=True)
@with_appcontext
@lottery_command
def create_location_cli(name, code, tz):
    location = location_service.create_location(name, code=code, timezone=tz)
    click.echo(f"PASS Created location: {location.name} (ID: {location.id})")


@locations_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive locations too')
@with_appcontext
def list_locations_cli(show_all):
    locations = location_service.list_locations(include_inactive=show_all)
    if not locations:
        click.echo("No locations found.")
        return
    for loc in locations:
        active = "yes" if loc.is_active else "no"
        click.echo(f"{loc.id:<5} {loc.code or '-':<12} {loc.name:<30} {loc.timezone:<20} {active}")


@click.group('games')
def games_group():
    """Instant game catalog."""


@games_group.command('add')
@click.option('--number', 'game_number', required=True, help='Commission game number')
@click.option('--name', required=True)
@click.option('--price', required=True, help='Ticket price in dollars, e.g. 5.00')
@click.option('--tickets-per-book', type=int, required=True)
@click.option('--commission-rate', default='0', help='Retailer commission as a fraction, e.g. 0.05')
@with_appcontext
@lottery_command
def add_game_cli(game_number, name, price, tickets_per_book, commission_rate):
    game = game_catalog_service.add_game(
        game_number=game_number,
        name=name,
        ticket_price_cents=parse_money_cents("price", price),
        tickets_per_book=tickets_per_book,
        commission_rate_bps=parse_rate_bps("commission_rate", commission_rate),
    )
    click.echo(
        f"PASS Added game {game.game_number} '{game.name}' (ID: {game.id}) "
        f"{cents_to_display(game.ticket_price_cents)} x {game.tickets_per_book}"
    )


@games_group.command('list')
@with_appcontext
def list_games_cli():
    games = game_catalog_service.list_active_games()
    if not games:
        click.echo("No active games.")
        return

    _echo_rule()
    click.echo(f"{'ID':<5} {'Number':<10} {'Name':<30} {'Price':>10} {'Book':>6} {'Comm %':>8}")
    _echo_rule()
    for g in games:
        click.echo(
            f"{g.id:<5} {g.game_number:<10} {g.name[:30]:<30} {cents_to_display(g.ticket_price_cents):>10} "
            f"{g.tickets_per_book:>6} {g.commission_rate_bps / 100:>8.2f}"
        )


@games_group.command('supersede')
@click.argument('game_id', type=int)
@click.option('--number', 'game_number', required=True, help='Game number of the replacement')
@click.option('--name', default=None)
@click.option('--price', default=None, help='New ticket price in dollars')
@click.option('--tickets-per-book', type=int, default=None)
@click.option('--commission-rate', default=None, help='New commission as a fraction')
@with_appcontext
@lottery_command
def supersede_game_cli(game_id, game_number, name, price, tickets_per_book, commission_rate):
    new = game_catalog_service.supersede_game(
        game_id,
        new_game_number=game_number,
        name=name,
        ticket_price_cents=parse_money_cents("price", price) if price is not None else None,
        tickets_per_book=tickets_per_book,
        commission_rate_bps=parse_rate_bps("commission_rate", commission_rate) if commission_rate is not None else None,
    )
    click.echo(f"PASS Game {game_id} superseded by {new.game_number} (ID: {new.id})")


@click.group('books')
def books_group():
    """Ticket book lifecycle."""


@books_group.command('receive')
@location_option
@click.option('--game-id', type=int, required=True)
@click.option('--book-number', required=True)
@click.option('--start', 'ticket_start', type=int, default=None)
@click.option('--end', 'ticket_end', type=int, default=None)
@click.option('--by', 'received_by', default=None)
@click.option('--date', 'received_date', default=None, help='YYYY-MM-DD')
@with_appcontext
@lottery_command
def receive_book_cli(location_id, game_id, book_number, ticket_start, ticket_end, received_by, received_date):
    book = book_inventory_service.receive_book(
        location_id=location_id,
        game_id=game_id,
        book_number=book_number,
        ticket_start=ticket_start,
        ticket_end=ticket_end,
        received_by=received_by,
        received_date=received_date,
    )
    click.echo(
        f"PASS Received book {book.book_number} of {book.game_name} (ID: {book.id}) "
        f"tickets {book.ticket_start}-{book.ticket_end}"
    )


@books_group.command('activate')
@click.argument('book_id', type=int)
@location_option
@click.option('--register', required=True)
@click.option('--by', 'actor', default=None)
@with_appcontext
@lottery_command
def activate_book_cli(book_id, location_id, register, actor):
    book = book_inventory_service.activate_book(book_id, location_id, register, actor=actor)
    click.echo(f"PASS Book {book.id} ACTIVE on register {book.assigned_register}")


@books_group.command('list')
@location_option
@click.option('--status', default=None)
@with_appcontext
@lottery_command
def list_books_cli(location_id, status):
    books = book_inventory_service.list_books(location_id, status=status)
    if not books:
        click.echo("No books found.")
        return

    _echo_rule()
    click.echo(f"{'ID':<5} {'Game':<25} {'Book':<10} {'Range':<12} {'Next':>6} {'Sold':>6} {'Status':<20}")
    _echo_rule()
    for b in books:
        click.echo(
            f"{b.id:<5} {b.game_name[:25]:<25} {b.book_number:<10} {f'{b.ticket_start}-{b.ticket_end}':<12} "
            f"{b.current_ticket:>6} {b.tickets_sold:>6} {b.status:<20}"
        )


@books_group.command('sold-out')
@click.argument('book_id', type=int)
@location_option
@click.option('--by', 'actor', default=None)
@with_appcontext
@lottery_command
def sold_out_cli(book_id, location_id, actor):
    book = book_inventory_service.mark_sold_out(book_id, location_id, actor=actor)
    click.echo(f"PASS Book {book.id} sold out, now {book.status}")


@books_group.command('return')
@click.argument('book_id', type=int)
@location_option
@click.option('--by', 'actor', default=None)
@with_appcontext
@lottery_command
def return_book_cli(book_id, location_id, actor):
    book = book_inventory_service.return_book(book_id, location_id, actor=actor)
    click.echo(f"PASS Book {book.id} returned with {book.expected_remaining} unsold ticket(s), now {book.status}")


@books_group.command('archive')
@click.argument('book_id', type=int)
@location_option
@click.option('--by', 'actor', default=None)
@with_appcontext
@lottery_command
def archive_book_cli(book_id, location_id, actor):
    book = book_inventory_service.archive_book(book_id, location_id, actor=actor)
    click.echo(f"PASS Book {book.id} archived")


@click.group('counts')
def counts_group():
    """Daily physical counts and review."""


@counts_group.command('record')
@click.argument('book_id', type=int)
@location_option
@click.option('--remaining', 'physical_remaining', type=int, required=True, help='Tickets physically left')
@click.option('--date', 'count_date', default=None, help='YYYY-MM-DD (default today)')
@click.option('--reason', 'reason_code', default=None,
              help=f"Required when more tickets are on hand than expected: {', '.join(sorted(reconciliation_service.REASON_CODES))}")
@click.option('--notes', default=None)
@click.option('--by', 'logged_by', default=None)
@with_appcontext
@lottery_command
def record_count_cli(book_id, location_id, physical_remaining, count_date, reason_code, notes, logged_by):
    outcome = reconciliation_service.record_daily_count(
        book_id,
        location_id,
        count_date,
        physical_remaining,
        reason_code=reason_code,
        notes=notes,
        logged_by=logged_by,
    )
    count = outcome.count
    click.echo(
        f"PASS Count {count.id}: expected {count.expected_remaining}, counted {count.physical_remaining}, "
        f"variance {count.variance} ({cents_to_display(count.variance_amount_cents)})"
    )
    if outcome.alert:
        click.echo(f"WARN {outcome.alert}")
    if outcome.sold_out:
        click.echo(f"PASS Book {count.book_id} sold out and awaiting settlement")


@counts_group.command('pending')
@location_option
@with_appcontext
@lottery_command
def pending_counts_cli(location_id):
    counts = reconciliation_service.list_unresolved_counts(location_id)
    if not counts:
        click.echo("No counts awaiting review.")
        return
    for c in counts:
        click.echo(
            f"{c.id:<5} book {c.book_id:<5} {c.count_date.isoformat()} {c.flag:<10} "
            f"expected {c.expected_remaining} counted {c.physical_remaining} reason {c.reason_code or '-'}"
        )


@counts_group.command('approve')
@click.argument('count_id', type=int)
@location_option
@click.option('--by', 'approved_by', required=True)
@with_appcontext
@lottery_command
def approve_count_cli(count_id, location_id, approved_by):
    count = reconciliation_service.approve_count(count_id, location_id, approved_by)
    click.echo(f"PASS Count {count.id} approved by {count.approved_by}")


@click.group('settlements')
def settlements_group():
    """Book settlement with the lottery commission."""


@settlements_group.command('settle')
@click.argument('book_id', type=int)
@location_option
@click.option('--by', 'settled_by', default=None)
@click.option('--date', 'settlement_date', default=None, help='YYYY-MM-DD (default today)')
@with_appcontext
@lottery_command
def settle_book_cli(book_id, location_id, settled_by, settlement_date):
    s = settlement_service.settle_book(book_id, location_id, settled_by=settled_by, settlement_date=settlement_date)
    click.echo(
        f"PASS Settlement {s.id} for book {s.book_id}: sold {s.tickets_sold}/{s.total_tickets}, "
        f"gross {cents_to_display(s.gross_sales_cents)}, commission {cents_to_display(s.commission_cents)}, "
        f"net due {cents_to_display(s.net_due_cents)}"
    )


@settlements_group.command('approve')
@click.argument('settlement_id', type=int)
@location_option
@click.option('--by', 'approved_by', required=True)
@with_appcontext
@lottery_command
def approve_settlement_cli(settlement_id, location_id, approved_by):
    s = settlement_service.approve_settlement(settlement_id, location_id, approved_by)
    click.echo(f"PASS Settlement {s.id} {s.status} by {s.approved_by}")


@settlements_group.command('list')
@location_option
@click.option('--status', default=None)
@with_appcontext
@lottery_command
def list_settlements_cli(location_id, status):
    settlements = settlement_service.list_settlements(location_id, status=status)
    if not settlements:
        click.echo("No settlements found.")
        return

    _echo_rule()
    click.echo(f"{'ID':<5} {'Date':<11} {'Game':<25} {'Book':<10} {'Gross':>12} {'Net due':>12} {'Status':<10}")
    _echo_rule()
    for s in settlements:
        click.echo(
            f"{s.id:<5} {s.settlement_date.isoformat():<11} {s.game_name[:25]:<25} {s.book_number:<10} "
            f"{cents_to_display(s.gross_sales_cents):>12} {cents_to_display(s.net_due_cents):>12} {s.status:<10}"
        )


@click.group('online')
def online_group():
    """Online (terminal) lottery sales."""


@online_group.command('record')
@location_option
@click.option('--date', 'report_date', default=None, help='YYYY-MM-DD (default today)')
@click.option('--total', required=True, help='Total sales in dollars')
@click.option('--payouts', default='0', help='Payouts in dollars')
@click.option('--commission', default='0', help='Commission in dollars')
@click.option('--net', default=None, help='Net due in dollars (default total - payouts - commission)')
@click.option('--by', 'logged_by', default=None)
@click.option('--notes', default=None)
@with_appcontext
@lottery_command
def record_online_cli(location_id, report_date, total, payouts, commission, net, logged_by, notes):
    report = online_sales_service.record_online_sales(
        location_id,
        report_date,
        parse_money_cents("total", total),
        parse_money_cents("payouts", payouts),
        parse_money_cents("commission", commission),
        net_due_cents=parse_money_cents("net", net) if net is not None else None,
        logged_by=logged_by,
        notes=notes,
    )
    click.echo(
        f"PASS Online report {report.id} for {report.report_date.isoformat()}: "
        f"net due {cents_to_display(report.net_due_cents)}"
    )


@online_group.command('totals')
@location_option
@click.option('--start', 'start_date', default=None, help='YYYY-MM-DD')
@click.option('--end', 'end_date', default=None, help='YYYY-MM-DD')
@with_appcontext
@lottery_command
def online_totals_cli(location_id, start_date, end_date):
    totals = online_sales_service.online_sales_totals(location_id, start_date, end_date)
    click.echo(f"Reports:     {totals.report_count}")
    click.echo(f"Total sales: {cents_to_display(totals.total_sales_cents)}")
    click.echo(f"Payouts:     {cents_to_display(totals.payouts_cents)}")
    click.echo(f"Commission:  {cents_to_display(totals.commission_cents)}")
    click.echo(f"Net due:     {cents_to_display(totals.net_due_cents)}")


@click.group('report')
def report_group():
    """Lottery reports."""


@report_group.command('daily')
@location_option
@click.option('--date', 'report_date', default=None, help='YYYY-MM-DD (default today)')
@click.option('--json', 'as_json', is_flag=True, help='Print the raw report as JSON')
@with_appcontext
@lottery_command
def daily_report_cli(location_id, report_date, as_json):
    report = report_service.daily_report(location_id, report_date)
    if as_json:
        click.echo(json.dumps(report, indent=2, sort_keys=True))
        return

    instant = report["instant"]
    click.echo("\n" + "=" * 60)
    click.echo(f"LOTTERY DAILY REPORT  {report['location_name']}  {report['report_date']}")
    click.echo("=" * 60)
    for row in instant["by_game"]:
        click.echo(f"  {row['game_name'][:30]:<30} {row['tickets_sold']:>6} {cents_to_display(row['sales_cents']):>14}")
    click.echo(f"Instant tickets sold: {instant['tickets_sold']}")
    click.echo(f"Instant sales:        {cents_to_display(instant['sales_cents'])}")
    click.echo(f"Counts / flagged:     {instant['count_entries']} / {instant['flagged_counts']}")
    click.echo(f"Books sold out:       {len(report['sold_out_books'])}")
    click.echo(f"Online sales:         {cents_to_display(report['online']['total_sales_cents'])}")
    click.echo(f"Settled net due:      {cents_to_display(report['settlements']['net_due_cents'])}")
    click.echo(f"Total sales:          {cents_to_display(report['total_sales_cents'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(games_group)
    app.cli.add_command(books_group)
    app.cli.add_command(counts_group)
    app.cli.add_command(settlements_group)
    app.cli.add_command(online_group)
    app.cli.add_command(report_group)
