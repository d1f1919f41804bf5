"""Lottery book inventory, reconciliation and settlement schema

Revision ID: 20261019_lottery_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_lottery_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=nullable)


def upgrade():
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_locations_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("locations", schema=None) as batch_op:
        batch_op.create_index("ix_locations_code", ["code"], unique=False)
        batch_op.create_index("ix_locations_is_active", ["is_active"], unique=False)

    op.create_table(
        "lottery_games",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("game_number", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("ticket_price_cents", sa.Integer(), nullable=False),
        sa.Column("tickets_per_book", sa.Integer(), nullable=False),
        sa.Column("commission_rate_bps", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
        sa.Column("superseded_by_game_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["superseded_by_game_id"], ["lottery_games.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("game_number", name="uq_lottery_games_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lottery_games", schema=None) as batch_op:
        batch_op.create_index("ix_lottery_games_status", ["status"], unique=False)

    op.create_table(
        "lottery_books",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("game_name", sa.String(255), nullable=False),
        sa.Column("book_number", sa.String(32), nullable=False),
        sa.Column("ticket_start", sa.Integer(), nullable=False),
        sa.Column("ticket_end", sa.Integer(), nullable=False),
        sa.Column("current_ticket", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(24), nullable=False, server_default="IN_STOCK"),
        sa.Column("assigned_register", sa.String(64), nullable=True),
        sa.Column("received_date", sa.Date(), nullable=False),
        sa.Column("received_by", sa.String(120), nullable=True),
        sa.Column("activation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_out_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("returned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.CheckConstraint("ticket_start <= ticket_end", name="ck_lottery_books_range"),
        sa.CheckConstraint(
            "current_ticket >= ticket_start AND current_ticket <= ticket_end + 1",
            name="ck_lottery_books_pointer",
        ),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["game_id"], ["lottery_games.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lottery_books", schema=None) as batch_op:
        batch_op.create_index("ix_lottery_books_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_lottery_books_game_id", ["game_id"], unique=False)
        batch_op.create_index("ix_lottery_books_location_number", ["location_id", "book_number"], unique=False)
        batch_op.create_index("ix_lottery_books_location_status", ["location_id", "status"], unique=False)

    op.create_table(
        "lottery_daily_counts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("count_date", sa.Date(), nullable=False),
        sa.Column("expected_remaining", sa.Integer(), nullable=False),
        sa.Column("physical_remaining", sa.Integer(), nullable=False),
        sa.Column("variance", sa.Integer(), nullable=False),
        sa.Column("ticket_price_cents", sa.Integer(), nullable=False),
        sa.Column("variance_amount_cents", sa.Integer(), nullable=False),
        sa.Column("pointer_before", sa.Integer(), nullable=False),
        sa.Column("pointer_after", sa.Integer(), nullable=False),
        sa.Column("tickets_sold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("flag", sa.String(16), nullable=False, server_default="NONE"),
        sa.Column("reason_code", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("logged_by", sa.String(120), nullable=True),
        sa.Column("approved_by", sa.String(120), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["book_id"], ["lottery_books.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lottery_daily_counts", schema=None) as batch_op:
        batch_op.create_index("ix_lottery_daily_counts_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_lottery_daily_counts_book_id", ["book_id"], unique=False)
        batch_op.create_index("ix_lottery_daily_counts_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_lottery_counts_location_date", ["location_id", "count_date"], unique=False)
        batch_op.create_index("ix_lottery_counts_book_date", ["book_id", "count_date"], unique=False)
        batch_op.create_index("ix_lottery_counts_location_flag", ["location_id", "flag"], unique=False)

    op.create_table(
        "lottery_settlements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("game_name", sa.String(255), nullable=False),
        sa.Column("book_number", sa.String(32), nullable=False),
        sa.Column("total_tickets", sa.Integer(), nullable=False),
        sa.Column("tickets_sold", sa.Integer(), nullable=False),
        sa.Column("tickets_returned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ticket_price_cents", sa.Integer(), nullable=False),
        sa.Column("commission_rate_bps", sa.Integer(), nullable=False),
        sa.Column("gross_sales_cents", sa.Integer(), nullable=False),
        sa.Column("commission_cents", sa.Integer(), nullable=False),
        sa.Column("net_due_cents", sa.Integer(), nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("settled_by", sa.String(120), nullable=True),
        sa.Column("approved_by", sa.String(120), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "commission_cents + net_due_cents = gross_sales_cents",
            name="ck_lottery_settlements_identity",
        ),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["book_id"], ["lottery_books.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("book_id", name="uq_lottery_settlements_book"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lottery_settlements", schema=None) as batch_op:
        batch_op.create_index("ix_lottery_settlements_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_lottery_settlements_location_status", ["location_id", "status"], unique=False)

    op.create_table(
        "lottery_online_sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("total_sales_cents", sa.Integer(), nullable=False),
        sa.Column("payouts_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("commission_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("net_due_cents", sa.Integer(), nullable=False),
        sa.Column("logged_by", sa.String(120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lottery_online_sales", schema=None) as batch_op:
        batch_op.create_index("ix_lottery_online_sales_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_lottery_online_location_date", ["location_id", "report_date"], unique=False)

    op.create_table(
        "lottery_ledger_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(48), nullable=False),
        sa.Column("actor", sa.String(120), nullable=True),
        _timestamp("occurred_at"),
        _timestamp("created_at"),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["book_id"], ["lottery_books.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("lottery_ledger_events", schema=None) as batch_op:
        batch_op.create_index("ix_lottery_ledger_events_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_lottery_events_book_id", ["book_id", "id"], unique=False)
        batch_op.create_index("ix_lottery_events_location_type", ["location_id", "event_type"], unique=False)


def downgrade():
    op.drop_table("lottery_ledger_events")
    op.drop_table("lottery_online_sales")
    op.drop_table("lottery_settlements")
    op.drop_table("lottery_daily_counts")
    op.drop_table("lottery_books")
    op.drop_table("lottery_games")
    op.drop_table("locations")
