from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


class LotteryDailyCount(db.Model):
    """
    One physical-count observation for one book on one business date.

    APPEND-ONLY: counts are never edited or merged. Several counts for the
    same book and date each get their own row; a correction is a new row.
    The only later write is the one-time manager review stamp
    (approved_by / approved_at).

    VARIANCE:
        expected_remaining = ticket_end - pointer_before + 1
        variance           = physical_remaining - expected_remaining
        variance_amount    = variance * ticket_price_cents

    Negative variance is the normal "tickets sold since last count" case.
    Positive variance means more tickets on hand than the pointer allows
    (a regressive count); it is flagged REGRESSION, carries a reason code,
    and leaves the pointer untouched.
    """
    __tablename__ = "lottery_daily_counts"
    __table_args__ = (
        db.Index("ix_lottery_counts_location_date", "location_id", "count_date"),
        db.Index("ix_lottery_counts_book_date", "book_id", "count_date"),
        db.Index("ix_lottery_counts_location_flag", "location_id", "flag"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("lottery_books.id"), nullable=False, index=True)
    count_date = db.Column(db.Date, nullable=False)

    expected_remaining = db.Column(db.Integer, nullable=False)
    physical_remaining = db.Column(db.Integer, nullable=False)
    variance = db.Column(db.Integer, nullable=False)

    # Price snapshot used to value the variance
    ticket_price_cents = db.Column(db.Integer, nullable=False)
    variance_amount_cents = db.Column(db.Integer, nullable=False)

    # Pointer movement caused by this count (equal when nothing moved)
    pointer_before = db.Column(db.Integer, nullable=False)
    pointer_after = db.Column(db.Integer, nullable=False)
    tickets_sold = db.Column(db.Integer, nullable=False, default=0)

    flag = db.Column(db.String(16), nullable=False, default="NONE")  # NONE, REGRESSION
    reason_code = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Identity context strings, stored opaquely
    logged_by = db.Column(db.String(120), nullable=True)
    approved_by = db.Column(db.String(120), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    book = db.relationship("LotteryBook", backref=db.backref("daily_counts", lazy=True, order_by="LotteryDailyCount.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "book_id": self.book_id,
            "count_date": to_iso_date(self.count_date),
            "expected_remaining": self.expected_remaining,
            "physical_remaining": self.physical_remaining,
            "variance": self.variance,
            "ticket_price_cents": self.ticket_price_cents,
            "variance_amount_cents": self.variance_amount_cents,
            "pointer_before": self.pointer_before,
            "pointer_after": self.pointer_after,
            "tickets_sold": self.tickets_sold,
            "flag": self.flag,
            "reason_code": self.reason_code,
            "notes": self.notes,
            "logged_by": self.logged_by,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class LotterySettlement(db.Model):
    """
    Financial closeout of one retired book.

    EXACTLY ONE PER BOOK: enforced by uq_lottery_settlements_book, so a
    settle/settle race cannot produce two rows.

    FROZEN TERMS: game_name, ticket_price_cents and commission_rate_bps are
    copied from the catalog at settlement time. Later catalog changes never
    alter a historical settlement.

    IDENTITY: commission_cents + net_due_cents == gross_sales_cents exactly.

    LIFECYCLE:
    1. PENDING: Computed, awaiting manager approval
    2. APPROVED: Acknowledged by a manager (no recomputation)
    """
    __tablename__ = "lottery_settlements"
    __table_args__ = (
        db.UniqueConstraint("book_id", name="uq_lottery_settlements_book"),
        db.Index("ix_lottery_settlements_location_status", "location_id", "status"),
        db.CheckConstraint(
            "commission_cents + net_due_cents = gross_sales_cents",
            name="ck_lottery_settlements_identity",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("lottery_books.id"), nullable=False)

    game_name = db.Column(db.String(255), nullable=False)
    book_number = db.Column(db.String(32), nullable=False)

    total_tickets = db.Column(db.Integer, nullable=False)
    tickets_sold = db.Column(db.Integer, nullable=False)
    tickets_returned = db.Column(db.Integer, nullable=False, default=0)

    ticket_price_cents = db.Column(db.Integer, nullable=False)
    commission_rate_bps = db.Column(db.Integer, nullable=False)

    gross_sales_cents = db.Column(db.Integer, nullable=False)
    commission_cents = db.Column(db.Integer, nullable=False)
    net_due_cents = db.Column(db.Integer, nullable=False)

    settlement_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PENDING")  # PENDING, APPROVED

    settled_by = db.Column(db.String(120), nullable=True)
    approved_by = db.Column(db.String(120), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    book = db.relationship("LotteryBook", backref=db.backref("settlement", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "book_id": self.book_id,
            "game_name": self.game_name,
            "book_number": self.book_number,
            "total_tickets": self.total_tickets,
            "tickets_sold": self.tickets_sold,
            "tickets_returned": self.tickets_returned,
            "ticket_price_cents": self.ticket_price_cents,
            "commission_rate_bps": self.commission_rate_bps,
            "gross_sales_cents": self.gross_sales_cents,
            "commission_cents": self.commission_cents,
            "net_due_cents": self.net_due_cents,
            "settlement_date": to_iso_date(self.settlement_date),
            "status": self.status,
            "settled_by": self.settled_by,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class OnlineSalesReport(db.Model):
    """
    Daily aggregate from the online (terminal-dispensed) lottery machine.

    Independent of scratch books: no pointer, no state machine. Several
    reports for one date are summed, never merged.
    """
    __tablename__ = "lottery_online_sales"
    __table_args__ = (
        db.Index("ix_lottery_online_location_date", "location_id", "report_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    report_date = db.Column(db.Date, nullable=False)

    total_sales_cents = db.Column(db.Integer, nullable=False)
    payouts_cents = db.Column(db.Integer, nullable=False, default=0)
    commission_cents = db.Column(db.Integer, nullable=False, default=0)
    net_due_cents = db.Column(db.Integer, nullable=False)

    logged_by = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "report_date": to_iso_date(self.report_date),
            "total_sales_cents": self.total_sales_cents,
            "payouts_cents": self.payouts_cents,
            "commission_cents": self.commission_cents,
            "net_due_cents": self.net_due_cents,
            "logged_by": self.logged_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class LotteryLedgerEvent(db.Model):
    """
    Append-only audit trail of lottery lifecycle events.

    Written in the same DB transaction as the mutation it records, so a
    rolled-back transition leaves no event behind.
    occurred_at is business time; created_at is system time (DB default).
    """
    __tablename__ = "lottery_ledger_events"
    __table_args__ = (
        db.Index("ix_lottery_events_book_id", "book_id", "id"),
        db.Index("ix_lottery_events_location_type", "location_id", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("lottery_books.id"), nullable=True)

    event_type = db.Column(db.String(48), nullable=False)
    actor = db.Column(db.String(120), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "book_id": self.book_id,
            "event_type": self.event_type,
            "actor": self.actor,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }
