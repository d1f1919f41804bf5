from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


class LotteryBook(db.Model):
    """
    One physical pack of sequentially numbered scratch tickets.

    TICKET RANGE:
    [ticket_start, ticket_end] is a closed interval of
    ticket_end - ticket_start + 1 tickets.

    POINTER:
    current_ticket is the next ticket expected to be sold.
    Invariant: ticket_start <= current_ticket <= ticket_end + 1
    (ticket_end + 1 means fully sold). The pointer only moves forward.

    LIFECYCLE (see services/book_state.py):
        IN_STOCK -> ACTIVE -> (SOLD_OUT) -> PENDING_SETTLEMENT -> SETTLED -> ARCHIVED

    Books are never deleted. ARCHIVED is the terminal, audit-preserving state.

    CONCURRENCY:
    version_id is an optimistic lock. Two writers that read the same version
    cannot both commit; the loser gets StaleDataError and is retried.
    """
    __tablename__ = "lottery_books"
    __table_args__ = (
        db.CheckConstraint("ticket_start <= ticket_end", name="ck_lottery_books_range"),
        db.CheckConstraint(
            "current_ticket >= ticket_start AND current_ticket <= ticket_end + 1",
            name="ck_lottery_books_pointer",
        ),
        db.Index("ix_lottery_books_location_number", "location_id", "book_number"),
        db.Index("ix_lottery_books_location_status", "location_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey("lottery_games.id"), nullable=False, index=True)

    # Denormalized for listings; LotteryGame stays the source of truth
    game_name = db.Column(db.String(255), nullable=False)

    # Operator-facing pack number (keeps leading zeros)
    book_number = db.Column(db.String(32), nullable=False)

    ticket_start = db.Column(db.Integer, nullable=False)
    ticket_end = db.Column(db.Integer, nullable=False)
    current_ticket = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(24), nullable=False, default="IN_STOCK")

    # Set only once ACTIVE
    assigned_register = db.Column(db.String(64), nullable=True)

    received_date = db.Column(db.Date, nullable=False)
    received_by = db.Column(db.String(120), nullable=True)
    activation_date = db.Column(db.DateTime(timezone=True), nullable=True)
    sold_out_date = db.Column(db.DateTime(timezone=True), nullable=True)
    returned_date = db.Column(db.DateTime(timezone=True), nullable=True)
    settled_date = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    location = db.relationship("Location", backref=db.backref("lottery_books", lazy=True))
    game = db.relationship("LotteryGame", backref=db.backref("books", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_tickets(self) -> int:
        return self.ticket_end - self.ticket_start + 1

    @property
    def tickets_sold(self) -> int:
        return self.current_ticket - self.ticket_start

    @property
    def expected_remaining(self) -> int:
        return self.ticket_end - self.current_ticket + 1

    def __repr__(self) -> str:
        return (
            f"<LotteryBook id={self.id} game={self.game_name!r} book={self.book_number!r} "
            f"pointer={self.current_ticket} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "game_id": self.game_id,
            "game_name": self.game_name,
            "book_number": self.book_number,
            "ticket_start": self.ticket_start,
            "ticket_end": self.ticket_end,
            "current_ticket": self.current_ticket,
            "total_tickets": self.total_tickets,
            "tickets_sold": self.tickets_sold,
            "expected_remaining": self.expected_remaining,
            "status": self.status,
            "assigned_register": self.assigned_register,
            "received_date": to_iso_date(self.received_date),
            "received_by": self.received_by,
            "activation_date": to_utc_z(self.activation_date) if self.activation_date else None,
            "sold_out_date": to_utc_z(self.sold_out_date) if self.sold_out_date else None,
            "returned_date": to_utc_z(self.returned_date) if self.returned_date else None,
            "settled_date": to_utc_z(self.settled_date) if self.settled_date else None,
            "archived_date": to_utc_z(self.archived_date) if self.archived_date else None,
            "version_id": self.version_id,
        }
