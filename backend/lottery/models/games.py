from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class LotteryGame(db.Model):
    """
    Instant (scratch) game definition from the lottery commission.

    PRICING TERMS ARE FROZEN ONCE IN USE:
    ticket_price_cents and commission_rate_bps may only change while no
    non-archived book references the game. After that, a new game row
    supersedes this one (superseded_by_game_id) so historical books and
    settlements keep the terms they were sold under.

    commission_rate_bps: basis points of gross sales retained by the store
    (500 = 5.00%).
    """
    __tablename__ = "lottery_games"
    __table_args__ = (
        db.UniqueConstraint("game_number", name="uq_lottery_games_number"),
        db.Index("ix_lottery_games_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    game_number = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    ticket_price_cents = db.Column(db.Integer, nullable=False)
    tickets_per_book = db.Column(db.Integer, nullable=False)
    commission_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE")  # ACTIVE, INACTIVE
    superseded_by_game_id = db.Column(db.Integer, db.ForeignKey("lottery_games.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    superseded_by = db.relationship("LotteryGame", remote_side=[id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<LotteryGame id={self.id} number={self.game_number!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "game_number": self.game_number,
            "name": self.name,
            "ticket_price_cents": self.ticket_price_cents,
            "tickets_per_book": self.tickets_per_book,
            "commission_rate_bps": self.commission_rate_bps,
            "status": self.status,
            "superseded_by_game_id": self.superseded_by_game_id,
            "created_at": to_utc_z(self.created_at),
            "deactivated_at": to_utc_z(self.deactivated_at) if self.deactivated_at else None,
        }
