# Overview: Per-location daily lottery summary built from counts, books, settlements and online reports.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import LotteryBook, LotteryDailyCount, LotterySettlement
from ..errors import ValidationError
from ..time_utils import today, parse_business_date, to_iso_date
from .location_service import require_location
from .online_sales_service import online_sales_totals
from .reconciliation_service import FLAG_NONE


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def daily_report(location_id: int, report_date: date | str | None = None) -> dict:
    """
    Summarize one business day at one location.

    Instant sales come from the day's count rows (tickets the counts moved
    the pointer over, at the price snapshot on each count). Books closed by
    a manager without a count show up under sold_out_books only.
    """
    location = require_location(location_id)
    try:
        day = parse_business_date(report_date) or today()
    except ValueError:
        raise ValidationError("report_date must be YYYY-MM-DD")

    count_rows = (
        db.session.query(
            LotteryBook.game_name.label("game_name"),
            func.count(LotteryDailyCount.id).label("count_entries"),
            func.coalesce(func.sum(LotteryDailyCount.tickets_sold), 0).label("tickets_sold"),
            func.coalesce(
                func.sum(LotteryDailyCount.tickets_sold * LotteryDailyCount.ticket_price_cents), 0
            ).label("sales_cents"),
        )
        .join(LotteryBook, LotteryBook.id == LotteryDailyCount.book_id)
        .filter(LotteryDailyCount.location_id == location_id, LotteryDailyCount.count_date == day)
        .group_by(LotteryBook.game_name)
        .order_by(LotteryBook.game_name.asc())
        .all()
    )

    flagged = (
        db.session.query(func.count(LotteryDailyCount.id))
        .filter(
            LotteryDailyCount.location_id == location_id,
            LotteryDailyCount.count_date == day,
            LotteryDailyCount.flag != FLAG_NONE,
        )
        .scalar()
    )

    start, end = _day_bounds(day)
    sold_out = (
        db.session.query(LotteryBook)
        .filter(
            LotteryBook.location_id == location_id,
            LotteryBook.sold_out_date >= start,
            LotteryBook.sold_out_date < end,
        )
        .order_by(LotteryBook.id.asc())
        .all()
    )

    settlements = (
        db.session.query(LotterySettlement)
        .filter(LotterySettlement.location_id == location_id, LotterySettlement.settlement_date == day)
        .order_by(LotterySettlement.id.asc())
        .all()
    )

    online = online_sales_totals(location_id, day, day)

    instant_tickets = sum(int(row.tickets_sold or 0) for row in count_rows)
    instant_sales = sum(int(row.sales_cents or 0) for row in count_rows)

    return {
        "location_id": location.id,
        "location_name": location.name,
        "report_date": to_iso_date(day),
        "instant": {
            "tickets_sold": instant_tickets,
            "sales_cents": instant_sales,
            "count_entries": sum(int(row.count_entries or 0) for row in count_rows),
            "flagged_counts": int(flagged or 0),
            "by_game": [
                {
                    "game_name": row.game_name,
                    "count_entries": int(row.count_entries or 0),
                    "tickets_sold": int(row.tickets_sold or 0),
                    "sales_cents": int(row.sales_cents or 0),
                }
                for row in count_rows
            ],
        },
        "sold_out_books": [
            {"book_id": b.id, "game_name": b.game_name, "book_number": b.book_number}
            for b in sold_out
        ],
        "settlements": {
            "count": len(settlements),
            "gross_sales_cents": sum(s.gross_sales_cents for s in settlements),
            "commission_cents": sum(s.commission_cents for s in settlements),
            "net_due_cents": sum(s.net_due_cents for s in settlements),
        },
        "online": online.to_dict(),
        "total_sales_cents": instant_sales + online.total_sales_cents,
    }
