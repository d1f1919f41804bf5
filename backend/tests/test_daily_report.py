import unittest
from datetime import date

from lottery import create_app
from lottery.extensions import db
from lottery.models import (
    Location,
    LotteryGame,
    LotteryBook,
    LotteryDailyCount,
    LotterySettlement,
    OnlineSalesReport,
    LotteryLedgerEvent,
)
from lottery.services import (
    book_inventory_service,
    game_catalog_service,
    location_service,
    online_sales_service,
    reconciliation_service,
    report_service,
    settlement_service,
)


DAY = date(2026, 3, 1)


class DailyReportTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(LotteryLedgerEvent).delete()
        db.session.query(OnlineSalesReport).delete()
        db.session.query(LotterySettlement).delete()
        db.session.query(LotteryDailyCount).delete()
        db.session.query(LotteryBook).delete()
        db.session.query(LotteryGame).delete()
        db.session.query(Location).delete()
        db.session.commit()

        self.location = location_service.create_location("Main Street", code="MAIN")
        self.cheap = game_catalog_service.add_game(
            game_number="100", name="Cash Dash", ticket_price_cents=100,
            tickets_per_book=50, commission_rate_bps=500,
        )
        self.pricey = game_catalog_service.add_game(
            game_number="200", name="Gold Rush", ticket_price_cents=1000,
            tickets_per_book=20, commission_rate_bps=600,
        )
        self.book_a = self._active_book(self.cheap, "A1", 0, 49)
        self.book_b = self._active_book(self.pricey, "B1", 0, 19)

    def _active_book(self, game, number, start, end):
        book = book_inventory_service.receive_book(
            location_id=self.location.id, game_id=game.id, book_number=number,
            ticket_start=start, ticket_end=end,
        )
        return book_inventory_service.activate_book(book.id, self.location.id, "REG-01")

    def test_empty_day(self):
        report = report_service.daily_report(self.location.id, DAY)
        self.assertEqual(report["report_date"], "2026-03-01")
        self.assertEqual(report["instant"]["tickets_sold"], 0)
        self.assertEqual(report["instant"]["sales_cents"], 0)
        self.assertEqual(report["instant"]["by_game"], [])
        self.assertEqual(report["online"]["report_count"], 0)
        self.assertEqual(report["total_sales_cents"], 0)

    def test_instant_sales_summed_from_counts(self):
        reconciliation_service.record_daily_count(self.book_a.id, self.location.id, DAY, 40)
        reconciliation_service.record_daily_count(self.book_a.id, self.location.id, DAY, 35)
        reconciliation_service.record_daily_count(self.book_b.id, self.location.id, DAY, 17)
        # Another day is not included
        reconciliation_service.record_daily_count(self.book_b.id, self.location.id, date(2026, 3, 2), 10)

        report = report_service.daily_report(self.location.id, DAY)
        instant = report["instant"]
        self.assertEqual(instant["tickets_sold"], 15 + 3)
        self.assertEqual(instant["sales_cents"], 15 * 100 + 3 * 1000)
        self.assertEqual(instant["count_entries"], 3)
        self.assertEqual(instant["flagged_counts"], 0)
        self.assertEqual(
            [(row["game_name"], row["tickets_sold"]) for row in instant["by_game"]],
            [("Cash Dash", 15), ("Gold Rush", 3)],
        )

    def test_flagged_counts_reported(self):
        reconciliation_service.record_daily_count(self.book_a.id, self.location.id, DAY, 40)
        reconciliation_service.record_daily_count(
            self.book_a.id, self.location.id, DAY, 45, reason_code="MISCOUNT",
        )
        report = report_service.daily_report(self.location.id, DAY)
        self.assertEqual(report["instant"]["flagged_counts"], 1)
        self.assertEqual(report["instant"]["tickets_sold"], 10)

    def test_online_sales_and_totals(self):
        reconciliation_service.record_daily_count(self.book_a.id, self.location.id, DAY, 40)
        online_sales_service.record_online_sales(self.location.id, DAY, 20000, 5000, 1000)

        report = report_service.daily_report(self.location.id, "2026-03-01")
        self.assertEqual(report["online"]["total_sales_cents"], 20000)
        self.assertEqual(report["online"]["net_due_cents"], 14000)
        self.assertEqual(report["total_sales_cents"], 1000 + 20000)

    def test_sold_out_books_and_settlements(self):
        outcome = reconciliation_service.record_daily_count(self.book_b.id, self.location.id, None, 0)
        self.assertTrue(outcome.sold_out)
        settlement_service.settle_book(self.book_b.id, self.location.id)

        report = report_service.daily_report(self.location.id)
        self.assertEqual([b["book_id"] for b in report["sold_out_books"]], [self.book_b.id])
        self.assertEqual(report["settlements"]["count"], 1)
        self.assertEqual(report["settlements"]["gross_sales_cents"], 20000)
        self.assertEqual(report["settlements"]["commission_cents"], 1200)
        self.assertEqual(report["settlements"]["net_due_cents"], 18800)


if __name__ == "__main__":
    unittest.main()
