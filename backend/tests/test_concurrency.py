# Overview: Threaded concurrency checks for per-book serialization against a file-backed database.

"""
Concurrency tests for lottery book mutations.

SQLite in-memory databases are per connection, so these run against a
temporary file that every worker thread opens independently.
"""
import os
import tempfile
import threading
import unittest

from lottery import create_app
from lottery.errors import DuplicateSettlementError, LotteryError
from lottery.extensions import db
from lottery.models import LotteryBook, LotteryDailyCount, LotterySettlement
from lottery.services import (
    book_inventory_service,
    game_catalog_service,
    location_service,
    reconciliation_service,
    settlement_service,
)
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


class LotteryConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "lottery_concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "LOTTERY_RETRY_ATTEMPTS": 5,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            location = location_service.create_location("Concurrency Store", code="CONC")
            self.location_id = location.id

            game = game_catalog_service.add_game(
                game_number="777",
                name="Race Day",
                ticket_price_cents=500,
                tickets_per_book=100,
                commission_rate_bps=500,
            )
            book = book_inventory_service.receive_book(
                location_id=self.location_id,
                game_id=game.id,
                book_number="0001",
                ticket_start=1,
                ticket_end=100,
            )
            book_inventory_service.activate_book(book.id, self.location_id, "REG-01")
            self.book_id = book.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, targets):
        threads = [threading.Thread(target=t) for t in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    def test_concurrent_settle_creates_one_settlement(self):
        with self.app.app_context():
            book_inventory_service.mark_sold_out(self.book_id, self.location_id)

        results = []
        unexpected = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    settlement_service.settle_book(self.book_id, self.location_id)
                    with lock:
                        results.append("settled")
                except (LotteryError, OperationalError, StaleDataError) as exc:
                    with lock:
                        results.append(exc)
                except Exception as exc:
                    with lock:
                        unexpected.append(exc)
                finally:
                    db.session.remove()

        self._run_threads([worker] * 4)

        with self.app.app_context():
            rows = db.session.query(LotterySettlement).filter_by(book_id=self.book_id).count()

        self.assertEqual(unexpected, [])
        self.assertEqual(len(results), 4)
        settled = sum(1 for r in results if r == "settled")
        self.assertLessEqual(settled, 1)
        self.assertEqual(rows, settled)
        for r in results:
            if r != "settled":
                self.assertIsInstance(r, (DuplicateSettlementError, OperationalError, StaleDataError))

    def test_concurrent_counts_never_move_pointer_backward(self):
        errors = []
        unexpected = []
        lock = threading.Lock()

        def make_worker(physical):
            def worker():
                with self.app.app_context():
                    try:
                        reconciliation_service.record_daily_count(
                            self.book_id, self.location_id, None, physical, reason_code="MISCOUNT",
                        )
                    except (OperationalError, StaleDataError) as exc:
                        with lock:
                            errors.append(exc)
                    except Exception as exc:
                        with lock:
                            unexpected.append(exc)
                    finally:
                        db.session.remove()
            return worker

        self._run_threads([make_worker(p) for p in (90, 75, 60, 80, 95, 70)])

        with self.app.app_context():
            book = db.session.get(LotteryBook, self.book_id)
            counts = db.session.query(LotteryDailyCount).filter_by(book_id=self.book_id).all()

            self.assertEqual(unexpected, [])
            self.assertEqual(len(counts) + len(errors), 6)
            self.assertTrue(counts)
            self.assertEqual(book.current_ticket, max(c.pointer_after for c in counts))
            self.assertTrue(book.ticket_start <= book.current_ticket <= book.ticket_end + 1)
            for c in counts:
                self.assertGreaterEqual(c.pointer_after, c.pointer_before)


if __name__ == "__main__":
    unittest.main()
