from .locations import Location
from .games import LotteryGame
from .books import LotteryBook
from .documents import LotteryDailyCount, LotterySettlement, OnlineSalesReport, LotteryLedgerEvent

__all__ = [
    'Location',
    'LotteryGame', 'LotteryBook',
    'LotteryDailyCount', 'LotterySettlement', 'OnlineSalesReport', 'LotteryLedgerEvent',
]
