"""
Monthly Aggregation

Turns a user's transactions into calendar-month series. Both forecasting
and goal projection start from these series.

Months with no qualifying transactions are simply absent: there is no
zero-filling, so a series can skip months.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from wallet_ledger.clock import add_months, as_of, month_key
from wallet_ledger.config import ForecastSettings, get_settings
from wallet_ledger.exceptions import InsufficientDataError
from wallet_ledger.models.forecast import MonthlyAmount
from wallet_ledger.models.transaction import (
    Transaction,
    TransactionFilter,
    TransactionType,
)
from wallet_ledger.services.storage import TransactionStoreInterface


def sum_by_month(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Total ``amount`` per ``YYYY-MM`` month key."""
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for tx in transactions:
        totals[month_key(tx.date)] += tx.amount
    return dict(totals)


def to_series(totals: dict[str, Decimal]) -> list[MonthlyAmount]:
    """Month totals as a series in ascending month order."""
    return [
        MonthlyAmount(month=month, amount=amount)
        for month, amount in sorted(totals.items())
    ]


class MonthlyAggregator:
    """
    Builds spending and net-savings series over a trailing window.

    Both series refuse to build from fewer than ``min_transactions``
    qualifying transactions.
    """

    def __init__(
        self,
        transaction_store: TransactionStoreInterface,
        settings: Optional[ForecastSettings] = None,
    ):
        self._transactions = transaction_store
        self._settings = settings or get_settings().forecast

    def window_start(self, now: Optional[datetime] = None) -> datetime:
        return add_months(as_of(now), -self._settings.lookback_months)

    async def _fetch(
        self,
        user_id: str,
        tx_type: TransactionType,
        since: datetime,
        category: Optional[str] = None,
    ) -> list[Transaction]:
        return await self._transactions.find(
            TransactionFilter(
                user_id=user_id,
                type=tx_type,
                date_from=since,
                category=category,
            )
        )

    def _require(self, found: int) -> None:
        if found < self._settings.min_transactions:
            raise InsufficientDataError(found, self._settings.min_transactions)

    async def spending_series(
        self,
        user_id: str,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[MonthlyAmount]:
        """
        Monthly expense totals, optionally for one category.

        Raises:
            InsufficientDataError: Too few expenses in the window
        """
        expenses = await self._fetch(
            user_id, TransactionType.EXPENSE, self.window_start(now), category
        )
        self._require(len(expenses))
        return to_series(sum_by_month(expenses))

    async def savings_series(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> list[MonthlyAmount]:
        """
        Monthly net savings (income minus expense).

        Only months that saw income appear; an expense-only month is not
        part of the series. The data gate counts income transactions.

        Raises:
            InsufficientDataError: Too few incomes in the window
        """
        since = self.window_start(now)
        incomes = await self._fetch(user_id, TransactionType.INCOME, since)
        self._require(len(incomes))

        expenses = sum_by_month(
            await self._fetch(user_id, TransactionType.EXPENSE, since)
        )
        net = {
            month: amount - expenses.get(month, Decimal("0"))
            for month, amount in sum_by_month(incomes).items()
        }
        return to_series(net)
