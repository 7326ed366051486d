"""
Spending Forecast Engine

DESIGN DECISION: The forecast is deliberately simple: the mean of the last
few months, nudged by a bounded random factor per future month. It gives a
plausible ballpark, not a statistical model.

The random factor comes from an injectable provider so tests can pin it.
"""

import random
from decimal import ROUND_HALF_UP, Decimal
from datetime import datetime
from typing import Any, Optional, Protocol

from wallet_ledger.clock import next_month_keys
from wallet_ledger.config import ForecastSettings, get_settings
from wallet_ledger.exceptions import ValidationError
from wallet_ledger.forecast.aggregator import MonthlyAggregator
from wallet_ledger.models.forecast import MonthlyAmount, SpendingForecast


WHOLE_UNIT = Decimal("1")


class VariationProvider(Protocol):
    """Source of the per-month multiplicative factor."""

    def factor(self) -> float:
        ...


class RandomVariation:
    """Uniform factor in ``[low, high]``."""

    def __init__(self, low: float, high: float, rng: Optional[random.Random] = None):
        if low > high:
            raise ValueError("low cannot exceed high")
        self._low = low
        self._high = high
        self._rng = rng or random.Random()

    def factor(self) -> float:
        return self._rng.uniform(self._low, self._high)


class FixedVariation:
    """Always the same factor; 1.0 gives the plain moving average."""

    def __init__(self, factor: float = 1.0):
        self._factor = factor

    def factor(self) -> float:
        return self._factor


def moving_average(series: list[MonthlyAmount], window: int) -> Decimal:
    """Mean of the last ``window`` entries (fewer if the series is shorter)."""
    if not series:
        raise ValueError("cannot average an empty series")
    tail = series[-window:]
    return sum((point.amount for point in tail), Decimal("0")) / len(tail)


class ForecastEngine:
    """Projects monthly spending forward from the aggregated history."""

    def __init__(
        self,
        aggregator: MonthlyAggregator,
        variation: Optional[VariationProvider] = None,
        settings: Optional[ForecastSettings] = None,
    ):
        self._aggregator = aggregator
        self._settings = settings or get_settings().forecast
        self._variation = variation or RandomVariation(
            self._settings.variation_low,
            self._settings.variation_high,
        )

    def validate_months(self, months: Any) -> int:
        """Horizon must be a whole number between 1 and ``max_months``."""
        if isinstance(months, str) and months.strip().isdigit():
            value = int(months.strip())
        elif isinstance(months, int) and not isinstance(months, bool):
            value = months
        else:
            raise ValidationError("months", "months must be a whole number")

        if not 1 <= value <= self._settings.max_months:
            raise ValidationError(
                "months",
                f"months must be between 1 and {self._settings.max_months}",
            )
        return value

    def forecast(self, series: list[MonthlyAmount], months: int) -> SpendingForecast:
        """
        Predict ``months`` future months from a non-empty series.

        Each prediction is ``round(mean * factor)`` to a whole unit,
        half-up, with a fresh factor per month.
        """
        mean = moving_average(series, self._settings.window_size)
        predictions = [
            MonthlyAmount(
                month=month,
                amount=(mean * Decimal(str(self._variation.factor()))).quantize(
                    WHOLE_UNIT, rounding=ROUND_HALF_UP
                ),
            )
            for month in next_month_keys(series[-1].month, months)
        ]
        return SpendingForecast(
            historical=series,
            predictions=predictions,
            moving_average=mean,
        )

    async def predict_spending(
        self,
        user_id: str,
        months: Any = 1,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SpendingForecast:
        """
        Forecast a user's spending.

        Raises:
            ValidationError: Horizon out of range
            InsufficientDataError: Not enough expense history
        """
        horizon = self.validate_months(months)
        series = await self._aggregator.spending_series(user_id, category, now)
        return self.forecast(series, horizon)
