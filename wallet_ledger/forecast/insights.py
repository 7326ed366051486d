"""
Financial Insights

A read-only summary of the last few months: totals, savings rate, monthly
averages, top spending categories, and a handful of rule-based messages.
It reuses the forecast engine and goal projector; when either cannot
produce a result, the corresponding insight is simply left out.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from wallet_ledger.clock import add_months, as_of, month_key
from wallet_ledger.config import ForecastSettings, get_settings
from wallet_ledger.exceptions import InsufficientDataError, NoPositiveSavingsError
from wallet_ledger.forecast.engine import ForecastEngine
from wallet_ledger.forecast.goals import GoalProjector
from wallet_ledger.models.forecast import (
    CategoryTotal,
    FinancialInsights,
    FinancialMetrics,
    Insight,
    SpendingForecast,
)
from wallet_ledger.models.goal import SavingsGoal
from wallet_ledger.models.transaction import Transaction, TransactionFilter
from wallet_ledger.services.storage import GoalStoreInterface, TransactionStoreInterface


HEALTHY_SAVINGS_RATE = 20.0
TREND_THRESHOLD = 10.0
CONCENTRATION_THRESHOLD = 40.0
FORECAST_HORIZON = 3
TOP_CATEGORY_COUNT = 3


def _pct(value: float) -> str:
    return f"{value:.1f}%"


def compute_metrics(transactions: list[Transaction]) -> FinancialMetrics:
    total_income = sum((tx.amount for tx in transactions if tx.is_income), Decimal("0"))
    total_expense = sum((tx.amount for tx in transactions if tx.is_expense), Decimal("0"))
    net_savings = total_income - total_expense
    months = len({month_key(tx.date) for tx in transactions}) or 1

    return FinancialMetrics(
        total_income=total_income,
        total_expense=total_expense,
        net_savings=net_savings,
        savings_rate=float(net_savings / total_income * 100) if total_income > 0 else 0.0,
        avg_monthly_income=total_income / months,
        avg_monthly_expense=total_expense / months,
        avg_monthly_savings=net_savings / months,
    )


def top_categories(transactions: list[Transaction], count: int = TOP_CATEGORY_COUNT) -> list[CategoryTotal]:
    """Expense categories by total, largest first."""
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for tx in transactions:
        if tx.is_expense:
            totals[tx.category] += tx.amount
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(category=c, amount=a) for c, a in ranked[:count]]


def savings_rate_insight(metrics: FinancialMetrics) -> Insight:
    rate = metrics.savings_rate
    if rate >= HEALTHY_SAVINGS_RATE:
        return Insight(
            type="success",
            title="Healthy Savings Rate",
            description=(
                f"Great job! You're saving {_pct(rate)} of your income, "
                f"which is above the recommended {HEALTHY_SAVINGS_RATE:.0f}%."
            ),
            metric=_pct(rate),
        )
    if rate > 0:
        return Insight(
            type="warning",
            title="Improve Your Savings Rate",
            description=(
                f"You're currently saving {_pct(rate)} of your income. Try to "
                f"reach at least {HEALTHY_SAVINGS_RATE:.0f}% for financial security."
            ),
            metric=_pct(rate),
        )
    return Insight(
        type="error",
        title="Negative Savings Rate",
        description="You're spending more than you earn. Focus on reducing expenses to avoid debt.",
        metric=_pct(rate),
    )


def spending_trend_insight(
    forecast: SpendingForecast,
    last_month_expense: Decimal,
) -> Optional[Insight]:
    """Compare next month's predicted spending with the latest month."""
    if not forecast.predictions or last_month_expense <= 0:
        return None

    predicted = forecast.predictions[0].amount
    change = float((predicted - last_month_expense) / last_month_expense * 100)
    if change > TREND_THRESHOLD:
        return Insight(
            type="warning",
            title="Spending Increase Predicted",
            description=(
                f"Your spending is predicted to increase by {_pct(change)} "
                "next month. Consider reviewing your budget."
            ),
            metric=f"+{_pct(change)}",
        )
    if change < -TREND_THRESHOLD:
        return Insight(
            type="success",
            title="Spending Decrease Predicted",
            description=(
                f"Your spending is predicted to decrease by {_pct(abs(change))} "
                "next month. Keep up the good work!"
            ),
            metric=_pct(change),
        )
    return None


def goal_progress_insight(goals: list[SavingsGoal]) -> Optional[Insight]:
    """Celebrate the goal closest to completion."""
    if not goals:
        return None
    top = max(goals, key=lambda g: g.progress)
    progress = top.progress_percentage
    if progress >= 90:
        return Insight(
            type="success",
            title="Goal Almost Achieved",
            description=(
                f'You\'re {_pct(progress)} of the way to your "{top.name}" goal. '
                "Just a little more to go!"
            ),
            metric=_pct(progress),
        )
    if progress >= 50:
        return Insight(
            type="info",
            title="Goal Progress",
            description=(
                f'You\'re making good progress on your "{top.name}" goal '
                f"at {_pct(progress)} complete."
            ),
            metric=_pct(progress),
        )
    return None


def concentration_insight(
    categories: list[CategoryTotal],
    total_expense: Decimal,
) -> Optional[Insight]:
    if not categories or total_expense <= 0:
        return None
    top = categories[0]
    share = float(top.amount / total_expense * 100)
    if share <= CONCENTRATION_THRESHOLD:
        return None
    return Insight(
        type="warning",
        title="High Spending Concentration",
        description=(
            f'{_pct(share)} of your expenses are in the "{top.category}" '
            "category. Consider diversifying your spending."
        ),
        metric=_pct(share),
    )


class InsightsReporter:
    """Builds the financial insights report for one user."""

    def __init__(
        self,
        transaction_store: TransactionStoreInterface,
        goal_store: GoalStoreInterface,
        engine: ForecastEngine,
        projector: GoalProjector,
        settings: Optional[ForecastSettings] = None,
    ):
        self._transactions = transaction_store
        self._goals = goal_store
        self._engine = engine
        self._projector = projector
        self._settings = settings or get_settings().forecast

    async def _forecast(self, user_id: str, now: datetime) -> Optional[SpendingForecast]:
        try:
            return await self._engine.predict_spending(user_id, FORECAST_HORIZON, now=now)
        except InsufficientDataError:
            return None

    async def _completion_insight(
        self,
        user_id: str,
        goals: list[SavingsGoal],
        now: datetime,
    ) -> Optional[Insight]:
        """Projected completion of the least-advanced unfinished goal."""
        if not goals:
            return None
        laggard = min(goals, key=lambda g: g.progress)
        if laggard.is_completed:
            return None
        try:
            projection = await self._projector.project(user_id, laggard.id, now)
        except (InsufficientDataError, NoPositiveSavingsError):
            return None
        return Insight(
            type="info",
            title="Goal Completion Prediction",
            description=(
                f'At your current savings rate, you\'ll reach your "{laggard.name}" '
                f"goal in approximately {projection.months_to_completion} months."
            ),
            metric=f"{projection.months_to_completion} months",
        )

    async def report(self, user_id: str, now: Optional[datetime] = None) -> FinancialInsights:
        now = as_of(now)
        transactions = await self._transactions.find(
            TransactionFilter(
                user_id=user_id,
                date_from=add_months(now, -self._settings.insights_lookback_months),
            )
        )
        goals = await self._goals.list_goals(user_id)

        metrics = compute_metrics(transactions)
        categories = top_categories(transactions)
        forecast = await self._forecast(user_id, now)

        insights = [savings_rate_insight(metrics)]

        if forecast is not None:
            latest = max((month_key(tx.date) for tx in transactions), default=None)
            last_month_expense = sum(
                (tx.amount for tx in transactions
                 if tx.is_expense and month_key(tx.date) == latest),
                Decimal("0"),
            ) or metrics.avg_monthly_expense
            insights.append(spending_trend_insight(forecast, last_month_expense))

        insights.append(goal_progress_insight(goals))
        insights.append(await self._completion_insight(user_id, goals, now))
        insights.append(concentration_insight(categories, metrics.total_expense))

        return FinancialInsights(
            insights=[i for i in insights if i is not None],
            metrics=metrics,
            top_categories=categories,
            spending_forecast=forecast,
        )
