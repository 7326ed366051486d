"""Tests for the financial insights report."""

from datetime import datetime
from decimal import Decimal

import pytest

from wallet_ledger.forecast import FixedVariation, ForecastEngine, GoalProjector, InsightsReporter
from wallet_ledger.models import SavingsGoal, TransactionType


NOW = datetime(2026, 6, 15, 12, 0, 0)
USER = "user-1"

INCOME = TransactionType.INCOME
EXPENSE = TransactionType.EXPENSE


@pytest.fixture
def seeded(seed, goal_store):
    """Three months of salary, rent and food, plus two goals."""
    for month in (3, 4, 5):
        seed(INCOME, 4000, datetime(2026, month, 1), category="Salary")
        seed(EXPENSE, 1500, datetime(2026, month, 2), category="Rent")
        seed(EXPENSE, 300, datetime(2026, month, 20), category="Food")
    goal_store.add(SavingsGoal(
        user_id=USER, name="Laptop",
        target_amount=Decimal("1000"), current_amount=Decimal("950"),
    ))
    goal_store.add(SavingsGoal(
        user_id=USER, name="House",
        target_amount=Decimal("5000"), current_amount=Decimal("0"),
    ))


def reporter_with(factor, transaction_store, goal_store, aggregator, forecast_settings):
    engine = ForecastEngine(aggregator, FixedVariation(factor), forecast_settings)
    projector = GoalProjector(aggregator, goal_store)
    return InsightsReporter(transaction_store, goal_store, engine, projector, forecast_settings)


def by_title(report):
    return {insight.title: insight for insight in report.insights}


class TestInsightsReporter:
    """Tests for metrics and rule-based insights."""

    @pytest.mark.asyncio
    async def test_metrics(self, reporter, seeded):
        """Test totals, savings rate and monthly averages."""
        report = await reporter.report(USER, now=NOW)
        metrics = report.metrics

        assert metrics.total_income == Decimal("12000")
        assert metrics.total_expense == Decimal("5400")
        assert metrics.net_savings == Decimal("6600")
        assert metrics.savings_rate == pytest.approx(55.0)
        assert metrics.avg_monthly_income == Decimal("4000")
        assert metrics.avg_monthly_expense == Decimal("1800")

    @pytest.mark.asyncio
    async def test_top_categories(self, reporter, seeded):
        """Test expense categories ranked by total."""
        report = await reporter.report(USER, now=NOW)

        assert [(c.category, c.amount) for c in report.top_categories] == [
            ("Rent", Decimal("4500")),
            ("Food", Decimal("900")),
        ]

    @pytest.mark.asyncio
    async def test_rule_insights(self, reporter, seeded):
        """Test the savings, goal and concentration insights."""
        report = await reporter.report(USER, now=NOW)
        insights = by_title(report)

        assert insights["Healthy Savings Rate"].type == "success"
        assert insights["Healthy Savings Rate"].metric == "55.0%"
        assert insights["Goal Almost Achieved"].type == "success"
        assert insights["Goal Completion Prediction"].metric == "3 months"
        assert insights["High Spending Concentration"].metric == "83.3%"
        assert "Spending Increase Predicted" not in insights
        assert report.spending_forecast.predictions[0].amount == Decimal("1800")

    @pytest.mark.asyncio
    async def test_spending_increase_warning(
        self, seeded, transaction_store, goal_store, aggregator, forecast_settings
    ):
        """Test a predicted rise over ten percent is flagged."""
        reporter = reporter_with(1.2, transaction_store, goal_store, aggregator, forecast_settings)

        insights = by_title(await reporter.report(USER, now=NOW))

        assert insights["Spending Increase Predicted"].type == "warning"
        assert insights["Spending Increase Predicted"].metric == "+20.0%"

    @pytest.mark.asyncio
    async def test_spending_decrease_success(
        self, seeded, transaction_store, goal_store, aggregator, forecast_settings
    ):
        """Test a predicted drop over ten percent is praised."""
        reporter = reporter_with(0.8, transaction_store, goal_store, aggregator, forecast_settings)

        insights = by_title(await reporter.report(USER, now=NOW))

        assert insights["Spending Decrease Predicted"].metric == "-20.0%"

    @pytest.mark.asyncio
    async def test_empty_history(self, reporter):
        """Test a user with no data gets a report without a forecast."""
        report = await reporter.report(USER, now=NOW)

        assert report.metrics.total_income == Decimal("0")
        assert report.metrics.savings_rate == 0.0
        assert report.spending_forecast is None
        assert [i.title for i in report.insights] == ["Negative Savings Rate"]

    @pytest.mark.asyncio
    async def test_moderate_savings_rate(self, reporter, seed):
        """Test a positive rate under twenty percent is a warning."""
        seed(INCOME, 1000, datetime(2026, 5, 1))
        seed(EXPENSE, 900, datetime(2026, 5, 2))

        insights = by_title(await reporter.report(USER, now=NOW))

        assert insights["Improve Your Savings Rate"].type == "warning"
        assert insights["Improve Your Savings Rate"].metric == "10.0%"
