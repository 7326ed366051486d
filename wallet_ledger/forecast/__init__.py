"""
Forecasting package.

Read-only analysis of the transaction ledger: monthly series, spending
forecasts, savings goal projections and the insights report.
"""

from wallet_ledger.forecast.aggregator import MonthlyAggregator, sum_by_month, to_series
from wallet_ledger.forecast.engine import (
    FixedVariation,
    ForecastEngine,
    RandomVariation,
    VariationProvider,
    moving_average,
)
from wallet_ledger.forecast.goals import GoalProjector, goal_summary, project_goal
from wallet_ledger.forecast.insights import InsightsReporter

__all__ = [
    "FixedVariation",
    "ForecastEngine",
    "GoalProjector",
    "InsightsReporter",
    "MonthlyAggregator",
    "RandomVariation",
    "VariationProvider",
    "goal_summary",
    "moving_average",
    "project_goal",
    "sum_by_month",
    "to_series",
]
