"""
Forecast and Result Models

These models describe what the read-only side of the system returns:
monthly series, predictions, goal projections, insights, and the uniform
result envelope every exposed operation answers with.

DESIGN DECISION: "Cannot predict yet" is a normal result with
``success=False``, not an exception the caller must catch.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class MonthlyAmount(BaseModel):
    """One point of a monthly series."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="YYYY-MM month key"
    )
    amount: Decimal


class SpendingForecast(BaseModel):
    """Moving-average forecast of future monthly spending."""

    historical: list[MonthlyAmount]
    predictions: list[MonthlyAmount]
    prediction_type: str = "spending"
    model_type: str = "statistical"
    moving_average: Decimal = Field(
        ...,
        description="Mean of the trailing window the predictions are based on"
    )


class GoalProjection(BaseModel):
    """
    Projected completion of a savings goal.

    ``projected_completion_date`` and ``months_to_completion`` are None when
    no finite projection exists.
    """

    goal_id: str
    goal_name: str
    target_amount: Decimal
    current_amount: Decimal
    remaining_amount: Decimal
    target_date: Optional[datetime] = None
    is_reached: bool = False
    projected_completion_date: Optional[datetime] = None
    months_to_completion: Optional[int] = None
    will_reach_by_target_date: Optional[bool] = None
    average_monthly_savings: Optional[Decimal] = None


class Insight(BaseModel):
    """A single rule-based observation about the user's finances."""

    type: str = Field(
        ...,
        pattern="^(success|info|warning|error)$",
    )
    title: str
    description: str
    metric: str


class CategoryTotal(BaseModel):
    category: str
    amount: Decimal


class FinancialMetrics(BaseModel):
    total_income: Decimal
    total_expense: Decimal
    net_savings: Decimal
    savings_rate: float
    avg_monthly_income: Decimal
    avg_monthly_expense: Decimal
    avg_monthly_savings: Decimal


class FinancialInsights(BaseModel):
    """Summary of recent months with insights and a spending forecast."""

    insights: list[Insight] = Field(default_factory=list)
    metrics: FinancialMetrics
    top_categories: list[CategoryTotal] = Field(default_factory=list)
    spending_forecast: Optional[SpendingForecast] = None


class OperationResult(BaseModel):
    """
    Uniform envelope returned by every exposed operation.

    ``error`` is a stable machine-readable code (see exceptions.py);
    ``message`` is for humans.
    """

    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls,
        message: str,
        error: str,
        data: Any = None,
        details: Optional[dict[str, Any]] = None,
    ) -> "OperationResult":
        return cls(
            success=False,
            message=message,
            error=error,
            data=data,
            details=details or {},
        )

    def to_dict(self) -> dict:
        """JSON-safe dict, e.g. for an HTTP layer to return as-is."""
        return self.model_dump(mode="json")
