"""
Savings Goal Projection

Estimates when a goal will be reached from the user's average positive
monthly net savings. Months where the user saved nothing or went backwards
are left out of the average; the filter is per month, not a trend.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Optional

from wallet_ledger.clock import add_months, as_of
from wallet_ledger.exceptions import NoPositiveSavingsError, NotFoundError
from wallet_ledger.forecast.aggregator import MonthlyAggregator
from wallet_ledger.models.forecast import GoalProjection, MonthlyAmount
from wallet_ledger.models.goal import SavingsGoal
from wallet_ledger.services.storage import GoalStoreInterface


def goal_summary(goal: SavingsGoal) -> GoalProjection:
    """The projection fields that do not depend on savings history."""
    return GoalProjection(
        goal_id=goal.id,
        goal_name=goal.name,
        target_amount=goal.target_amount,
        current_amount=goal.current_amount,
        remaining_amount=goal.target_amount - goal.current_amount,
        target_date=goal.target_date,
    )


def project_goal(
    goal: SavingsGoal,
    savings: list[MonthlyAmount],
    now: Optional[datetime] = None,
) -> GoalProjection:
    """
    Project a goal against a net-savings series.

    Raises:
        NoPositiveSavingsError: No month in the series saved anything;
            the error carries the summary without a projection
    """
    projection = goal_summary(goal)

    positive = [point.amount for point in savings if point.amount > 0]
    if not positive:
        raise NoPositiveSavingsError(projection)

    average = sum(positive, Decimal("0")) / len(positive)
    months = math.ceil(projection.remaining_amount / average)
    completion = add_months(as_of(now), months)

    return projection.model_copy(update={
        "average_monthly_savings": average,
        "months_to_completion": months,
        "projected_completion_date": completion,
        "will_reach_by_target_date": (
            completion <= goal.target_date if goal.target_date else False
        ),
    })


class GoalProjector:
    """Loads a goal and the savings history, then projects completion."""

    def __init__(
        self,
        aggregator: MonthlyAggregator,
        goal_store: GoalStoreInterface,
    ):
        self._aggregator = aggregator
        self._goals = goal_store

    async def project(
        self,
        user_id: str,
        goal_id: str,
        now: Optional[datetime] = None,
    ) -> GoalProjection:
        """
        Raises:
            NotFoundError: No such goal for this user
            InsufficientDataError: Too little income history
            NoPositiveSavingsError: History never shows a saving month
        """
        goal = await self._goals.find_goal(user_id, goal_id)
        if goal is None:
            raise NotFoundError("savings_goal", goal_id)

        if goal.target_amount - goal.current_amount <= 0:
            return goal_summary(goal).model_copy(update={
                "remaining_amount": Decimal("0"),
                "is_reached": True,
                "months_to_completion": 0,
            })

        savings = await self._aggregator.savings_series(user_id, now)
        return project_goal(goal, savings, now)
