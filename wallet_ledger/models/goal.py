"""
Savings Goal Models

Goals are owned by another part of the system; the forecasting code only
reads them to project a completion date.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wallet_ledger.clock import as_of, to_naive_utc, utc_now


class GoalMovement(BaseModel):
    """A contribution to or withdrawal from a goal."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., ge=0)
    date: datetime = Field(default_factory=utc_now)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("date")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class SavingsGoal(BaseModel):
    """
    A target amount the user is saving towards.

    Progress figures are derived from ``target_amount`` and
    ``current_amount`` on read.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: str = Field(default="General", min_length=1)

    target_amount: Decimal = Field(..., ge=0)
    current_amount: Decimal = Field(default=Decimal("0"))

    created_date: datetime = Field(default_factory=utc_now)
    target_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None

    contributions: list[GoalMovement] = Field(default_factory=list)
    withdrawals: list[GoalMovement] = Field(default_factory=list)

    color: str = "#3551A2"
    icon: str = "savings"

    @field_validator("created_date", "target_date", "completed_date")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Aware timestamps are stored as naive UTC."""
        return to_naive_utc(v)

    @property
    def progress(self) -> float:
        """Progress between 0.0 and 1.0 (may exceed 1.0 when overfunded)."""
        if self.target_amount <= 0:
            return 0.0
        return float(self.current_amount / self.target_amount)

    @property
    def progress_percentage(self) -> float:
        return self.progress * 100

    @property
    def remaining_amount(self) -> Decimal:
        return max(Decimal("0"), self.target_amount - self.current_amount)

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        """Whole days until the target date, never negative."""
        if self.target_date is None:
            return 0
        now = as_of(now)
        seconds = (self.target_date - now).total_seconds()
        return max(0, math.ceil(seconds / 86400))

    def daily_amount_needed(self, now: Optional[datetime] = None) -> Decimal:
        days = self.days_remaining(now)
        if days <= 0:
            return Decimal("0")
        return self.remaining_amount / days

    @property
    def total_contributions(self) -> Decimal:
        return sum((c.amount for c in self.contributions), Decimal("0"))

    @property
    def total_withdrawals(self) -> Decimal:
        return sum((w.amount for w in self.withdrawals), Decimal("0"))
