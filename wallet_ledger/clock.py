"""
Calendar helpers shared by the ledger and the forecasting code.

All timestamps in the system are naive UTC. Month keys are ``YYYY-MM``
strings, which sort chronologically as plain strings.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil.relativedelta import relativedelta


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware timestamp to naive UTC; naive values are taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_of(now: Optional[datetime] = None) -> datetime:
    """The reference time for a calculation: ``now`` in naive UTC, or the current time."""
    return to_naive_utc(now) if now is not None else utc_now()


def month_key(value: Union[date, datetime]) -> str:
    """Truncate a date or timestamp to its ``YYYY-MM`` month key."""
    return value.strftime("%Y-%m")


def parse_month_key(key: str) -> date:
    """First day of the month named by a ``YYYY-MM`` key."""
    return datetime.strptime(key, "%Y-%m").date()


def add_months(value, months: int):
    """Calendar-month arithmetic; day-of-month is clamped to the target month."""
    return value + relativedelta(months=months)


def next_month_keys(last_key: str, count: int) -> list[str]:
    """The ``count`` month keys that follow ``last_key``."""
    start = parse_month_key(last_key)
    return [month_key(add_months(start, i + 1)) for i in range(count)]
