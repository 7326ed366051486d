"""
Shared fixtures.

Everything runs against the in-memory stores: no network, no spreadsheet.
Forecast randomness is pinned with FixedVariation unless a test says
otherwise, and dates are anchored to NOW so month arithmetic is stable.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest

from wallet_ledger.audit import AuditLogger
from wallet_ledger.config import ForecastSettings, WalletSettings
from wallet_ledger.forecast import (
    FixedVariation,
    ForecastEngine,
    GoalProjector,
    InsightsReporter,
    MonthlyAggregator,
)
from wallet_ledger.ledger import LedgerSynchronizer
from wallet_ledger.models import PaymentMethod, Transaction, TransactionType
from wallet_ledger.orchestrator import WalletService
from wallet_ledger.services.security import BcryptPinHasher
from wallet_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryGoalStore,
    InMemoryTransactionStore,
    InMemoryWalletStore,
)


NOW = datetime(2026, 6, 15, 12, 0, 0)
USER = "user-1"


@pytest.fixture
def wallet_settings() -> WalletSettings:
    return WalletSettings(
        default_pin=None,
        min_pin_length=4,
        recent_transactions_limit=10,
    )


@pytest.fixture
def forecast_settings() -> ForecastSettings:
    return ForecastSettings(
        lookback_months=12,
        min_transactions=3,
        window_size=3,
        variation_low=0.9,
        variation_high=1.1,
        max_months=12,
        insights_lookback_months=6,
    )


@pytest.fixture
def wallet_store() -> InMemoryWalletStore:
    return InMemoryWalletStore()


@pytest.fixture
def transaction_store() -> InMemoryTransactionStore:
    return InMemoryTransactionStore()


@pytest.fixture
def goal_store() -> InMemoryGoalStore:
    return InMemoryGoalStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def pin_hasher() -> BcryptPinHasher:
    # Minimum cost keeps the suite fast
    return BcryptPinHasher(rounds=4)


@pytest.fixture
def ledger(wallet_store, transaction_store, audit_storage, pin_hasher, wallet_settings):
    return LedgerSynchronizer(
        wallet_store=wallet_store,
        transaction_store=transaction_store,
        pin_hasher=pin_hasher,
        audit_logger=AuditLogger(audit_storage),
        settings=wallet_settings,
    )


@pytest.fixture
def aggregator(transaction_store, forecast_settings) -> MonthlyAggregator:
    return MonthlyAggregator(transaction_store, forecast_settings)


@pytest.fixture
def variation() -> FixedVariation:
    return FixedVariation(1.0)


@pytest.fixture
def engine(aggregator, variation, forecast_settings) -> ForecastEngine:
    return ForecastEngine(aggregator, variation, forecast_settings)


@pytest.fixture
def projector(aggregator, goal_store) -> GoalProjector:
    return GoalProjector(aggregator, goal_store)


@pytest.fixture
def reporter(transaction_store, goal_store, engine, projector, forecast_settings):
    return InsightsReporter(transaction_store, goal_store, engine, projector, forecast_settings)


@pytest.fixture
def service(ledger, engine, projector, reporter, audit_storage) -> WalletService:
    return WalletService(
        ledger=ledger,
        engine=engine,
        projector=projector,
        reporter=reporter,
        audit_logger=AuditLogger(audit_storage),
        max_conflict_retries=3,
    )


@pytest.fixture
def seed(transaction_store):
    """Append a transaction straight into the ledger store."""

    def _seed(
        tx_type: TransactionType,
        amount,
        date: datetime,
        category: str = "Food",
        user_id: str = USER,
        payment_method: Optional[PaymentMethod] = None,
    ) -> Transaction:
        tx = Transaction(
            user_id=user_id,
            type=tx_type,
            amount=Decimal(str(amount)),
            category=category,
            date=date,
            payment_method=payment_method or PaymentMethod.CASH,
        )
        transaction_store._transactions.append(tx)
        return tx

    return _seed
