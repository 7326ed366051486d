"""
Main Orchestrator for Wallet Ledger

This module ties together all the components and defines the operation
surface callers (an HTTP layer, a CLI, a job) talk to:
1. Wallet mutations (cash, cards, PIN, reconciliation)
2. Read-only analysis (spending forecast, goal projection, insights)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation answers with an OperationResult envelope
- Business failures become envelopes with a stable error code
- Storage failures are logged at error level and reported generically
- Version conflicts are retried with a fresh read before being reported

This is the "glue" that keeps callers free of exception handling while the
core stays strict about what it accepts.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random

from wallet_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from wallet_ledger.config import Settings, get_settings
from wallet_ledger.exceptions import (
    ConcurrencyConflictError,
    InsufficientDataError,
    NoPositiveSavingsError,
    UpstreamUnavailableError,
    ValidationError,
    WalletLedgerError,
)
from wallet_ledger.forecast import (
    ForecastEngine,
    GoalProjector,
    InsightsReporter,
    MonthlyAggregator,
    VariationProvider,
)
from wallet_ledger.ledger import LedgerSynchronizer
from wallet_ledger.models.audit import AuditEventType
from wallet_ledger.models.forecast import OperationResult
from wallet_ledger.models.wallet import CardDetails
from wallet_ledger.services.security import BcryptPinHasher, PinHasherInterface
from wallet_ledger.services.storage import (
    GoalStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGoalStore,
    GoogleSheetsTransactionStore,
    GoogleSheetsWalletStore,
    InMemoryAuditStorage,
    InMemoryGoalStore,
    InMemoryTransactionStore,
    InMemoryWalletStore,
    StorageError,
    TransactionStoreInterface,
    WalletStoreInterface,
)


logger = structlog.get_logger("wallet_ledger.service")


def _from_pydantic(error: PydanticValidationError) -> ValidationError:
    """Report the first failing field of a model validation error."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "input"
    return ValidationError(field, f"Invalid {field}: {first.get('msg', 'invalid value')}")


class WalletService:
    """
    The exposed wallet operations.

    One call per request. Each call gets its own correlation ID so the
    audit trail can tie a mutation to the ledger entry it produced.
    """

    def __init__(
        self,
        ledger: LedgerSynchronizer,
        engine: ForecastEngine,
        projector: GoalProjector,
        reporter: InsightsReporter,
        audit_logger: Optional[AuditLogger] = None,
        max_conflict_retries: Optional[int] = None,
    ):
        self._ledger = ledger
        self._engine = engine
        self._projector = projector
        self._reporter = reporter
        self._audit_logger = audit_logger
        self._max_conflict_retries = (
            max_conflict_retries or get_settings().app.max_conflict_retries
        )

    # =========================================================================
    # Envelope handling
    # =========================================================================

    async def _run(
        self,
        operation: str,
        user_id: Optional[str],
        call: Callable[[UUID], Awaitable[Any]],
        message: str,
    ) -> OperationResult:
        """
        Execute one operation and wrap the outcome.

        Version conflicts are retried with a fresh read; every other
        business error is reported on the first failure.
        """
        correlation_id = create_correlation_id()
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(ConcurrencyConflictError),
                stop=stop_after_attempt(self._max_conflict_retries),
                wait=wait_random(0, 0.05),
                reraise=True,
            ):
                with attempt:
                    data = await call(correlation_id)
        except PydanticValidationError as e:
            return await self._fail(operation, user_id, _from_pydantic(e), correlation_id)
        except WalletLedgerError as e:
            return await self._fail(operation, user_id, e, correlation_id)
        except StorageError as e:
            logger.error(
                "storage_unavailable",
                operation=operation,
                user_id=user_id,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            return await self._fail(
                operation, user_id, UpstreamUnavailableError(operation, e), correlation_id
            )

        return OperationResult.ok(message, data)

    async def _fail(
        self,
        operation: str,
        user_id: Optional[str],
        error: WalletLedgerError,
        correlation_id: UUID,
    ) -> OperationResult:
        if self._audit_logger:
            if isinstance(error, (InsufficientDataError, NoPositiveSavingsError)):
                await self._audit_logger.log_prediction_unavailable(
                    user_id, operation, error.code, correlation_id
                )
            else:
                await self._audit_logger.log_operation_failed(
                    user_id=user_id,
                    operation=operation,
                    error_code=error.code,
                    error_message=error.message,
                    details=error.details,
                    correlation_id=correlation_id,
                )

        data = error.projection if isinstance(error, NoPositiveSavingsError) else None
        if isinstance(error, UpstreamUnavailableError):
            # Backend detail stays in the logs
            return OperationResult.fail("Storage is temporarily unavailable", error.code)
        return OperationResult.fail(error.message, error.code, data=data, details=error.details)

    # =========================================================================
    # Wallet
    # =========================================================================

    async def ensure_account(self, user_id: str) -> OperationResult:
        return await self._run(
            "ensure_account", user_id,
            lambda cid: self._ledger.ensure_account(user_id, cid),
            "Wallet ready",
        )

    async def get_wallet(self, user_id: str) -> OperationResult:
        return await self._run(
            "get_wallet", user_id,
            lambda cid: self._ledger.get_wallet(user_id),
            "Wallet retrieved",
        )

    async def get_balance_summary(self, user_id: str) -> OperationResult:
        return await self._run(
            "get_balance_summary", user_id,
            lambda cid: self._ledger.get_balance_summary(user_id),
            "Wallet balance retrieved",
        )

    async def set_cash(
        self,
        user_id: str,
        amount: Any,
        reason: Optional[str] = None,
    ) -> OperationResult:
        """Set cash; the change is recorded in the ledger only when a reason is given."""
        return await self._run(
            "set_cash", user_id,
            lambda cid: self._ledger.set_cash(
                user_id, amount,
                record_audit=bool(reason and reason.strip()),
                reason=reason,
                correlation_id=cid,
            ),
            "Cash amount updated successfully",
        )

    async def add_cash(
        self,
        user_id: str,
        amount: Any,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "add_cash", user_id,
            lambda cid: self._ledger.add_cash(
                user_id, amount, category, description, correlation_id=cid
            ),
            "Cash added successfully",
        )

    async def add_card(
        self,
        user_id: str,
        card: Union[CardDetails, dict],
    ) -> OperationResult:
        async def call(cid: UUID):
            details = card if isinstance(card, CardDetails) else CardDetails(**card)
            return await self._ledger.add_card(user_id, details, correlation_id=cid)

        return await self._run("add_card", user_id, call, "Card added successfully")

    async def remove_card(self, user_id: str, card_id: str) -> OperationResult:
        return await self._run(
            "remove_card", user_id,
            lambda cid: self._ledger.remove_card(user_id, card_id, correlation_id=cid),
            "Card removed successfully",
        )

    async def update_card_balance(
        self,
        user_id: str,
        card_id: str,
        balance: Any,
        reason: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "update_card_balance", user_id,
            lambda cid: self._ledger.update_card_balance(
                user_id, card_id, balance, reason, correlation_id=cid
            ),
            "Card balance updated successfully",
        )

    async def sync_with_transactions(
        self,
        user_id: str,
        reset_cards: bool = False,
    ) -> OperationResult:
        return await self._run(
            "sync_with_transactions", user_id,
            lambda cid: self._ledger.sync_with_transactions(
                user_id, reset_cards, correlation_id=cid
            ),
            "Wallet synchronized with transactions",
        )

    # =========================================================================
    # PIN gate
    # =========================================================================

    async def verify_pin(self, user_id: str, pin: Any) -> OperationResult:
        return await self._run(
            "verify_pin", user_id,
            lambda cid: self._ledger.verify_pin(user_id, pin, correlation_id=cid),
            "PIN verified successfully",
        )

    async def update_pin(
        self,
        user_id: str,
        new_pin: Any,
        current_pin: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "update_pin", user_id,
            lambda cid: self._ledger.update_pin(
                user_id, new_pin, current_pin, correlation_id=cid
            ),
            "PIN updated successfully",
        )

    # =========================================================================
    # Forecasting
    # =========================================================================

    async def predict_spending(
        self,
        user_id: str,
        months: Any = 1,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        async def call(cid: UUID):
            forecast = await self._engine.predict_spending(user_id, months, category, now)
            if self._audit_logger:
                await self._audit_logger.log_prediction(
                    AuditEventType.SPENDING_PREDICTED,
                    user_id,
                    {
                        "months": len(forecast.predictions),
                        "category": category,
                        "moving_average": str(forecast.moving_average),
                    },
                    cid,
                )
            return forecast

        return await self._run(
            "predict_spending", user_id, call, "Spending prediction completed"
        )

    async def predict_savings_goal_completion(
        self,
        user_id: str,
        goal_id: str,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        async def call(cid: UUID):
            projection = await self._projector.project(user_id, goal_id, now)
            if self._audit_logger:
                await self._audit_logger.log_prediction(
                    AuditEventType.GOAL_PROJECTED,
                    user_id,
                    {
                        "is_reached": projection.is_reached,
                        "months_to_completion": projection.months_to_completion,
                    },
                    cid,
                    goal_id=goal_id,
                )
            return projection

        result = await self._run(
            "predict_savings_goal_completion", user_id, call,
            "Savings goal prediction completed",
        )
        if result.success and result.data.is_reached:
            result.message = "Savings goal already reached"
        return result

    async def get_financial_insights(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        async def call(cid: UUID):
            report = await self._reporter.report(user_id, now)
            if self._audit_logger:
                await self._audit_logger.log_prediction(
                    AuditEventType.INSIGHTS_GENERATED,
                    user_id,
                    {"insights": len(report.insights)},
                    cid,
                )
            return report

        return await self._run(
            "get_financial_insights", user_id, call, "Financial insights generated"
        )


def build_service(
    wallet_store: WalletStoreInterface,
    transaction_store: TransactionStoreInterface,
    goal_store: GoalStoreInterface,
    audit_logger: Optional[AuditLogger] = None,
    pin_hasher: Optional[PinHasherInterface] = None,
    variation: Optional[VariationProvider] = None,
    settings: Optional[Settings] = None,
) -> WalletService:
    """Wire the core components over a given set of stores."""
    settings = settings or get_settings()
    forecast_settings = settings.forecast

    ledger = LedgerSynchronizer(
        wallet_store=wallet_store,
        transaction_store=transaction_store,
        pin_hasher=pin_hasher or BcryptPinHasher(),
        audit_logger=audit_logger,
        settings=settings.wallet,
    )
    aggregator = MonthlyAggregator(transaction_store, forecast_settings)
    engine = ForecastEngine(aggregator, variation, forecast_settings)
    projector = GoalProjector(aggregator, goal_store)
    reporter = InsightsReporter(
        transaction_store, goal_store, engine, projector, forecast_settings
    )

    return WalletService(
        ledger=ledger,
        engine=engine,
        projector=projector,
        reporter=reporter,
        audit_logger=audit_logger,
        max_conflict_retries=settings.app.max_conflict_retries,
    )


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[WalletService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    The storage backend comes from ``STORAGE_BACKEND``. A misconfigured
    Google Sheets backend fails here, at startup, rather than silently
    falling back to memory and losing ledger writes.

    Returns:
        (wallet_service, sheets_client)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    sheets_client = None
    if app_settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        wallet_store = GoogleSheetsWalletStore(sheets_client)
        transaction_store = GoogleSheetsTransactionStore(sheets_client)
        goal_store = GoogleSheetsGoalStore(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        wallet_store = InMemoryWalletStore()
        transaction_store = InMemoryTransactionStore()
        goal_store = InMemoryGoalStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    logger.info(
        "app_components_created",
        storage_backend=app_settings.storage_backend,
        environment=app_settings.app_environment,
    )

    service = build_service(
        wallet_store=wallet_store,
        transaction_store=transaction_store,
        goal_store=goal_store,
        audit_logger=audit_logger,
        settings=settings,
    )
    return service, sheets_client
