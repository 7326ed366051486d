"""
Audit Logger

DESIGN DECISION: Every wallet mutation, prediction and failure is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability
3. A per-user history independent of the transaction ledger

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (never fails a wallet operation because the
  audit store is down)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from wallet_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from wallet_ledger.models.transaction import Transaction
from wallet_ledger.models.wallet import WalletAccount
from wallet_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output to stderr at the configured level."""
    logging.basicConfig(format="%(message)s", level=log_level)
    logging.getLogger().setLevel(log_level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("wallet_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_wallet_created(
        self,
        wallet: WalletAccount,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log lazy creation of a wallet."""
        event = AuditEventBuilder.wallet_created(
            user_id=wallet.user_id,
            pin_change_required=wallet.pin_change_required,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_mutation(
        self,
        event_type: AuditEventType,
        wallet: WalletAccount,
        delta: Decimal,
        correlation_id: Optional[UUID] = None,
        card_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a change to cash or a card balance."""
        event = AuditEventBuilder.balance_mutated(
            event_type=event_type,
            user_id=wallet.user_id,
            delta=str(delta),
            total_balance=str(wallet.total_balance),
            correlation_id=correlation_id,
            entity_type="card" if card_id else "wallet",
            entity_id=card_id,
            details=details,
        )
        await self.log(event)

    async def log_ledger_entry(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction synthesized from a balance change."""
        event = AuditEventBuilder.ledger_entry_recorded(
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            tx_type=transaction.type.value,
            amount=str(transaction.amount),
            category=transaction.category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_pin_check(
        self,
        user_id: str,
        matched: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.pin_checked(
            user_id=user_id,
            matched=matched,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_prediction(
        self,
        event_type: AuditEventType,
        user_id: str,
        summary: dict,
        correlation_id: Optional[UUID] = None,
        goal_id: Optional[str] = None,
    ) -> None:
        """Log a forecast, projection or insights report."""
        event = AuditEventBuilder.prediction_made(
            event_type=event_type,
            user_id=user_id,
            summary=summary,
            correlation_id=correlation_id,
            entity_type="goal" if goal_id else None,
            entity_id=goal_id,
        )
        await self.log(event)

    async def log_prediction_unavailable(
        self,
        user_id: str,
        operation: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a forecast that could not be produced (not an error)."""
        event = AuditEventBuilder.prediction_unavailable(
            user_id=user_id,
            operation=operation,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_operation_failed(
        self,
        user_id: Optional[str],
        operation: str,
        error_code: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed operation."""
        event = AuditEventBuilder.operation_failed(
            user_id=user_id,
            operation=operation,
            error_code=error_code,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new operation (e.g., a card balance edit).
    Pass it through all subsequent steps.
    """
    return uuid4()
