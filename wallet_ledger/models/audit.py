"""
Audit Models for Wallet Ledger

Every wallet mutation, prediction and failure is logged for audit purposes.
This complements the transaction ledger:
1. The ledger records money movement
2. The audit log records who asked for what, and how it went
3. Failures that never reach the ledger still leave a trace

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from wallet_ledger.clock import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every exposed wallet operation has its own event type.
    """
    # Wallet lifecycle
    WALLET_CREATED = "wallet_created"
    WALLET_SYNCED = "wallet_synced"

    # Balance mutations
    CASH_SET = "cash_set"
    CASH_ADDED = "cash_added"
    CARD_ADDED = "card_added"
    CARD_REMOVED = "card_removed"
    CARD_BALANCE_UPDATED = "card_balance_updated"
    LEDGER_ENTRY_RECORDED = "ledger_entry_recorded"

    # PIN gate
    PIN_VERIFIED = "pin_verified"
    PIN_REJECTED = "pin_rejected"
    PIN_UPDATED = "pin_updated"

    # Forecasting
    SPENDING_PREDICTED = "spending_predicted"
    GOAL_PROJECTED = "goal_projected"
    INSIGHTS_GENERATED = "insights_generated"
    PREDICTION_UNAVAILABLE = "prediction_unavailable"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every exposed operation creates at least one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - whose wallet, and which entity inside it
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the wallet the event concerns"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'card', 'transaction', 'goal')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one mutation and its ledger entry)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user request?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_code,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.wallet_created(user_id, correlation_id)
        event = AuditEventBuilder.ledger_entry_recorded(tx, correlation_id)
    """

    @staticmethod
    def wallet_created(
        user_id: str,
        pin_change_required: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_CREATED,
            user_id=user_id,
            entity_type="wallet",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Wallet created on first access",
            details={"pin_change_required": pin_change_required},
        )

    @staticmethod
    def balance_mutated(
        event_type: AuditEventType,
        user_id: str,
        delta: str,
        total_balance: str,
        correlation_id: Optional[UUID] = None,
        entity_type: str = "wallet",
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id or user_id,
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}: delta {delta}",
            details={
                "delta": delta,
                "total_balance": total_balance,
                **(details or {}),
            },
            is_user_action=True,
        )

    @staticmethod
    def ledger_entry_recorded(
        user_id: str,
        transaction_id: UUID,
        tx_type: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ENTRY_RECORDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description=f"Ledger entry recorded: {tx_type} {amount} ({category})",
            details={
                "type": tx_type,
                "amount": amount,
                "category": category,
            },
        )

    @staticmethod
    def pin_checked(
        user_id: str,
        matched: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PIN_VERIFIED if matched else AuditEventType.PIN_REJECTED,
            severity=AuditSeverity.INFO if matched else AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="wallet",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Wallet PIN verified" if matched else "Wallet PIN rejected",
            is_user_action=True,
        )

    @staticmethod
    def prediction_made(
        event_type: AuditEventType,
        user_id: str,
        summary: dict,
        correlation_id: Optional[UUID] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}",
            details=summary,
            is_user_action=True,
        )

    @staticmethod
    def prediction_unavailable(
        user_id: str,
        operation: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREDICTION_UNAVAILABLE,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} unavailable: {reason}",
            details={"operation": operation},
            error_code=reason,
        )

    @staticmethod
    def operation_failed(
        user_id: Optional[str],
        operation: str,
        error_code: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type, severity = {
            "validation_error": (AuditEventType.VALIDATION_FAILED, AuditSeverity.WARNING),
            "not_found": (AuditEventType.VALIDATION_FAILED, AuditSeverity.WARNING),
            "invalid_pin": (AuditEventType.PIN_REJECTED, AuditSeverity.WARNING),
            "concurrency_conflict": (AuditEventType.CONCURRENCY_CONFLICT, AuditSeverity.WARNING),
            "upstream_unavailable": (AuditEventType.STORAGE_ERROR, AuditSeverity.ERROR),
        }.get(error_code, (AuditEventType.SYSTEM_ERROR, AuditSeverity.ERROR))
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} failed: {error_code}",
            details={"operation": operation, **(details or {})},
            error_code=error_code,
            error_message=error_message,
        )
