"""
Data Models Package

This package contains all Pydantic models used in the Wallet Ledger system.
All data flowing through the system must conform to these schemas.
"""

from wallet_ledger.models.transaction import (
    PaymentMethod,
    ReceiptData,
    ReceiptItem,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from wallet_ledger.models.wallet import (
    CardAccount,
    CardDetails,
    BalanceSummary,
    CardType,
    WalletAccount,
    WalletSnapshot,
)
from wallet_ledger.models.goal import (
    GoalMovement,
    SavingsGoal,
)
from wallet_ledger.models.forecast import (
    CategoryTotal,
    FinancialInsights,
    FinancialMetrics,
    GoalProjection,
    Insight,
    MonthlyAmount,
    OperationResult,
    SpendingForecast,
)
from wallet_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "PaymentMethod",
    "ReceiptData",
    "ReceiptItem",
    "Transaction",
    "TransactionFilter",
    "TransactionType",
    # Wallet models
    "CardAccount",
    "CardDetails",
    "BalanceSummary",
    "CardType",
    "WalletAccount",
    "WalletSnapshot",
    # Goal models
    "GoalMovement",
    "SavingsGoal",
    # Forecast and result models
    "CategoryTotal",
    "FinancialInsights",
    "FinancialMetrics",
    "GoalProjection",
    "Insight",
    "MonthlyAmount",
    "OperationResult",
    "SpendingForecast",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
