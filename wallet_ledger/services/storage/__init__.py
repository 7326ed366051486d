"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory stores back tests and local runs; Google Sheets is the persistent
backend, but the ledger only ever sees the interfaces.
"""

from wallet_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConcurrencyConflictError,
    DuplicateError,
    GoalStoreInterface,
    MissingRecordError,
    StorageConnectionError,
    StorageError,
    TransactionStoreInterface,
    WalletStoreInterface,
)
from wallet_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryGoalStore,
    InMemoryTransactionStore,
    InMemoryWalletStore,
)
from wallet_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGoalStore,
    GoogleSheetsTransactionStore,
    GoogleSheetsWalletStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "GoalStoreInterface",
    "TransactionStoreInterface",
    "WalletStoreInterface",
    # Exceptions
    "ConcurrencyConflictError",
    "DuplicateError",
    "MissingRecordError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryGoalStore",
    "InMemoryTransactionStore",
    "InMemoryWalletStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGoalStore",
    "GoogleSheetsTransactionStore",
    "GoogleSheetsWalletStore",
]
