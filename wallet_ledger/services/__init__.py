"""Services package."""

from wallet_ledger.services.security import BcryptPinHasher, PinHasherInterface
from wallet_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
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
    StorageConnectionError,
    StorageError,
    TransactionStoreInterface,
    WalletStoreInterface,
)

__all__ = [
    # Security
    "BcryptPinHasher",
    "PinHasherInterface",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "GoalStoreInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGoalStore",
    "GoogleSheetsTransactionStore",
    "GoogleSheetsWalletStore",
    "InMemoryAuditStorage",
    "InMemoryGoalStore",
    "InMemoryTransactionStore",
    "InMemoryWalletStore",
    "StorageConnectionError",
    "StorageError",
    "TransactionStoreInterface",
    "WalletStoreInterface",
]
