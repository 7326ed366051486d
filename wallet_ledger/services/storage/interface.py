"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing
3. Keep the ledger logic decoupled from storage implementation

The interface is intentionally small - just the operations the ledger and
the forecasting code need.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from wallet_ledger.exceptions import ConcurrencyConflictError
from wallet_ledger.models.audit import AuditEvent
from wallet_ledger.models.goal import SavingsGoal
from wallet_ledger.models.transaction import Transaction, TransactionFilter
from wallet_ledger.models.wallet import WalletAccount


class TransactionStoreInterface(ABC):
    """
    Abstract interface for the transaction ledger.

    The ledger is append-only: there is no update or delete.
    """

    @abstractmethod
    async def insert(self, transaction: Transaction) -> Transaction:
        """
        Append a transaction to the ledger.

        Returns:
            The stored transaction

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def find(self, query: TransactionFilter) -> list[Transaction]:
        """
        List transactions matching a filter.

        Returns:
            Matching transactions, oldest first, truncated to ``query.limit``
        """
        pass

    @abstractmethod
    async def count(self, query: TransactionFilter) -> int:
        """Count transactions matching a filter (ignores ``limit``)."""
        pass

    @abstractmethod
    async def find_recent(self, user_id: str, limit: int = 10) -> list[Transaction]:
        """
        Most recent transactions for a user.

        Returns:
            Up to ``limit`` transactions, newest first
        """
        pass


class WalletStoreInterface(ABC):
    """
    Abstract interface for wallet account persistence.

    Implementations MUST enforce one wallet per user and MUST reject a save
    whose ``version`` no longer matches the stored one.
    """

    @abstractmethod
    async def find_by_user(self, user_id: str) -> Optional[WalletAccount]:
        """
        Retrieve a user's wallet.

        Returns:
            A detached copy of the wallet, or None if the user has none
        """
        pass

    @abstractmethod
    async def create(self, wallet: WalletAccount) -> WalletAccount:
        """
        Persist a new wallet.

        Raises:
            DuplicateError: If the user already has a wallet
        """
        pass

    @abstractmethod
    async def save(self, wallet: WalletAccount) -> WalletAccount:
        """
        Persist changes to an existing wallet.

        The stored version must equal ``wallet.version``; on success the
        stored version is incremented and the saved copy returned.

        Raises:
            ConcurrencyConflictError: If the stored version moved on
            MissingRecordError: If the wallet does not exist
            StorageError: If the write fails
        """
        pass


class GoalStoreInterface(ABC):
    """Read access to savings goals."""

    @abstractmethod
    async def find_goal(self, user_id: str, goal_id: str) -> Optional[SavingsGoal]:
        """Retrieve a goal, scoped to its owner."""
        pass

    @abstractmethod
    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        """All goals belonging to a user."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one wallet mutation).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, optionally for one user.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class MissingRecordError(StorageError):
    """A record the operation requires does not exist."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


__all__ = [
    "AuditStorageInterface",
    "ConcurrencyConflictError",
    "DuplicateError",
    "GoalStoreInterface",
    "MissingRecordError",
    "StorageConnectionError",
    "StorageError",
    "TransactionStoreInterface",
    "WalletStoreInterface",
]
