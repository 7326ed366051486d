"""
In-Memory Storage Implementation

Keeps everything in process memory. Used by the test suite and for local
runs without a spreadsheet.

Every read and write goes through a deep copy, so callers can never mutate
stored state without going through ``save`` - the same isolation a real
database round trip gives.
"""

from typing import Optional
from uuid import UUID

from wallet_ledger.clock import utc_now
from wallet_ledger.exceptions import ConcurrencyConflictError
from wallet_ledger.models.audit import AuditEvent
from wallet_ledger.models.goal import SavingsGoal
from wallet_ledger.models.transaction import Transaction, TransactionFilter
from wallet_ledger.models.wallet import WalletAccount
from wallet_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    GoalStoreInterface,
    MissingRecordError,
    TransactionStoreInterface,
    WalletStoreInterface,
)


class InMemoryTransactionStore(TransactionStoreInterface):
    """Append-only list of transactions."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: list[Transaction] = list(transactions or [])

    async def insert(self, transaction: Transaction) -> Transaction:
        self._transactions.append(transaction)
        return transaction

    async def find(self, query: TransactionFilter) -> list[Transaction]:
        matches = [tx for tx in self._transactions if query.matches(tx)]
        # Stable sort keeps insertion order for equal timestamps
        matches.sort(key=lambda tx: tx.date)
        if query.limit is not None:
            matches = matches[:query.limit]
        return matches

    async def count(self, query: TransactionFilter) -> int:
        return sum(1 for tx in self._transactions if query.matches(tx))

    async def find_recent(self, user_id: str, limit: int = 10) -> list[Transaction]:
        owned = [tx for tx in self._transactions if tx.user_id == user_id]
        owned.sort(key=lambda tx: tx.date, reverse=True)
        return owned[:limit]


class InMemoryWalletStore(WalletStoreInterface):
    """Wallets keyed by user ID, with optimistic version checks."""

    def __init__(self):
        self._wallets: dict[str, WalletAccount] = {}

    async def find_by_user(self, user_id: str) -> Optional[WalletAccount]:
        wallet = self._wallets.get(user_id)
        return wallet.model_copy(deep=True) if wallet else None

    async def create(self, wallet: WalletAccount) -> WalletAccount:
        if wallet.user_id in self._wallets:
            raise DuplicateError(f"Wallet already exists for user {wallet.user_id}")
        stored = wallet.model_copy(deep=True)
        self._wallets[wallet.user_id] = stored
        return stored.model_copy(deep=True)

    async def save(self, wallet: WalletAccount) -> WalletAccount:
        current = self._wallets.get(wallet.user_id)
        if current is None:
            raise MissingRecordError(f"Wallet not found for user {wallet.user_id}")
        if current.version != wallet.version:
            raise ConcurrencyConflictError(wallet.user_id, wallet.version)

        stored = wallet.model_copy(deep=True)
        stored.version = wallet.version + 1
        stored.updated_at = utc_now()
        self._wallets[wallet.user_id] = stored
        return stored.model_copy(deep=True)


class InMemoryGoalStore(GoalStoreInterface):
    """Savings goals keyed by goal ID."""

    def __init__(self, goals: Optional[list[SavingsGoal]] = None):
        self._goals: dict[str, SavingsGoal] = {g.id: g for g in goals or []}

    def add(self, goal: SavingsGoal) -> SavingsGoal:
        """Seed a goal (goals are managed outside this core)."""
        self._goals[goal.id] = goal
        return goal

    async def find_goal(self, user_id: str, goal_id: str) -> Optional[SavingsGoal]:
        goal = self._goals.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return None
        return goal.model_copy(deep=True)

    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        return [
            g.model_copy(deep=True)
            for g in self._goals.values()
            if g.user_id == user_id
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if user_id is None or e.user_id == user_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
