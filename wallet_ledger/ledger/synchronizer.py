"""
Ledger Synchronizer

Every direct edit of a wallet balance goes through here. The synchronizer
applies the edit and appends a Transaction for the difference, so the
transaction ledger stays a complete trail of how the balance got where it is.

CRITICAL: Inside one user's lock the matching Transaction is built first,
then the wallet is saved, then the Transaction is appended. Input the ledger
entry would reject fails before anything is written. A save that loses a
version race raises ConcurrencyConflictError and nothing is appended, so a
retried operation can never leave a duplicate ledger entry behind.

Two edits are deliberately not mirrored into the ledger:
- ``set_cash`` with ``record_audit=False`` (a silent correction)
- ``sync_with_transactions`` (it derives cash FROM the ledger)
"""

import asyncio
import weakref
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from pydantic import SecretStr

from wallet_ledger.audit import AuditLogger
from wallet_ledger.config import WalletSettings, get_settings
from wallet_ledger.exceptions import NotFoundError, PinMismatchError, ValidationError
from wallet_ledger.models.audit import AuditEventType
from wallet_ledger.models.transaction import (
    PaymentMethod,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from wallet_ledger.models.wallet import (
    BalanceSummary,
    CardAccount,
    CardDetails,
    WalletAccount,
    WalletSnapshot,
)
from wallet_ledger.services.security import PinHasherInterface
from wallet_ledger.services.storage import (
    DuplicateError,
    TransactionStoreInterface,
    WalletStoreInterface,
)


CASH_DEPOSIT = "Cash Deposit"
CASH_WITHDRAWAL = "Cash Withdrawal"
CARD_DEPOSIT = "Card Deposit"
CARD_WITHDRAWAL = "Card Withdrawal"
CARD_ADDITION = "Card Addition"
CARD_REMOVAL = "Card Removal"


def parse_amount(
    field: str,
    value: Any,
    *,
    allow_negative: bool = False,
    allow_zero: bool = True,
) -> Decimal:
    """
    Turn caller input into a finite Decimal or raise ValidationError.

    Floats go through ``str`` so 0.1 stays 0.1.
    """
    if value is None:
        raise ValidationError(field, f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be a number")

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(field, f"{field} must be a finite number")
    if amount < 0 and not allow_negative:
        raise ValidationError(field, f"{field} cannot be negative")
    if amount == 0 and not allow_zero:
        raise ValidationError(field, f"{field} must be greater than zero")
    return amount


class LedgerSynchronizer:
    """
    Applies balance mutations and keeps the ledger in step with them.

    One instance is shared across requests; mutations for the same user are
    serialized by a per-user asyncio.Lock, and the wallet store's version
    check catches writers outside this process.
    """

    def __init__(
        self,
        wallet_store: WalletStoreInterface,
        transaction_store: TransactionStoreInterface,
        pin_hasher: PinHasherInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[WalletSettings] = None,
    ):
        self._wallets = wallet_store
        self._transactions = transaction_store
        self._hasher = pin_hasher
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().wallet
        # Entries vanish once no coroutine holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    # =========================================================================
    # Account access
    # =========================================================================

    async def ensure_account(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """
        Get a user's wallet, creating an empty one on first access.

        Two concurrent first accesses race on the store's one-wallet-per-user
        constraint; the loser re-reads the winner's wallet.
        """
        if not user_id or not str(user_id).strip():
            raise ValidationError("user_id", "user_id is required")

        wallet = await self._wallets.find_by_user(user_id)
        if wallet is not None:
            return wallet

        default_pin = self._settings.default_pin
        wallet = WalletAccount(
            user_id=user_id,
            pin_hash=(
                SecretStr(self._hasher.hash(default_pin.get_secret_value()))
                if default_pin else None
            ),
            pin_change_required=True,
        )
        try:
            wallet = await self._wallets.create(wallet)
        except DuplicateError:
            existing = await self._wallets.find_by_user(user_id)
            if existing is None:
                raise
            return existing

        if self._audit_logger:
            await self._audit_logger.log_wallet_created(wallet, correlation_id)
        return wallet

    async def _require_account(self, user_id: str) -> WalletAccount:
        wallet = await self._wallets.find_by_user(user_id)
        if wallet is None:
            raise NotFoundError("wallet", user_id)
        return wallet

    async def get_wallet(self, user_id: str) -> WalletSnapshot:
        """Wallet plus its most recent transactions, newest first."""
        wallet = await self.ensure_account(user_id)
        recent = await self._transactions.find_recent(
            user_id, self._settings.recent_transactions_limit
        )
        return WalletSnapshot(wallet=wallet, recent_transactions=recent)

    async def get_balance_summary(self, user_id: str) -> BalanceSummary:
        wallet = await self._require_account(user_id)
        total_income, total_expenses = await self._ledger_totals(user_id)
        return BalanceSummary(
            cash_amount=wallet.cash_amount,
            cards_total=wallet.cards_total,
            wallet_balance=wallet.total_balance,
            total_income=total_income,
            total_expenses=total_expenses,
            transaction_balance=total_income - total_expenses,
        )

    async def _ledger_totals(self, user_id: str) -> tuple[Decimal, Decimal]:
        transactions = await self._transactions.find(TransactionFilter(user_id=user_id))
        income = sum((tx.amount for tx in transactions if tx.is_income), Decimal("0"))
        expense = sum((tx.amount for tx in transactions if tx.is_expense), Decimal("0"))
        return income, expense

    # =========================================================================
    # Ledger entries
    # =========================================================================

    @staticmethod
    def _entry(
        user_id: str,
        delta: Decimal,
        category: str,
        payment_method: PaymentMethod,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Build the Transaction mirroring a non-zero balance change.

        Called before the wallet is saved, so caller-supplied category or
        description text that fails validation rejects the whole mutation.
        """
        return Transaction(
            user_id=user_id,
            type=TransactionType.INCOME if delta > 0 else TransactionType.EXPENSE,
            amount=abs(delta),
            category=category,
            payment_method=payment_method,
            description=description,
        )

    async def _append(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID],
    ) -> Transaction:
        """Append an entry built by ``_entry`` once the wallet save succeeded."""
        transaction = await self._transactions.insert(transaction)
        if self._audit_logger:
            await self._audit_logger.log_ledger_entry(transaction, correlation_id)
        return transaction

    async def _log_mutation(
        self,
        event_type: AuditEventType,
        wallet: WalletAccount,
        delta: Decimal,
        correlation_id: Optional[UUID],
        card_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_balance_mutation(
                event_type=event_type,
                wallet=wallet,
                delta=delta,
                correlation_id=correlation_id,
                card_id=card_id,
                details=details,
            )

    # =========================================================================
    # Cash
    # =========================================================================

    async def set_cash(
        self,
        user_id: str,
        new_amount: Any,
        *,
        record_audit: bool,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """
        Overwrite the cash amount.

        With ``record_audit`` the difference is recorded as a Transaction
        (category ``reason`` or a default); without it the change is silent.
        Cash has no floor here: negative values are stored as given.
        """
        amount = parse_amount("cash_amount", new_amount, allow_negative=True)

        async with self._lock_for(user_id):
            wallet = await self.ensure_account(user_id, correlation_id)
            delta = amount - wallet.cash_amount
            if delta == 0:
                return wallet

            entry = None
            if record_audit:
                entry = self._entry(
                    user_id,
                    delta,
                    (reason or "").strip() or (CASH_DEPOSIT if delta > 0 else CASH_WITHDRAWAL),
                    PaymentMethod.CASH,
                )

            wallet.cash_amount = amount
            wallet = await self._wallets.save(wallet)
            if entry is not None:
                await self._append(entry, correlation_id)

        await self._log_mutation(
            AuditEventType.CASH_SET, wallet, delta, correlation_id,
            details={"recorded": record_audit},
        )
        return wallet

    async def add_cash(
        self,
        user_id: str,
        amount: Any,
        category: Optional[str] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """Increase cash and record the deposit as income."""
        delta = parse_amount("amount", amount, allow_zero=False)

        async with self._lock_for(user_id):
            entry = self._entry(
                user_id,
                delta,
                (category or "").strip() or CASH_DEPOSIT,
                PaymentMethod.CASH,
                description=description,
            )
            wallet = await self.ensure_account(user_id, correlation_id)
            wallet.cash_amount = wallet.cash_amount + delta
            wallet = await self._wallets.save(wallet)
            await self._append(entry, correlation_id)

        await self._log_mutation(AuditEventType.CASH_ADDED, wallet, delta, correlation_id)
        return wallet

    # =========================================================================
    # Cards
    # =========================================================================

    async def add_card(
        self,
        user_id: str,
        details: CardDetails,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """Append a card and record its opening balance as income."""
        card = CardAccount(
            number=details.number,
            holder_name=details.holder_name,
            expiry=details.expiry,
            cvv=details.cvv,
            type=details.type,
            balance=details.balance,
            color_tag=(
                details.color_tag
                if details.color_tag is not None
                else self._settings.default_card_color
            ),
            is_default=details.is_default,
        )

        entry = self._entry(
            user_id,
            card.balance,
            CARD_ADDITION,
            PaymentMethod.CARD,
            description=details.description or f"Added card {card.masked_number}",
        )

        async with self._lock_for(user_id):
            wallet = await self.ensure_account(user_id, correlation_id)
            wallet.cards = [*wallet.cards, card]
            wallet = await self._wallets.save(wallet)
            await self._append(entry, correlation_id)

        await self._log_mutation(
            AuditEventType.CARD_ADDED, wallet, card.balance, correlation_id,
            card_id=card.id,
        )
        return wallet

    async def remove_card(
        self,
        user_id: str,
        card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """Drop a card; a positive balance leaves as an expense."""
        async with self._lock_for(user_id):
            wallet = await self._require_account(user_id)
            card = wallet.find_card(card_id)
            if card is None:
                raise NotFoundError("card", card_id)

            entry = None
            if card.balance > 0:
                entry = self._entry(
                    user_id,
                    -card.balance,
                    CARD_REMOVAL,
                    PaymentMethod.CARD,
                    description=f"Removed card {card.masked_number}",
                )

            wallet.cards = [c for c in wallet.cards if c.id != card_id]
            wallet = await self._wallets.save(wallet)
            if entry is not None:
                await self._append(entry, correlation_id)

        await self._log_mutation(
            AuditEventType.CARD_REMOVED, wallet, -card.balance, correlation_id,
            card_id=card_id,
        )
        return wallet

    async def update_card_balance(
        self,
        user_id: str,
        card_id: str,
        new_balance: Any,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """Set a card's balance; any change is always recorded."""
        balance = parse_amount("balance", new_balance)

        async with self._lock_for(user_id):
            wallet = await self._require_account(user_id)
            card = wallet.find_card(card_id)
            if card is None:
                raise NotFoundError("card", card_id)

            delta = balance - card.balance
            if delta == 0:
                return wallet

            entry = self._entry(
                user_id,
                delta,
                (reason or "").strip() or (CARD_DEPOSIT if delta > 0 else CARD_WITHDRAWAL),
                PaymentMethod.CARD,
                description=f"Balance update for card {card.masked_number}",
            )

            card.balance = balance
            wallet = await self._wallets.save(wallet)
            await self._append(entry, correlation_id)

        await self._log_mutation(
            AuditEventType.CARD_BALANCE_UPDATED, wallet, delta, correlation_id,
            card_id=card_id,
        )
        return wallet

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def sync_with_transactions(
        self,
        user_id: str,
        reset_cards: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """
        Recompute cash from the ledger: max(0, income - expense).

        Emits no Transaction. Running it twice gives the same wallet.
        """
        async with self._lock_for(user_id):
            wallet = await self._require_account(user_id)
            income, expense = await self._ledger_totals(user_id)
            cash = max(Decimal("0"), income - expense)

            if wallet.cash_amount == cash and not (reset_cards and wallet.cards):
                return wallet

            delta = cash - wallet.cash_amount
            wallet.cash_amount = cash
            if reset_cards:
                wallet.cards = []
            wallet = await self._wallets.save(wallet)

        await self._log_mutation(
            AuditEventType.WALLET_SYNCED, wallet, delta, correlation_id,
            details={"reset_cards": reset_cards},
        )
        return wallet

    # =========================================================================
    # PIN gate
    # =========================================================================

    def _check_pin_format(self, field: str, pin: Any) -> str:
        if not isinstance(pin, str) or not pin.strip():
            raise ValidationError(field, f"{field} is required")
        if len(pin) < self._settings.min_pin_length:
            raise ValidationError(
                field,
                f"PIN must be at least {self._settings.min_pin_length} characters",
            )
        return pin

    async def verify_pin(
        self,
        user_id: str,
        pin: Any,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Check a PIN against the wallet's digest.

        Raises:
            PinMismatchError: Wrong PIN, or no PIN has been set
        """
        if not isinstance(pin, str) or not pin:
            raise ValidationError("pin", "pin is required")

        wallet = await self._require_account(user_id)
        matched = (
            wallet.pin_hash is not None
            and self._hasher.verify(pin, wallet.pin_hash.get_secret_value())
        )

        if self._audit_logger:
            await self._audit_logger.log_pin_check(user_id, matched, correlation_id)
        if not matched:
            raise PinMismatchError(
                "Invalid PIN" if wallet.pin_hash else "Wallet PIN has not been set"
            )
        return True

    async def update_pin(
        self,
        user_id: str,
        new_pin: Any,
        current_pin: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WalletAccount:
        """
        Replace the wallet PIN.

        When ``current_pin`` is given it must match first. Clears
        ``pin_change_required``.
        """
        pin = self._check_pin_format("new_pin", new_pin)

        async with self._lock_for(user_id):
            wallet = await self._require_account(user_id)
            if current_pin is not None:
                if wallet.pin_hash is None or not self._hasher.verify(
                    current_pin, wallet.pin_hash.get_secret_value()
                ):
                    if self._audit_logger:
                        await self._audit_logger.log_pin_check(user_id, False, correlation_id)
                    raise PinMismatchError("Current PIN is incorrect")

            wallet.pin_hash = SecretStr(self._hasher.hash(pin))
            wallet.pin_change_required = False
            wallet = await self._wallets.save(wallet)

        await self._log_mutation(
            AuditEventType.PIN_UPDATED, wallet, Decimal("0"), correlation_id
        )
        return wallet
