"""
Tests for the WalletService facade.

Every operation answers with an OperationResult; these tests check the
envelope contents and error codes rather than exceptions.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from wallet_ledger.audit import AuditLogger
from wallet_ledger.exceptions import ConcurrencyConflictError
from wallet_ledger.ledger import LedgerSynchronizer
from wallet_ledger.models import (
    AuditEventType,
    SavingsGoal,
    TransactionFilter,
    TransactionType,
)
from wallet_ledger.orchestrator import WalletService
from wallet_ledger.services.storage import InMemoryWalletStore, StorageError


NOW = datetime(2026, 6, 15, 12, 0, 0)
USER = "user-1"

CARD = {
    "number": "4111111111111111",
    "holder_name": "Ada Lovelace",
    "expiry": "12/29",
    "cvv": "123",
    "balance": "500",
}


class FlakyWalletStore(InMemoryWalletStore):
    """Loses the version race a fixed number of times."""

    def __init__(self, conflicts: int):
        super().__init__()
        self.conflicts = conflicts
        self.save_attempts = 0

    async def save(self, wallet):
        self.save_attempts += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConcurrencyConflictError(wallet.user_id, wallet.version)
        return await super().save(wallet)


def service_over(wallet_store, transaction_store, pin_hasher, wallet_settings,
                 engine, projector, reporter, audit_storage) -> WalletService:
    ledger = LedgerSynchronizer(
        wallet_store, transaction_store, pin_hasher,
        audit_logger=AuditLogger(audit_storage), settings=wallet_settings,
    )
    return WalletService(
        ledger, engine, projector, reporter,
        audit_logger=AuditLogger(audit_storage), max_conflict_retries=3,
    )


class TestWalletOperations:
    """Tests for the wallet side of the facade."""

    @pytest.mark.asyncio
    async def test_get_wallet_creates_on_first_access(self, service):
        """Test that reading a wallet creates it."""
        result = await service.get_wallet(USER)

        assert result.success is True
        assert result.data.wallet.cash_amount == Decimal("0")
        assert result.data.recent_transactions == []

    @pytest.mark.asyncio
    async def test_add_cash_envelope(self, service):
        """Test the success envelope and its JSON form."""
        result = await service.add_cash(USER, 100)

        assert result.success is True
        assert result.message == "Cash added successfully"
        assert result.error is None
        payload = result.to_dict()
        assert payload["data"]["cash_amount"] == "100"
        assert payload["data"]["total_balance"] == "100"
        assert "pin_hash" not in payload["data"]

    @pytest.mark.asyncio
    async def test_validation_failure_envelope(self, service, transaction_store):
        """Test that bad input is reported, not raised."""
        result = await service.add_cash(USER, "-5")

        assert result.success is False
        assert result.error == "validation_error"
        assert result.details == {"field": "amount"}
        assert await transaction_store.count(TransactionFilter(user_id=USER)) == 0

    @pytest.mark.asyncio
    async def test_set_cash_reason_controls_recording(self, service, transaction_store):
        """Test that only a reasoned cash edit is recorded."""
        await service.set_cash(USER, 1000)
        assert await transaction_store.count(TransactionFilter(user_id=USER)) == 0

        result = await service.set_cash(USER, 800, reason="Paid plumber")

        assert result.data.cash_amount == Decimal("800")
        entries = await transaction_store.find(TransactionFilter(user_id=USER))
        assert [(tx.type, tx.amount, tx.category) for tx in entries] == [
            (TransactionType.EXPENSE, Decimal("200"), "Paid plumber"),
        ]

    @pytest.mark.asyncio
    async def test_add_card_from_dict(self, service):
        """Test adding a card from plain request data, CVV hidden."""
        result = await service.add_card(USER, CARD)

        assert result.success is True
        card = result.to_dict()["data"]["cards"][0]
        assert card["balance"] == "500"
        assert "cvv" not in card

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [("cvv", None), ("balance", "0"), ("number", "")])
    async def test_add_card_invalid_details(self, service, field, value):
        """Test that malformed card data becomes a validation envelope."""
        data = dict(CARD)
        if value is None:
            data.pop(field)
        else:
            data[field] = value

        result = await service.add_card(USER, data)

        assert result.success is False
        assert result.error == "validation_error"
        assert result.details["field"] == field

    @pytest.mark.asyncio
    async def test_remove_unknown_card(self, service):
        """Test the NotFound envelope."""
        await service.ensure_account(USER)

        result = await service.remove_card(USER, "missing")

        assert result.success is False
        assert result.error == "not_found"
        assert result.message == "Card not found"

    @pytest.mark.asyncio
    async def test_card_balance_scenario(self, service):
        """Test cash 1000 + card 500, card edited to 300: total 1300."""
        await service.set_cash(USER, 1000)
        added = await service.add_card(USER, CARD)
        card_id = added.data.cards[0].id

        result = await service.update_card_balance(USER, card_id, 300)
        summary = await service.get_balance_summary(USER)

        assert result.data.total_balance == Decimal("1300")
        assert summary.data.wallet_balance == Decimal("1300")
        assert summary.data.total_expenses == Decimal("200")

    @pytest.mark.asyncio
    async def test_sync(self, service):
        """Test reconciliation through the facade."""
        await service.add_cash(USER, 250)
        await service.set_cash(USER, 0)

        result = await service.sync_with_transactions(USER)

        assert result.success is True
        assert result.data.cash_amount == Decimal("250")

    @pytest.mark.asyncio
    async def test_rejected_category_leaves_wallet_unchanged(self, service, transaction_store):
        """Test that a failed deposit neither moves cash nor writes the ledger."""
        result = await service.add_cash(USER, 100, category="x" * 101)

        assert result.success is False
        assert result.error == "validation_error"
        assert result.details == {"field": "category"}
        wallet = await service.get_wallet(USER)
        assert wallet.data.wallet.cash_amount == Decimal("0")
        assert await transaction_store.count(TransactionFilter(user_id=USER)) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_blank_reason_is_a_silent_edit(self, service, transaction_store, reason):
        """Test that a blank reason does not record the cash change."""
        result = await service.set_cash(USER, 50, reason=reason)

        assert result.success is True
        assert result.data.cash_amount == Decimal("50")
        assert await transaction_store.count(TransactionFilter(user_id=USER)) == 0

    @pytest.mark.asyncio
    async def test_summary_without_wallet(self, service):
        """Test that the summary reports a missing wallet."""
        result = await service.get_balance_summary(USER)

        assert result.error == "not_found"
        assert result.message == "Wallet not found"


class TestPinOperations:
    """Tests for the PIN gate envelopes."""

    @pytest.mark.asyncio
    async def test_pin_round_trip(self, service):
        """Test updating then verifying a PIN."""
        await service.ensure_account(USER)

        updated = await service.update_pin(USER, "7391")
        verified = await service.verify_pin(USER, "7391")
        rejected = await service.verify_pin(USER, "0000")

        assert updated.success and updated.data.pin_change_required is False
        assert verified.success and verified.data is True
        assert rejected.success is False
        assert rejected.error == "invalid_pin"

    @pytest.mark.asyncio
    async def test_short_pin(self, service):
        """Test that a short PIN is a validation failure."""
        await service.ensure_account(USER)

        result = await service.update_pin(USER, "1")

        assert result.error == "validation_error"


class TestConflictRetries:
    """Tests for optimistic concurrency handling in the facade."""

    @pytest.mark.asyncio
    async def test_conflict_is_retried(
        self, transaction_store, pin_hasher, wallet_settings,
        engine, projector, reporter, audit_storage,
    ):
        """Test that a lost race is retried and recorded once."""
        store = FlakyWalletStore(conflicts=2)
        service = service_over(
            store, transaction_store, pin_hasher, wallet_settings,
            engine, projector, reporter, audit_storage,
        )

        result = await service.add_cash(USER, 10)

        assert result.success is True
        assert result.data.cash_amount == Decimal("10")
        assert store.save_attempts == 3
        assert await transaction_store.count(TransactionFilter(user_id=USER)) == 1

    @pytest.mark.asyncio
    async def test_conflict_reported_after_retries(
        self, transaction_store, pin_hasher, wallet_settings,
        engine, projector, reporter, audit_storage,
    ):
        """Test that persistent conflicts end in a conflict envelope."""
        store = FlakyWalletStore(conflicts=10)
        service = service_over(
            store, transaction_store, pin_hasher, wallet_settings,
            engine, projector, reporter, audit_storage,
        )

        result = await service.add_cash(USER, 10)

        assert result.success is False
        assert result.error == "concurrency_conflict"
        assert store.save_attempts == 3
        assert await transaction_store.count(TransactionFilter(user_id=USER)) == 0
        events = await audit_storage.get_recent_events(user_id=USER)
        assert any(e.event_type == AuditEventType.CONCURRENCY_CONFLICT for e in events)


class TestForecastOperations:
    """Tests for the read-only forecast envelopes."""

    @pytest.mark.asyncio
    async def test_insufficient_data_is_a_normal_result(self, service):
        """Test that a new user gets a typed failure, not an exception."""
        result = await service.predict_spending(USER, 1, now=NOW)

        assert result.success is False
        assert result.error == "insufficient_data"
        assert result.message == "Not enough historical data for prediction"
        assert result.data is None

    @pytest.mark.asyncio
    async def test_bad_horizon(self, service):
        """Test that a horizon above twelve months is rejected."""
        result = await service.predict_spending(USER, 13, now=NOW)

        assert result.error == "validation_error"

    @pytest.mark.asyncio
    async def test_predict_spending(self, service, seed, audit_storage):
        """Test a successful forecast and its audit event."""
        for month, amount in ((3, 1000), (4, 1200), (5, 1100)):
            seed(TransactionType.EXPENSE, amount, datetime(2026, month, 10))

        result = await service.predict_spending(USER, 2, now=NOW)

        assert result.success is True
        assert [p.amount for p in result.data.predictions] == [Decimal("1100")] * 2
        assert result.to_dict()["data"]["model_type"] == "statistical"
        events = await audit_storage.get_recent_events(user_id=USER)
        assert events[0].event_type == AuditEventType.SPENDING_PREDICTED

    @pytest.mark.asyncio
    async def test_goal_reached(self, service, goal_store):
        """Test the reached-goal message."""
        goal = goal_store.add(SavingsGoal(
            user_id=USER, name="Bike",
            target_amount=Decimal("10000"), current_amount=Decimal("10000"),
        ))

        result = await service.predict_savings_goal_completion(USER, goal.id, now=NOW)

        assert result.success is True
        assert result.message == "Savings goal already reached"
        assert result.data.months_to_completion == 0

    @pytest.mark.asyncio
    async def test_goal_without_positive_savings(self, service, goal_store, seed):
        """Test that the summary travels with the failure."""
        goal = goal_store.add(SavingsGoal(
            user_id=USER, name="Bike",
            target_amount=Decimal("1000"), current_amount=Decimal("100"),
        ))
        for month in (1, 2, 3):
            seed(TransactionType.INCOME, 100, datetime(2026, month, 1))
            seed(TransactionType.EXPENSE, 300, datetime(2026, month, 2))

        result = await service.predict_savings_goal_completion(USER, goal.id, now=NOW)

        assert result.success is False
        assert result.error == "no_positive_savings"
        assert result.data.remaining_amount == Decimal("900")
        assert result.data.projected_completion_date is None

    @pytest.mark.asyncio
    async def test_goal_with_aware_target_date(self, service, goal_store, seed):
        """Test that an offset target date is compared as UTC."""
        goal = goal_store.add(SavingsGoal(
            user_id=USER, name="Bike",
            target_amount=Decimal("1000"), current_amount=Decimal("100"),
            target_date="2027-01-01T00:00:00Z",
        ))
        for month in (3, 4, 5):
            seed(TransactionType.INCOME, 400, datetime(2026, month, 1))
            seed(TransactionType.EXPENSE, 100, datetime(2026, month, 2))

        result = await service.predict_savings_goal_completion(
            USER, goal.id, now=datetime(2026, 6, 15, 12, tzinfo=timezone.utc),
        )

        assert result.success is True
        assert result.data.months_to_completion == 3
        assert result.data.projected_completion_date == datetime(2026, 9, 15, 12)
        assert result.data.will_reach_by_target_date is True

    @pytest.mark.asyncio
    async def test_goal_not_found(self, service):
        """Test the missing goal envelope."""
        result = await service.predict_savings_goal_completion(USER, "nope", now=NOW)

        assert result.error == "not_found"
        assert result.message == "Savings goal not found"

    @pytest.mark.asyncio
    async def test_insights(self, service, seed):
        """Test the insights envelope."""
        seed(TransactionType.INCOME, 1000, datetime(2026, 5, 1))

        result = await service.get_financial_insights(USER, now=NOW)

        assert result.success is True
        assert result.data.metrics.total_income == Decimal("1000")


class TestUpstreamFailures:
    """Tests for storage failures at the facade boundary."""

    @pytest.mark.asyncio
    async def test_storage_error_is_reported_generically(
        self, service, transaction_store, monkeypatch, audit_storage,
    ):
        """Test that backend detail stays out of the envelope."""

        async def broken_find(query):
            raise StorageError("Failed to list transactions: quota exceeded")

        monkeypatch.setattr(transaction_store, "find", broken_find)

        result = await service.predict_spending(USER, 1, now=NOW)

        assert result.success is False
        assert result.error == "upstream_unavailable"
        assert "quota" not in result.message
        events = await audit_storage.get_recent_events(user_id=USER)
        assert events[0].event_type == AuditEventType.STORAGE_ERROR
