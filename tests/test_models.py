"""
Tests for Wallet Ledger models

Test strategy:
1. Unit tests for individual models (validation, derived fields)
2. Component tests against in-memory stores
3. No real API calls in tests (fake worksheets stand in for Google Sheets)
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from wallet_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    CardAccount,
    MonthlyAmount,
    OperationResult,
    SavingsGoal,
    Transaction,
    TransactionFilter,
    TransactionType,
    WalletAccount,
)


class TestTransactionModels:
    """Tests for ledger transaction models."""

    def test_transaction_creation(self):
        """Test Transaction model creation with defaults."""
        tx = Transaction(
            user_id="u1",
            type=TransactionType.EXPENSE,
            amount=Decimal("12.50"),
            category="  Groceries  ",
        )
        assert tx.category == "Groceries"
        assert tx.payment_method.value == "cash"
        assert tx.is_expense
        assert tx.signed_amount == Decimal("-12.50")

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                user_id="u1",
                type=TransactionType.INCOME,
                amount=Decimal("-1"),
                category="Salary",
            )

    def test_transaction_requires_category(self):
        """Test that an empty category is rejected."""
        with pytest.raises(ValueError):
            Transaction(
                user_id="u1",
                type=TransactionType.INCOME,
                amount=Decimal("1"),
                category="",
            )

    def test_transaction_is_immutable(self):
        """Test that ledger entries cannot be edited."""
        tx = Transaction(
            user_id="u1",
            type=TransactionType.INCOME,
            amount=Decimal("1"),
            category="Salary",
        )
        with pytest.raises(ValueError):
            tx.amount = Decimal("2")

    def test_filter_matches(self):
        """Test TransactionFilter field matching with inclusive date bounds."""
        day = datetime(2026, 3, 10)
        tx = Transaction(
            user_id="u1",
            type=TransactionType.EXPENSE,
            amount=Decimal("5"),
            category="Food",
            date=day,
        )
        assert TransactionFilter(user_id="u1", date_from=day, date_to=day).matches(tx)
        assert TransactionFilter(user_id="u1", type=TransactionType.EXPENSE, category="Food").matches(tx)
        assert not TransactionFilter(user_id="u2").matches(tx)
        assert not TransactionFilter(user_id="u1", type=TransactionType.INCOME).matches(tx)
        assert not TransactionFilter(user_id="u1", date_from=day + timedelta(seconds=1)).matches(tx)
        assert not TransactionFilter(user_id="u1", category="Rent").matches(tx)

    def test_aware_dates_are_stored_as_utc(self):
        """Test that offset timestamps become naive UTC on entries and filters."""
        plus_two = timezone(timedelta(hours=2))
        tx = Transaction(
            user_id="u1",
            type=TransactionType.EXPENSE,
            amount=Decimal("5"),
            category="Food",
            date=datetime(2026, 3, 10, 14, 0, tzinfo=plus_two),
        )
        assert tx.date == datetime(2026, 3, 10, 12, 0)

        bounds = TransactionFilter(
            user_id="u1",
            date_from=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
            date_to="2026-03-10T13:00:00+01:00",
        )
        assert bounds.date_to == datetime(2026, 3, 10, 12, 0)
        assert bounds.matches(tx)


class TestWalletModels:
    """Tests for wallet and card models."""

    def _card(self, balance="100") -> CardAccount:
        return CardAccount(
            number="4111111111111111",
            holder_name="Ada Lovelace",
            expiry="12/29",
            cvv="123",
            balance=Decimal(balance),
        )

    def test_totals_are_derived(self):
        """Test that cards_total and total_balance are computed on read."""
        wallet = WalletAccount(
            user_id="u1",
            cash_amount=Decimal("50"),
            cards=[self._card("100"), self._card("25.5")],
        )
        assert wallet.cards_total == Decimal("125.5")
        assert wallet.total_balance == Decimal("175.5")

        wallet.cash_amount = Decimal("0")
        assert wallet.total_balance == Decimal("125.5")

    def test_card_balance_cannot_be_negative(self):
        """Test that card balances have a zero floor."""
        card = self._card()
        with pytest.raises(ValueError):
            card.balance = Decimal("-1")

    def test_secrets_are_not_dumped(self):
        """Test that CVV and PIN digest never appear in outputs."""
        wallet = WalletAccount(user_id="u1", cards=[self._card()], pin_hash="digest")
        dumped = wallet.model_dump(mode="json")

        assert "pin_hash" not in dumped
        assert "cvv" not in dumped["cards"][0]
        assert dumped["total_balance"] == "100"

    def test_masked_number(self):
        """Test that only the last four digits are shown."""
        assert self._card().masked_number == "**** 1111"


class TestSavingsGoal:
    """Tests for derived goal figures."""

    def test_progress_and_remaining(self):
        """Test progress and remaining amount."""
        goal = SavingsGoal(
            user_id="u1",
            name="Bike",
            target_amount=Decimal("1000"),
            current_amount=Decimal("250"),
        )
        assert goal.progress == 0.25
        assert goal.progress_percentage == 25.0
        assert goal.remaining_amount == Decimal("750")
        assert not goal.is_completed

    def test_overfunded_goal(self):
        """Test that remaining never goes below zero."""
        goal = SavingsGoal(
            user_id="u1",
            name="Bike",
            target_amount=Decimal("100"),
            current_amount=Decimal("150"),
        )
        assert goal.remaining_amount == Decimal("0")
        assert goal.is_completed

    def test_days_and_daily_amount(self):
        """Test days remaining and daily amount needed."""
        now = datetime(2026, 1, 1)
        goal = SavingsGoal(
            user_id="u1",
            name="Trip",
            target_amount=Decimal("1000"),
            target_date=now + timedelta(days=10),
        )
        assert goal.days_remaining(now) == 10
        assert goal.daily_amount_needed(now) == Decimal("100")
        assert goal.days_remaining(now + timedelta(days=30)) == 0

    def test_aware_target_date(self):
        """Test that an offset target date is normalized to naive UTC."""
        goal = SavingsGoal(
            user_id="u1",
            name="Trip",
            target_amount=Decimal("1000"),
            target_date="2026-01-11T00:00:00Z",
        )
        assert goal.target_date == datetime(2026, 1, 11)
        assert goal.days_remaining(datetime(2026, 1, 1, tzinfo=timezone.utc)) == 10


class TestForecastModels:
    """Tests for forecast and result models."""

    def test_month_key_format(self):
        """Test that month keys must be YYYY-MM."""
        MonthlyAmount(month="2026-03", amount=Decimal("1"))
        with pytest.raises(ValueError):
            MonthlyAmount(month="March 2026", amount=Decimal("1"))

    def test_operation_result_envelopes(self):
        """Test the ok and fail constructors."""
        ok = OperationResult.ok("done", {"x": Decimal("1.5")})
        assert ok.success and ok.error is None
        assert ok.to_dict()["data"] == {"x": "1.5"}

        failed = OperationResult.fail("nope", "not_found", details={"entity_type": "card"})
        assert not failed.success
        assert failed.error == "not_found"
        assert failed.data is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.CASH_ADDED,
            user_id="u1",
            description="Cash added",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test conversion to Google Sheets row format."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.CARD_ADDED,
            user_id="u1",
            entity_type="card",
            entity_id="c1",
            correlation_id=correlation_id,
            description="Card added",
            details={"delta": "500"},
        )
        row = event.to_sheets_row()

        assert len(row) == 13
        assert row[2] == "card_added"
        assert row[7] == str(correlation_id)
        assert json.loads(row[9]) == {"delta": "500"}

    def test_builder_maps_error_codes(self):
        """Test that failure events are classified by error code."""
        conflict = AuditEventBuilder.operation_failed(
            "u1", "add_cash", "concurrency_conflict", "Wallet was modified concurrently"
        )
        upstream = AuditEventBuilder.operation_failed(
            "u1", "add_cash", "upstream_unavailable", "Storage unavailable"
        )
        assert conflict.event_type == AuditEventType.CONCURRENCY_CONFLICT
        assert conflict.severity == AuditSeverity.WARNING
        assert upstream.event_type == AuditEventType.STORAGE_ERROR
        assert upstream.severity == AuditSeverity.ERROR

    def test_builder_pin_checked(self):
        """Test PIN events distinguish match and mismatch."""
        assert AuditEventBuilder.pin_checked("u1", True).event_type == AuditEventType.PIN_VERIFIED
        rejected = AuditEventBuilder.pin_checked("u1", False)
        assert rejected.event_type == AuditEventType.PIN_REJECTED
        assert rejected.severity == AuditSeverity.WARNING
