"""
Error Taxonomy for Wallet Ledger

Every failure the core can report has its own type. The service facade
translates these into result envelopes with a stable ``error`` code, so
callers branch on data instead of catching exceptions.

Storage backends raise their own errors (see services.storage.interface);
the facade maps those onto this taxonomy at the boundary.
"""

from typing import Any, Optional


class WalletLedgerError(Exception):
    """Base exception for the wallet ledger core."""

    code = "wallet_ledger_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(WalletLedgerError):
    """Missing, malformed, negative or non-finite input. Never retried."""

    code = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(message, {"field": field})
        self.field = field


class NotFoundError(WalletLedgerError):
    """Wallet, card or savings goal does not exist."""

    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type.replace('_', ' ').capitalize()} not found",
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class InsufficientDataError(WalletLedgerError):
    """Too few qualifying transactions in the lookback window to predict."""

    code = "insufficient_data"

    def __init__(self, found: int, required: int):
        super().__init__(
            "Not enough historical data for prediction",
            {"transactions_found": found, "transactions_required": required},
        )
        self.found = found
        self.required = required


class NoPositiveSavingsError(WalletLedgerError):
    """No month in the history shows a positive net saving."""

    code = "no_positive_savings"

    def __init__(self, projection: Optional[Any] = None):
        super().__init__("No positive savings data available")
        self.projection = projection


class PinMismatchError(WalletLedgerError):
    """Supplied wallet PIN does not match the stored digest."""

    code = "invalid_pin"

    def __init__(self, message: str = "Invalid PIN"):
        super().__init__(message)


class ConcurrencyConflictError(WalletLedgerError):
    """The wallet changed between read and save. Retry with a fresh read."""

    code = "concurrency_conflict"

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(
            "Wallet was modified concurrently",
            {"user_id": user_id, "expected_version": expected_version},
        )
        self.user_id = user_id
        self.expected_version = expected_version


class UpstreamUnavailableError(WalletLedgerError):
    """A persistence backend failed or timed out."""

    code = "upstream_unavailable"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Storage unavailable during {operation}",
            {"operation": operation, "cause": str(cause) if cause else None},
        )
        self.operation = operation
        self.cause = cause
