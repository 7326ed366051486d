"""
Ledger Transaction Models

A Transaction is one line in a user's ledger. The ledger is append-only:
records are created, queried and summed, but never edited by this core.

DESIGN DECISION: Amounts are always non-negative. The direction of money
is carried by ``type`` (income / expense), never by the sign of ``amount``.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wallet_ledger.clock import to_naive_utc, utc_now


class TransactionType(str, Enum):
    """Direction of a ledger entry."""
    INCOME = "income"
    EXPENSE = "expense"


class PaymentMethod(str, Enum):
    """Instrument a transaction was made with."""
    CASH = "cash"
    CARD = "card"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_PAYMENT = "mobile_payment"
    OTHER = "other"


class ReceiptItem(BaseModel):
    """A single line read off a receipt."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: Optional[str] = None
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)


class ReceiptData(BaseModel):
    """
    Structured receipt attached to a transaction.

    Carried through the ledger as-is; extraction happens elsewhere.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    merchant: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    items: list[ReceiptItem] = Field(default_factory=list)
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    total: Optional[Decimal] = None
    date: Optional[datetime] = None
    time: Optional[str] = None
    receipt_number: Optional[str] = None

    @field_validator("date")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class Transaction(BaseModel):
    """
    An immutable ledger entry.

    Every significant balance change made through the ledger synchronizer
    produces exactly one of these.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the transaction"
    )

    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Absolute amount moved"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the money moved (naive UTC)"
    )
    payment_method: PaymentMethod = PaymentMethod.CASH

    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)
    receipt_data: Optional[ReceiptData] = None
    savings_goal_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("date", "created_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        """Aware timestamps are stored as naive UTC."""
        return to_naive_utc(v)

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    @property
    def signed_amount(self) -> Decimal:
        """Amount with income positive and expense negative."""
        return self.amount if self.is_income else -self.amount


class TransactionFilter(BaseModel):
    """
    Query contract for the transaction store.

    Every field is optional except the owner; unset fields do not filter.
    Date bounds are inclusive.
    """

    user_id: str
    type: Optional[TransactionType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    category: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)

    @field_validator("date_from", "date_to")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    def matches(self, tx: Transaction) -> bool:
        """Check a single transaction against the filter (ignores limit)."""
        if tx.user_id != self.user_id:
            return False
        if self.type and tx.type != self.type:
            return False
        if self.date_from and tx.date < self.date_from:
            return False
        if self.date_to and tx.date > self.date_to:
            return False
        if self.category and tx.category != self.category:
            return False
        return True
