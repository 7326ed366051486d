"""
Wallet Account Models

A WalletAccount is the mutable aggregate of one user's cash and cards.
Totals are computed on read from the stored fields and are never persisted.

CRITICAL: Wallets are only mutated through the ledger synchronizer, which
pairs each balance change with a ledger entry.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    computed_field,
)

from wallet_ledger.clock import utc_now
from wallet_ledger.models.transaction import Transaction


DEFAULT_CARD_COLOR = 0xFF3551A2


class CardType(str, Enum):
    """Kind of payment card."""
    DEBIT = "debit"
    CREDIT = "credit"


class CardAccount(BaseModel):
    """
    A card held in the wallet.

    The CVV is write-only: it is stored, but never included in dumps.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    number: str = Field(..., min_length=1, max_length=32)
    holder_name: str = Field(..., min_length=1, max_length=100)
    expiry: str = Field(..., min_length=1, max_length=10)
    cvv: SecretStr = Field(..., exclude=True)
    type: CardType = CardType.DEBIT
    balance: Decimal = Field(..., ge=0)
    color_tag: int = Field(default=DEFAULT_CARD_COLOR, ge=0)
    is_default: bool = False

    @property
    def masked_number(self) -> str:
        return f"**** {self.number[-4:]}"


class CardDetails(BaseModel):
    """
    Input for adding a card.

    Number, holder name, expiry, CVV and a positive opening balance are all
    required; anything missing is a validation failure.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    number: str = Field(..., min_length=1, max_length=32)
    holder_name: str = Field(..., min_length=1, max_length=100)
    expiry: str = Field(..., min_length=1, max_length=10)
    cvv: SecretStr
    balance: Decimal = Field(..., gt=0)
    type: CardType = CardType.DEBIT
    color_tag: Optional[int] = Field(default=None, ge=0)
    is_default: bool = False
    description: Optional[str] = Field(default=None, max_length=500)


class WalletAccount(BaseModel):
    """
    One user's wallet: a cash amount plus an ordered list of cards.

    ``version`` is bumped by the store on every successful save and is used
    to detect concurrent modification.
    """
    model_config = ConfigDict(validate_assignment=True)

    user_id: str = Field(..., min_length=1)
    cash_amount: Decimal = Field(default=Decimal("0"))
    cards: list[CardAccount] = Field(default_factory=list)

    pin_hash: Optional[SecretStr] = Field(
        default=None,
        exclude=True,
        description="Digest of the wallet PIN"
    )
    pin_change_required: bool = Field(
        default=True,
        description="Owner still has to choose their own PIN"
    )

    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @computed_field
    @property
    def cards_total(self) -> Decimal:
        return sum((card.balance for card in self.cards), Decimal("0"))

    @computed_field
    @property
    def total_balance(self) -> Decimal:
        return self.cash_amount + self.cards_total

    def find_card(self, card_id: str) -> Optional[CardAccount]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def balance_view(self) -> dict:
        """The balance fields callers usually want after a mutation."""
        return {
            "cash_amount": self.cash_amount,
            "cards_total": self.cards_total,
            "total_balance": self.total_balance,
        }


class WalletSnapshot(BaseModel):
    """A wallet together with its most recent ledger entries."""

    wallet: WalletAccount
    recent_transactions: list[Transaction] = Field(default_factory=list)


class BalanceSummary(BaseModel):
    """
    Wallet balances side by side with what the ledger says.

    ``transaction_balance`` is income minus expense over the user's whole
    ledger; it drifts from ``wallet_balance`` whenever cash was set without
    a recorded reason.
    """

    cash_amount: Decimal
    cards_total: Decimal
    wallet_balance: Decimal
    total_income: Decimal
    total_expenses: Decimal
    transaction_balance: Decimal
