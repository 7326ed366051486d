"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is supported as a persistent backend because:
1. Users can inspect their own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions and no unique constraints: wallet creation checks for an
  existing row first, and saves compare the stored version column before
  writing. The per-user lock in the ledger covers the in-process case.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the ledger logic does
not change when the backend does.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from pydantic import SecretStr
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from wallet_ledger.clock import utc_now
from wallet_ledger.config import get_settings
from wallet_ledger.exceptions import ConcurrencyConflictError
from wallet_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from wallet_ledger.models.goal import GoalMovement, SavingsGoal
from wallet_ledger.models.transaction import (
    PaymentMethod,
    ReceiptData,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from wallet_ledger.models.wallet import CardAccount, WalletAccount
from wallet_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    GoalStoreInterface,
    MissingRecordError,
    StorageConnectionError,
    StorageError,
    TransactionStoreInterface,
    WalletStoreInterface,
)


TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "amount",
    "category",
    "date",
    "payment_method",
    "title",
    "description",
    "notes",
    "savings_goal_id",
    "created_at",
    "receipt_json",
]

WALLET_COLUMNS = [
    "user_id",
    "cash_amount",
    "cards_json",
    "pin_hash",
    "pin_change_required",
    "version",
    "created_at",
    "updated_at",
]

GOAL_COLUMNS = [
    "id",
    "user_id",
    "name",
    "description",
    "category",
    "target_amount",
    "current_amount",
    "created_date",
    "target_date",
    "completed_date",
    "contributions_json",
    "withdrawals_json",
    "color",
    "icon",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]

# Retry transient API failures, but never a business outcome
_sheets_retry = retry(
    retry=retry_if_not_exception_type(
        (DuplicateError, MissingRecordError, ConcurrencyConflictError)
    ),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _parse_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates missing worksheets with headers.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 5000
        )

    def get_wallets_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.wallets_sheet_name, WALLET_COLUMNS, 1000
        )

    def get_goals_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.goals_sheet_name, GOAL_COLUMNS, 1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


class GoogleSheetsTransactionStore(TransactionStoreInterface):
    """
    Google Sheets implementation of the transaction ledger.

    One transaction per row; the receipt attachment is JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, tx: Transaction) -> list:
        return [
            str(tx.id),
            tx.user_id,
            tx.type.value,
            str(tx.amount),
            tx.category,
            tx.date.isoformat(),
            tx.payment_method.value,
            tx.title or "",
            tx.description or "",
            tx.notes or "",
            tx.savings_goal_id or "",
            tx.created_at.isoformat(),
            tx.receipt_data.model_dump_json() if tx.receipt_data else "",
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        receipt_json = _safe_get(row, 12)
        return Transaction(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            type=TransactionType(_safe_get(row, 2)),
            amount=Decimal(_safe_get(row, 3)),
            category=_safe_get(row, 4),
            date=datetime.fromisoformat(_safe_get(row, 5)),
            payment_method=PaymentMethod(_safe_get(row, 6, "cash")),
            title=_safe_get(row, 7) or None,
            description=_safe_get(row, 8) or None,
            notes=_safe_get(row, 9) or None,
            savings_goal_id=_safe_get(row, 10) or None,
            created_at=datetime.fromisoformat(_safe_get(row, 11)),
            receipt_data=ReceiptData.model_validate_json(receipt_json) if receipt_json else None,
        )

    def _load_all(self) -> list[Transaction]:
        sheet = self._client.get_transactions_sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        transactions = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            transactions.append(self._row_to_transaction(row))
        return transactions

    @_sheets_retry
    async def insert(self, transaction: Transaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
            return transaction
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def find(self, query: TransactionFilter) -> list[Transaction]:
        try:
            matches = [tx for tx in self._load_all() if query.matches(tx)]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        matches.sort(key=lambda tx: tx.date)
        if query.limit is not None:
            matches = matches[:query.limit]
        return matches

    async def count(self, query: TransactionFilter) -> int:
        return len(await self.find(query.model_copy(update={"limit": None})))

    async def find_recent(self, user_id: str, limit: int = 10) -> list[Transaction]:
        owned = await self.find(TransactionFilter(user_id=user_id))
        owned.reverse()
        return owned[:limit]


class GoogleSheetsWalletStore(WalletStoreInterface):
    """
    Google Sheets implementation of wallet persistence.

    Cards are stored as a JSON list in a single cell, CVVs included, so the
    spreadsheet itself must be access-controlled.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _wallet_to_row(self, wallet: WalletAccount) -> list:
        cards = []
        for card in wallet.cards:
            data = card.model_dump(mode="json")
            data["cvv"] = card.cvv.get_secret_value()
            cards.append(data)
        return [
            wallet.user_id,
            str(wallet.cash_amount),
            json.dumps(cards),
            wallet.pin_hash.get_secret_value() if wallet.pin_hash else "",
            str(wallet.pin_change_required),
            str(wallet.version),
            wallet.created_at.isoformat(),
            wallet.updated_at.isoformat(),
        ]

    def _row_to_wallet(self, row: list) -> WalletAccount:
        cards_json = _safe_get(row, 2, "[]")
        pin_hash = _safe_get(row, 3)
        return WalletAccount(
            user_id=_safe_get(row, 0),
            cash_amount=Decimal(_safe_get(row, 1, "0")),
            cards=[CardAccount(**card) for card in json.loads(cards_json)],
            pin_hash=SecretStr(pin_hash) if pin_hash else None,
            pin_change_required=_safe_get(row, 4).lower() == "true",
            version=int(_safe_get(row, 5, "0")),
            created_at=datetime.fromisoformat(_safe_get(row, 6)),
            updated_at=datetime.fromisoformat(_safe_get(row, 7)),
        )

    def _locate(self, sheet: gspread.Worksheet, user_id: str) -> tuple[Optional[int], Optional[list]]:
        """Find the 1-based sheet row index holding a user's wallet."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == user_id:
                return idx, row
        return None, None

    async def find_by_user(self, user_id: str) -> Optional[WalletAccount]:
        try:
            sheet = self._client.get_wallets_sheet()
            _, row = self._locate(sheet, user_id)
            return self._row_to_wallet(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get wallet: {e}")

    @_sheets_retry
    async def create(self, wallet: WalletAccount) -> WalletAccount:
        try:
            sheet = self._client.get_wallets_sheet()
            idx, _ = self._locate(sheet, wallet.user_id)
        except Exception as e:
            raise StorageError(f"Failed to create wallet: {e}")
        if idx is not None:
            raise DuplicateError(f"Wallet already exists for user {wallet.user_id}")

        try:
            sheet.append_row(self._wallet_to_row(wallet), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to create wallet: {e}")
        return wallet.model_copy(deep=True)

    @_sheets_retry
    async def save(self, wallet: WalletAccount) -> WalletAccount:
        try:
            sheet = self._client.get_wallets_sheet()
            idx, row = self._locate(sheet, wallet.user_id)
        except Exception as e:
            raise StorageError(f"Failed to save wallet: {e}")
        if idx is None:
            raise MissingRecordError(f"Wallet not found for user {wallet.user_id}")
        if int(_safe_get(row, 5, "0")) != wallet.version:
            raise ConcurrencyConflictError(wallet.user_id, wallet.version)

        stored = wallet.model_copy(deep=True)
        stored.version = wallet.version + 1
        stored.updated_at = utc_now()
        try:
            sheet.update(
                range_name=f"A{idx}",
                values=[self._wallet_to_row(stored)],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to save wallet: {e}")
        return stored


class GoogleSheetsGoalStore(GoalStoreInterface):
    """Read-only view of savings goals kept in a worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_goal(self, row: list) -> SavingsGoal:
        contributions = json.loads(_safe_get(row, 10, "[]"))
        withdrawals = json.loads(_safe_get(row, 11, "[]"))
        return SavingsGoal(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            name=_safe_get(row, 2),
            description=_safe_get(row, 3) or None,
            category=_safe_get(row, 4, "General"),
            target_amount=Decimal(_safe_get(row, 5, "0")),
            current_amount=Decimal(_safe_get(row, 6, "0")),
            created_date=datetime.fromisoformat(_safe_get(row, 7)),
            target_date=_parse_datetime(_safe_get(row, 8)),
            completed_date=_parse_datetime(_safe_get(row, 9)),
            contributions=[GoalMovement(**c) for c in contributions],
            withdrawals=[GoalMovement(**w) for w in withdrawals],
            color=_safe_get(row, 12, "#3551A2"),
            icon=_safe_get(row, 13, "savings"),
        )

    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        try:
            sheet = self._client.get_goals_sheet()
            all_rows = sheet.get_all_values()[1:]
            return [
                self._row_to_goal(row)
                for row in all_rows
                if row and len(row) > 1 and row[1] == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list goals: {e}")

    async def find_goal(self, user_id: str, goal_id: str) -> Optional[SavingsGoal]:
        for goal in await self.list_goals(user_id):
            if goal.id == goal_id:
                return goal
        return None


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        details_json = _safe_get(row, 9)
        correlation_id = _safe_get(row, 7)
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(correlation_id) if correlation_id else None,
            description=_safe_get(row, 8),
            details=json.loads(details_json) if details_json else {},
            error_code=_safe_get(row, 10) or None,
            error_message=_safe_get(row, 11) or None,
            is_user_action=_safe_get(row, 12).lower() == "true",
        )

    def _load_all(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        return [
            self._row_to_event(row)
            for row in sheet.get_all_values()[1:]
            if row and row[0]
        ]

    @_sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._load_all() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._load_all()
                if user_id is None or e.user_id == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
