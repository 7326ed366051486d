"""Wallet balances and the ledger entries that mirror them."""

from wallet_ledger.ledger.synchronizer import LedgerSynchronizer, parse_amount

__all__ = ["LedgerSynchronizer", "parse_amount"]
