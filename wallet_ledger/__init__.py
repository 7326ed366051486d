"""
Wallet Ledger - Source Package

The balance-keeping and forecasting core of a personal finance backend.

DESIGN PRINCIPLES:
1. Every balance change leaves a trace in the ledger
2. Balances are derived on read, never cached
3. Fail early, fail visibly
4. "Not enough data yet" is a normal answer, not a crash
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Wallet Ledger Team"
