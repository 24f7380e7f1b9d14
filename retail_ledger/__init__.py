"""
Retail Ledger

Multi-currency account ledger and transaction engine for a retail bank:
deposits, withdrawals, transfers, currency exchange and interest accrual,
with daily withdrawal limits and a bounded transaction history.
"""

__version__ = "1.0.0"
