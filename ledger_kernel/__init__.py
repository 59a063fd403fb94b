"""
Ledger Kernel - double-entry general ledger core

A transactional bookkeeping core with:
- Chart of accounts with category-driven normal balances
- Financial years with a single, explicitly tracked active year
- Journal entries moving draft -> posted -> cancelled
- Balances, trial balance and statements derived from posted items
- Append-only, hash-chained audit log
"""

__version__ = "0.1.0"
