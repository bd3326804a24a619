"""
Console Bank

A single-user ledger manager with accounts, deposits, withdrawals,
transfers and per-account history, persisted to a flat text file.
"""

__version__ = "1.0.0"
