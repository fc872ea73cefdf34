"""
Personal Wallet Ledger

This module provides:
- Sign up / sign in with opaque, expiring session tokens
- Immutable credit and debit transactions
- A running balance kept equal to credits minus debits, per user
- Per-user serialization of balance updates under concurrent requests
"""

from .models import (
    TransactionKind,
    Transaction,
    AccountSummary,
    TransactionHistory,
)
from .auth import AuthService
from .service import LedgerService
from .storage import InMemoryStorage

__all__ = [
    "TransactionKind",
    "Transaction",
    "AccountSummary",
    "TransactionHistory",
    "AuthService",
    "LedgerService",
    "InMemoryStorage",
]
