"""
Reward Points Ledger

This module provides:
- Append-only per-user transaction ledgers
- Per-payer balance aggregation
- Oldest-first spending plans that never drive a payer negative
- Validate-then-commit spends under a per-user lock
"""

from .models import (
    EntryType,
    SpendErrorKind,
    Transaction,
    PayerPoints,
    TransactionAccepted,
    ValidationFailure,
    SpendCommitted,
    SpendFailure,
)
from .planner import create_spending_plan
from .service import InMemoryStorage, LedgerService

__all__ = [
    "EntryType",
    "SpendErrorKind",
    "Transaction",
    "PayerPoints",
    "TransactionAccepted",
    "ValidationFailure",
    "SpendCommitted",
    "SpendFailure",
    "create_spending_plan",
    "InMemoryStorage",
    "LedgerService",
]
