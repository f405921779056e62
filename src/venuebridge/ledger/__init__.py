"""Ledger module for cross-system swap records."""

from venuebridge.ledger.database import init_db, unit_of_work
from venuebridge.ledger.models import (
    Base,
    Chain,
    EncryptedSecret,
    Transaction,
    UserWallet,
)
from venuebridge.ledger.repository import LedgerRepository
from venuebridge.ledger.states import TransactionDirection, TransactionStatus

__all__ = [
    # Models
    "Base",
    "Transaction",
    "UserWallet",
    "EncryptedSecret",
    # Enums
    "Chain",
    "TransactionDirection",
    "TransactionStatus",
    # Database
    "init_db",
    "unit_of_work",
    "LedgerRepository",
]
