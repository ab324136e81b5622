"""Balance ledger: account-keyed balances with strict non-negativity."""

from .base import BaseLedger, normalize_account_id
from .memory import InMemoryLedger
from .models import LedgerEntry, Reservation

__all__ = ["BaseLedger", "InMemoryLedger", "LedgerEntry", "Reservation", "normalize_account_id"]
