"""Ledger records."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Optional
from uuid import uuid4

EntryKind = Literal["credit", "debit", "adjustment"]
ReservationStatus = Literal["active", "captured", "released"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LedgerEntry:
    """One balance mutation, as recorded in the journal."""
    account_id: str
    kind: EntryKind
    amount: Decimal
    balance_after: Decimal
    memo: Optional[str] = None
    entry_id: str = field(default_factory=lambda: f"ent_{uuid4().hex[:16]}")
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "entryId": self.entry_id,
            "accountId": self.account_id,
            "kind": self.kind,
            "amount": str(self.amount),
            "balanceAfter": str(self.balance_after),
            "memo": self.memo,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Reservation:
    """Funds earmarked for a paid action that has not completed yet."""
    account_id: str
    amount: Decimal
    purpose: Optional[str] = None
    status: ReservationStatus = "active"
    reservation_id: str = field(default_factory=lambda: f"rsv_{uuid4().hex[:16]}")
    created_at: datetime = field(default_factory=_now)

    @property
    def is_active(self) -> bool:
        return self.status == "active"
