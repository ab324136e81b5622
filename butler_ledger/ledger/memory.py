"""In-memory ledger implementation."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from butler_ledger.exceptions import (
    ButlerValidationError,
    InsufficientFundsError,
    InvalidAmountError,
)
from butler_ledger.money import (
    AmountLike,
    from_minor,
    to_amount,
    to_minor,
    to_positive_amount,
)

from .base import BaseLedger
from .models import EntryKind, LedgerEntry, Reservation

if TYPE_CHECKING:
    from butler_ledger.config import ButlerSettings

logger = logging.getLogger("butler.ledger")


class InMemoryLedger(BaseLedger):
    """
    In-memory implementation of the ledger.

    Balances are integer minor units (cents) keyed by normalized account id.
    Each account has its own asyncio.Lock and no await happens between a
    funds check and the mutation it guards. Data is lost on restart.
    """

    def __init__(
        self,
        *,
        starting_balance: AmountLike = Decimal("0.00"),
        default_account_id: str = "agent",
        currency: str = "USDC",
        max_entries: int = 10_000,
    ):
        starting = to_amount(starting_balance)
        if starting < 0:
            raise InvalidAmountError(starting_balance, "Starting balance must not be negative")
        self._starting_minor = to_minor(starting)
        self.default_account_id = default_account_id.strip().lower()
        self.currency = currency

        self._balances: dict[str, int] = {}
        self._reserved: dict[str, int] = {}
        self._reservations: dict[str, Reservation] = {}
        self._entries: deque[LedgerEntry] = deque(maxlen=max_entries)
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: "ButlerSettings") -> "InMemoryLedger":
        return cls(
            starting_balance=settings.starting_balance,
            default_account_id=settings.default_account_id,
            currency=settings.currency,
            max_entries=settings.journal_max_entries,
        )

    # ------------------------------------------------------------------
    # internals (callers must hold the account lock for mutations)
    # ------------------------------------------------------------------

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    def _balance_minor(self, account_id: str) -> int:
        return self._balances.get(account_id, self._starting_minor)

    def _available_minor(self, account_id: str) -> int:
        return self._balance_minor(account_id) - self._reserved.get(account_id, 0)

    def _record(
        self,
        account_id: str,
        kind: EntryKind,
        amount_minor: int,
        balance_minor: int,
        memo: Optional[str],
    ) -> None:
        self._entries.append(
            LedgerEntry(
                account_id=account_id,
                kind=kind,
                amount=from_minor(amount_minor),
                balance_after=from_minor(balance_minor),
                memo=memo,
            )
        )

    def _check_funds(self, account_id: str, amount: Decimal) -> int:
        required_minor = to_minor(amount)
        available_minor = self._available_minor(account_id)
        if available_minor < required_minor:
            raise InsufficientFundsError(
                available=from_minor(available_minor),
                required=amount,
                account_id=account_id,
                currency=self.currency,
            )
        return required_minor

    # ------------------------------------------------------------------
    # balance operations
    # ------------------------------------------------------------------

    async def get_balance(self, account_id: Optional[str]) -> Decimal:
        """Get the current balance of an account."""
        return from_minor(self._balance_minor(self.normalize(account_id)))

    async def get_available(self, account_id: Optional[str]) -> Decimal:
        """Balance minus active reservations."""
        return from_minor(self._available_minor(self.normalize(account_id)))

    async def credit(
        self,
        account_id: Optional[str],
        amount: AmountLike,
        memo: Optional[str] = None,
    ) -> Decimal:
        """Add funds to an account."""
        account_id = self.normalize(account_id)
        amount = to_positive_amount(amount)

        async with self._lock_for(account_id):
            amount_minor = to_minor(amount)
            new_minor = self._balance_minor(account_id) + amount_minor
            self._balances[account_id] = new_minor
            self._record(account_id, "credit", amount_minor, new_minor, memo)

        new_balance = from_minor(new_minor)
        logger.info(
            "Credited %s %s to %s, balance %s",
            amount, self.currency, account_id, new_balance,
            extra={"ledger_account": account_id, "amount": str(amount)},
        )
        return new_balance

    async def debit(
        self,
        account_id: Optional[str],
        amount: AmountLike,
        memo: Optional[str] = None,
    ) -> Decimal:
        """Remove funds from an account if they are available."""
        account_id = self.normalize(account_id)
        amount = to_positive_amount(amount)

        async with self._lock_for(account_id):
            amount_minor = self._check_funds(account_id, amount)
            new_minor = self._balance_minor(account_id) - amount_minor
            self._balances[account_id] = new_minor
            self._record(account_id, "debit", amount_minor, new_minor, memo)

        new_balance = from_minor(new_minor)
        logger.info(
            "Debited %s %s from %s, balance %s",
            amount, self.currency, account_id, new_balance,
            extra={"ledger_account": account_id, "amount": str(amount)},
        )
        return new_balance

    async def set_balance(self, account_id: Optional[str], amount: AmountLike) -> Decimal:
        """Overwrite an account balance (admin/demo only)."""
        account_id = self.normalize(account_id)
        amount = to_amount(amount)
        if amount < 0:
            raise InvalidAmountError(amount, "Balance must not be negative")

        async with self._lock_for(account_id):
            amount_minor = to_minor(amount)
            reserved_minor = self._reserved.get(account_id, 0)
            if amount_minor < reserved_minor:
                raise InvalidAmountError(
                    amount,
                    f"Balance cannot be set below the {from_minor(reserved_minor)} {self.currency} "
                    "reserved for in-flight operations",
                )
            self._balances[account_id] = amount_minor
            self._record(account_id, "adjustment", amount_minor, amount_minor, "balance set")

        logger.warning("Balance of %s overwritten to %s %s", account_id, amount, self.currency)
        return from_minor(amount_minor)

    # ------------------------------------------------------------------
    # reservations
    # ------------------------------------------------------------------

    async def reserve(
        self,
        account_id: Optional[str],
        amount: AmountLike,
        purpose: Optional[str] = None,
    ) -> Reservation:
        """Earmark funds for an in-flight paid action."""
        account_id = self.normalize(account_id)
        amount = to_positive_amount(amount)

        async with self._lock_for(account_id):
            amount_minor = self._check_funds(account_id, amount)
            self._reserved[account_id] = self._reserved.get(account_id, 0) + amount_minor
            reservation = Reservation(account_id=account_id, amount=amount, purpose=purpose)
            self._reservations[reservation.reservation_id] = reservation

        logger.debug(
            "Reserved %s %s on %s (%s)",
            amount, self.currency, account_id, reservation.reservation_id,
        )
        return reservation

    def _get_active_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise ButlerValidationError(
                f"Reservation {reservation_id} not found", field="reservation_id"
            )
        if not reservation.is_active:
            raise ButlerValidationError(
                f"Reservation is {reservation.status}, cannot settle it again",
                field="reservation_id",
            )
        return reservation

    def _drop_reservation(self, reservation: Reservation, amount_minor: int) -> None:
        remaining = self._reserved.get(reservation.account_id, 0) - amount_minor
        if remaining:
            self._reserved[reservation.account_id] = remaining
        else:
            self._reserved.pop(reservation.account_id, None)
        del self._reservations[reservation.reservation_id]

    async def capture(self, reservation_id: str) -> Decimal:
        """Debit a reserved amount."""
        reservation = self._get_active_reservation(reservation_id)
        account_id = reservation.account_id

        async with self._lock_for(account_id):
            # Re-check under the lock; a concurrent capture may have won.
            reservation = self._get_active_reservation(reservation_id)
            amount_minor = to_minor(reservation.amount)
            new_minor = self._balance_minor(account_id) - amount_minor
            self._balances[account_id] = new_minor
            self._drop_reservation(reservation, amount_minor)
            reservation.status = "captured"
            self._record(account_id, "debit", amount_minor, new_minor, reservation.purpose)

        new_balance = from_minor(new_minor)
        logger.info(
            "Debited %s %s from %s, balance %s",
            reservation.amount, self.currency, account_id, new_balance,
            extra={"ledger_account": account_id, "amount": str(reservation.amount)},
        )
        return new_balance

    async def release(self, reservation_id: str) -> None:
        """Drop a reservation without debiting it."""
        reservation = self._get_active_reservation(reservation_id)
        async with self._lock_for(reservation.account_id):
            reservation = self._get_active_reservation(reservation_id)
            self._drop_reservation(reservation, to_minor(reservation.amount))
            reservation.status = "released"
        logger.debug("Released reservation %s", reservation_id)

    # ------------------------------------------------------------------
    # journal
    # ------------------------------------------------------------------

    async def list_entries(
        self,
        account_id: Optional[str] = None,
        limit: int = 50,
    ) -> list[LedgerEntry]:
        """List journal entries, newest first."""
        if account_id is None:
            entries = list(self._entries)
        else:
            key = self.normalize(account_id)
            entries = [e for e in self._entries if e.account_id == key]
        entries.reverse()
        return entries[:limit]
