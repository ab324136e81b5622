"""Abstract base class for ledger implementations."""
from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from butler_ledger.money import AmountLike

from .models import LedgerEntry, Reservation


def normalize_account_id(account_id: Optional[str], default: str) -> str:
    """Canonical account key: trimmed and lower-cased, blank maps to ``default``."""
    if account_id is None:
        return default
    normalized = account_id.strip().lower()
    return normalized or default


class BaseLedger(ABC):
    """
    Abstract base class for ledger implementations.

    This interface allows swapping between different backends:
    - InMemoryLedger for the single-process service and tests
    - A durable store satisfying the same contract (future)

    Every implementation must keep ``balance >= 0`` observable at all times
    and apply each mutation entirely or not at all.
    """

    currency: str = "USDC"
    default_account_id: str = "agent"

    def normalize(self, account_id: Optional[str]) -> str:
        return normalize_account_id(account_id, self.default_account_id)

    @abstractmethod
    async def get_balance(self, account_id: Optional[str]) -> Decimal:
        """
        Get the current balance of an account.

        Args:
            account_id: The account identifier

        Returns:
            Current balance; the starting balance if the account is unseen
        """

    @abstractmethod
    async def get_available(self, account_id: Optional[str]) -> Decimal:
        """Balance minus funds held by active reservations."""

    @abstractmethod
    async def credit(
        self,
        account_id: Optional[str],
        amount: AmountLike,
        memo: Optional[str] = None,
    ) -> Decimal:
        """
        Add funds to an account.

        Args:
            account_id: The account to credit
            amount: Positive amount to add
            memo: Optional note recorded in the journal

        Returns:
            The new balance

        Raises:
            InvalidAmountError: If amount is not positive
        """

    @abstractmethod
    async def debit(
        self,
        account_id: Optional[str],
        amount: AmountLike,
        memo: Optional[str] = None,
    ) -> Decimal:
        """
        Remove funds from an account if they are available.

        The funds check and the subtraction are one atomic step.

        Returns:
            The new balance

        Raises:
            InvalidAmountError: If amount is not positive
            InsufficientFundsError: If available funds are below amount;
                the balance is left unchanged
        """

    @abstractmethod
    async def set_balance(self, account_id: Optional[str], amount: AmountLike) -> Decimal:
        """
        Overwrite an account balance. Administrative and demo use only.

        Raises:
            InvalidAmountError: If amount is negative
        """

    @abstractmethod
    async def reserve(
        self,
        account_id: Optional[str],
        amount: AmountLike,
        purpose: Optional[str] = None,
    ) -> Reservation:
        """
        Earmark funds for an in-flight paid action.

        Same error semantics as ``debit``; no balance change until captured.
        """

    @abstractmethod
    async def capture(self, reservation_id: str) -> Decimal:
        """Debit a reserved amount. Returns the new balance."""

    @abstractmethod
    async def release(self, reservation_id: str) -> None:
        """Drop a reservation without debiting it."""

    @abstractmethod
    async def list_entries(
        self,
        account_id: Optional[str] = None,
        limit: int = 50,
    ) -> list[LedgerEntry]:
        """
        List journal entries, newest first.

        Args:
            account_id: Restrict to one account (all accounts when None)
            limit: Maximum number to return
        """
