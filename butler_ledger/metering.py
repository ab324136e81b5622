"""Metered execution of paid operations.

Every paid tool goes through the same sequence:

1. resolve the price of the invocation
2. reserve the funds (or answer "402 Payment Required" and stop; the
   external action is never attempted without funds)
3. run the external action
4. capture the reservation once the action succeeded, or release it when
   the action failed so nothing is charged
5. report cost and new balance
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Optional

from .exceptions import (
    PAYMENT_REQUIRED,
    ButlerException,
    DependencyUnavailableError,
    InsufficientFundsError,
    UnknownOperationError,
)
from .ledger import BaseLedger, Reservation
from .money import format_amount, to_display
from .pricing import Price, PriceFn, resolve_price

logger = logging.getLogger("butler.metering")

ActionFn = Callable[[Mapping[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class PaidOperation:
    """A paid tool: its name, how it is priced and what it does."""
    name: str
    price_fn: PriceFn
    action: ActionFn
    description: str = ""


@dataclass
class ChargeResult:
    """Result of a metered operation."""
    success: bool
    operation: str
    currency: str = "USDC"
    cost: Optional[Decimal] = None
    new_balance: Optional[Decimal] = None
    result: dict[str, Any] = field(default_factory=dict)
    breakdown: dict[str, Decimal] = field(default_factory=dict)
    required: Optional[Decimal] = None
    available: Optional[Decimal] = None
    message: Optional[str] = None

    @classmethod
    def succeeded(
        cls,
        operation: str,
        price: Price,
        new_balance: Decimal,
        result: dict[str, Any],
        currency: str,
    ) -> "ChargeResult":
        return cls(
            success=True,
            operation=operation,
            currency=currency,
            cost=price.amount,
            new_balance=new_balance,
            result=result,
            breakdown=dict(price.breakdown),
            message=(
                f"Charged {format_amount(price.amount, currency)} for {operation}. "
                f"New balance: {format_amount(new_balance, currency)}"
            ),
        )

    @classmethod
    def payment_required(
        cls,
        operation: str,
        price: Price,
        error: InsufficientFundsError,
    ) -> "ChargeResult":
        return cls(
            success=False,
            operation=operation,
            currency=error.currency,
            breakdown=dict(price.breakdown),
            required=error.required,
            available=error.available,
            message=(
                f"Insufficient funds. {operation} costs {format_amount(error.required, error.currency)}, "
                f"but only {format_amount(error.available, error.currency)} is available. "
                "Please deposit more funds."
            ),
        )

    @property
    def is_payment_required(self) -> bool:
        return not self.success and self.required is not None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            data: dict[str, Any] = {
                "success": True,
                "operation": self.operation,
                "cost": to_display(self.cost),
                "newBalance": to_display(self.new_balance),
                "currency": self.currency,
                "result": self.result,
                "message": self.message,
            }
        else:
            data = {
                "success": False,
                "operation": self.operation,
                "error": PAYMENT_REQUIRED,
                "message": self.message,
                "required": to_display(self.required),
                "available": to_display(self.available),
                "currency": self.currency,
            }
        if self.breakdown:
            data["breakdown"] = {k: to_display(v) for k, v in self.breakdown.items()}
        return data


class MeteringService:
    """
    Runs paid operations against the ledger.

    The service owns the registry of paid operations so every tool is
    charged through ``charge_for`` and behaves identically.
    """

    def __init__(self, ledger: BaseLedger):
        self._ledger = ledger
        self._operations: dict[str, PaidOperation] = {}

    @property
    def ledger(self) -> BaseLedger:
        return self._ledger

    def register(self, operation: PaidOperation) -> None:
        self._operations[operation.name] = operation

    def get(self, name: str) -> PaidOperation:
        try:
            return self._operations[name]
        except KeyError:
            raise UnknownOperationError(name, available=list(self._operations)) from None

    def operations(self) -> list[PaidOperation]:
        return list(self._operations.values())

    def price(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Price:
        return resolve_price(name, self.get(name).price_fn, params)

    async def charge_for(
        self,
        account_id: Optional[str],
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ChargeResult:
        """
        Price, check, run and charge one paid operation.

        Args:
            account_id: Account paying for the operation
            operation: Registered operation name (e.g. "webSearch")
            params: Operation parameters, used for pricing and the action

        Returns:
            ChargeResult; ``success=False`` with required/available when
            funds are insufficient

        Raises:
            UnknownOperationError: If no such operation is registered
            InvalidAmountError: If the resolved price is not positive
            DependencyUnavailableError: If the external action failed
        """
        params = dict(params or {})
        paid = self.get(operation)
        price = self.price(operation, params)
        return await self.run_paid(account_id, operation, price, lambda: paid.action(params))

    async def run_paid(
        self,
        account_id: Optional[str],
        operation: str,
        price: Price,
        action: Callable[[], Awaitable[dict[str, Any]]],
    ) -> ChargeResult:
        """Reserve ``price``, run ``action`` and charge only if it succeeds."""
        try:
            reservation = await self.hold(account_id, operation, price)
        except InsufficientFundsError as exc:
            return ChargeResult.payment_required(operation, price, exc)
        return await self.settle(reservation, operation, price, action)

    async def hold(
        self,
        account_id: Optional[str],
        operation: str,
        price: Price,
    ) -> Reservation:
        """
        Reserve the funds for one paid action.

        Raises:
            InsufficientFundsError: If the account cannot cover ``price``
        """
        account_id = self._ledger.normalize(account_id)
        try:
            return await self._ledger.reserve(account_id, price.amount, purpose=operation)
        except InsufficientFundsError as exc:
            logger.warning(
                "Payment required for %s on %s: need %s, have %s",
                operation, account_id, exc.required, exc.available,
            )
            raise

    async def settle(
        self,
        reservation: Reservation,
        operation: str,
        price: Price,
        action: Callable[[], Awaitable[dict[str, Any]]],
    ) -> ChargeResult:
        """Run ``action`` against a held reservation; capture on success, release otherwise."""
        try:
            payload = await action()
        except DependencyUnavailableError as exc:
            await self._ledger.release(reservation.reservation_id)
            logger.error("%s failed, nothing charged: %s", operation, exc.message)
            raise
        except ButlerException as exc:
            await self._ledger.release(reservation.reservation_id)
            logger.warning("%s rejected, nothing charged: %s", operation, exc.message)
            raise
        except Exception:
            await self._ledger.release(reservation.reservation_id)
            logger.exception("%s raised unexpectedly, nothing charged", operation)
            raise
        except BaseException:
            # Cancelled mid-flight: the held funds go back to the account.
            await self._ledger.release(reservation.reservation_id)
            logger.warning("%s cancelled, nothing charged", operation)
            raise

        currency = self._ledger.currency
        new_balance = await self._ledger.capture(reservation.reservation_id)
        logger.info(
            "Charged %s %s for %s on %s, balance %s",
            price.amount, currency, operation, reservation.account_id, new_balance,
            extra={"operation": operation, "cost": str(price.amount)},
        )
        return ChargeResult.succeeded(operation, price, new_balance, payload, currency)
