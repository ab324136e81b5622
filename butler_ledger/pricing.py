"""Pricing policy for paid Butler operations.

Every paid operation resolves to a ``Price`` through a price function:
a fixed amount for simple actions (search, call, vision) or a formula over
the request parameters for orders and deliveries.

Order formula:
    subtotal   = params.subtotal or sum(item.price * item.quantity)
    tax        = params.tax or subtotal * tax_rate
    order cost = params.totalCost or subtotal + tax + delivery + platform + tip
    total      = order cost + service fee

Delivery and platform fees only apply when a ``deliveryAddress`` is given.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Optional

from .config import ButlerSettings
from .exceptions import ButlerValidationError, InvalidAmountError, UnknownOperationError
from .money import CENT, to_amount, to_display

WEB_SEARCH = "webSearch"
PHONE_CALL = "phoneCall"
MENU_VISION = "analyzeMenuImage"
PLACE_ORDER = "placeOrder"
GROCERY_ORDER = "groceryOrder"
DELIVERY_DISPATCH = "deliveryDispatch"

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Price:
    """Resolved price of one operation invocation."""
    amount: Decimal
    breakdown: dict[str, Decimal] = field(default_factory=dict)

    def breakdown_for_display(self) -> dict[str, float]:
        return {key: to_display(value) for key, value in self.breakdown.items()}


PriceFn = Callable[[Mapping[str, Any]], Price]


def resolve_price(name: str, price_fn: PriceFn, params: Optional[Mapping[str, Any]] = None) -> Price:
    """Apply ``price_fn``; every paid invocation must cost more than zero."""
    price = price_fn(params or {})
    if price.amount <= 0:
        raise InvalidAmountError(price.amount, f"Price of {name} must be greater than zero")
    return price


def _non_negative(params: Mapping[str, Any], key: str) -> Optional[Decimal]:
    value = params.get(key)
    if value is None:
        return None
    amount = to_amount(value)
    if amount < 0:
        raise InvalidAmountError(value, f"{key} must not be negative")
    return amount


@dataclass(frozen=True)
class OrderItem:
    name: str
    price: Decimal
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderItem":
        if not isinstance(data, Mapping):
            raise ButlerValidationError("Each order item must be an object", field="items")
        price = _non_negative(data, "price")
        if price is None:
            raise ButlerValidationError("Order item is missing a price", field="items")
        quantity = data.get("quantity")
        if quantity is None:
            quantity = 1
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ButlerValidationError(
                f"Invalid quantity {quantity!r}; must be a positive integer", field="items"
            )
        return cls(name=str(data.get("name", "")), price=price, quantity=quantity)


@dataclass(frozen=True)
class OrderCost:
    """Cost breakdown of a food order."""
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    platform_fee: Decimal
    tip: Decimal
    order_cost: Decimal
    service_fee: Decimal

    @property
    def total(self) -> Decimal:
        return self.order_cost + self.service_fee

    def to_price(self) -> Price:
        return Price(
            amount=self.total,
            breakdown={
                "subtotal": self.subtotal,
                "tax": self.tax,
                "deliveryFee": self.delivery_fee,
                "platformFee": self.platform_fee,
                "tip": self.tip,
                "orderCost": self.order_cost,
                "serviceFee": self.service_fee,
            },
        )


def parse_items(params: Mapping[str, Any]) -> list[OrderItem]:
    raw_items = params.get("items") or []
    if not isinstance(raw_items, (list, tuple)):
        raise ButlerValidationError("items must be a list", field="items")
    return [OrderItem.from_dict(item) for item in raw_items]


def compute_order_cost(
    params: Mapping[str, Any],
    *,
    tax_rate: Decimal,
    service_fee: Decimal,
    default_delivery_fee: Decimal,
    platform_fee: Decimal,
) -> OrderCost:
    """Compute the cost of a food order from its request parameters."""
    items = parse_items(params)

    subtotal = _non_negative(params, "subtotal")
    if subtotal is None:
        subtotal = sum((item.line_total for item in items), ZERO)
    subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)

    tax = _non_negative(params, "tax")
    if tax is None:
        tax = (subtotal * tax_rate).quantize(CENT, rounding=ROUND_HALF_UP)

    if params.get("deliveryAddress"):
        delivery_fee = _non_negative(params, "deliveryFee")
        if delivery_fee is None:
            delivery_fee = default_delivery_fee
        applied_platform_fee = platform_fee
    else:
        delivery_fee = ZERO
        applied_platform_fee = ZERO

    tip = _non_negative(params, "tip") or ZERO

    order_cost = _non_negative(params, "totalCost")
    if order_cost is None:
        order_cost = subtotal + tax + delivery_fee + applied_platform_fee + tip

    return OrderCost(
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee,
        platform_fee=applied_platform_fee,
        tip=tip,
        order_cost=order_cost,
        service_fee=service_fee,
    )


class PricingPolicy:
    """Maps operation names to price functions built from settings."""

    def __init__(self, settings: ButlerSettings):
        self._settings = settings
        self._price_fns: dict[str, PriceFn] = {
            WEB_SEARCH: self.fixed(settings.web_search_price),
            PHONE_CALL: self.fixed(settings.phone_call_price),
            MENU_VISION: self.fixed(settings.menu_vision_price),
            PLACE_ORDER: self._order_price,
            GROCERY_ORDER: self.fixed(settings.grocery_service_fee, label="serviceFee"),
            DELIVERY_DISPATCH: self._delivery_price,
        }

    @staticmethod
    def fixed(amount: Decimal, label: str = "price") -> PriceFn:
        """Price function that ignores its parameters."""
        price = Price(amount=amount, breakdown={label: amount})

        def price_fn(params: Mapping[str, Any]) -> Price:
            return price

        return price_fn

    def _order_price(self, params: Mapping[str, Any]) -> Price:
        return self.order_cost(params).to_price()

    def order_cost(self, params: Mapping[str, Any]) -> OrderCost:
        s = self._settings
        return compute_order_cost(
            params,
            tax_rate=s.tax_rate,
            service_fee=s.order_service_fee,
            default_delivery_fee=s.order_delivery_fee,
            platform_fee=s.order_platform_fee,
        )

    def _delivery_price(self, params: Mapping[str, Any]) -> Price:
        tip = _non_negative(params, "tipAmount")
        if tip is None:
            tip = _non_negative(params, "tip") or ZERO
        base = self._settings.delivery_base_fee
        return Price(amount=base + tip, breakdown={"baseFee": base, "tip": tip})

    def operations(self) -> list[str]:
        return list(self._price_fns)

    def price_fn(self, name: str) -> PriceFn:
        try:
            return self._price_fns[name]
        except KeyError:
            raise UnknownOperationError(name, available=self.operations()) from None

    def price(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Price:
        """Resolve the price of one invocation of ``name``."""
        return resolve_price(name, self.price_fn(name), params)

    def price_table(self) -> list[dict[str, Any]]:
        """Default prices for the agent prompt and the /operations endpoint."""
        s = self._settings
        return [
            {"operation": WEB_SEARCH, "price": to_display(s.web_search_price), "pricing": "fixed"},
            {"operation": PHONE_CALL, "price": to_display(s.phone_call_price), "pricing": "fixed"},
            {"operation": MENU_VISION, "price": to_display(s.menu_vision_price), "pricing": "fixed"},
            {
                "operation": PLACE_ORDER,
                "price": to_display(s.order_service_fee),
                "pricing": "service fee + food cost + tax + delivery",
            },
            {"operation": GROCERY_ORDER, "price": to_display(s.grocery_service_fee), "pricing": "service fee"},
            {
                "operation": DELIVERY_DISPATCH,
                "price": to_display(s.delivery_base_fee),
                "pricing": "base fee + tip",
            },
        ]
