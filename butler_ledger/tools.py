"""Paid tool declarations and the agent-facing toolbox.

Each paid tool is declared once as a ``PaidOperation`` (name, price
function, action) and registered with the ``MeteringService``; the
toolbox maps agent tool calls onto those operations, the free ledger
tools and the delivery quote flow.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Optional

from .exceptions import (
    ButlerException,
    ButlerValidationError,
    InvalidAmountError,
    OperationNotPermittedError,
)
from .ledger import BaseLedger
from .metering import ChargeResult, MeteringService, PaidOperation
from .money import format_amount, to_display, to_positive_amount
from .pricing import (
    DELIVERY_DISPATCH,
    GROCERY_ORDER,
    MENU_VISION,
    PHONE_CALL,
    PLACE_ORDER,
    WEB_SEARCH,
    PricingPolicy,
)
from .providers import GroceryOrder, Providers
from .quotes import DeliveryQuoteService

logger = logging.getLogger("butler.tools")

CHECK_BALANCE = "checkBalance"
FUND_AGENT = "fundAgent"
REQUEST_DELIVERY_QUOTE = "requestDeliveryQuote"
CONFIRM_DELIVERY = "confirmDelivery"
GET_DELIVERY_STATUS = "getDeliveryStatus"

# Names the voice agent used for the same paid operations.
TOOL_ALIASES = {
    "callBusiness": PHONE_CALL,
    "placeGroceryOrder": GROCERY_ORDER,
}

# Operations that may only be charged through their confirmation flow.
CONFIRMATION_REQUIRED = {DELIVERY_DISPATCH: CONFIRM_DELIVERY}


def _require(params: Mapping[str, Any], *keys: str) -> None:
    for key in keys:
        if not params.get(key):
            raise ButlerValidationError(f"Missing required argument: {key}", field=key)


# =============================================================================
# Paid operations
# =============================================================================

def build_paid_operations(pricing: PricingPolicy, providers: Providers) -> list[PaidOperation]:
    """Declare every directly chargeable paid tool."""

    async def web_search(params: Mapping[str, Any]) -> dict[str, Any]:
        _require(params, "query")
        results = await providers.search.search(params["query"])
        return {"query": params["query"], "results": results, "resultCount": len(results)}

    async def phone_call(params: Mapping[str, Any]) -> dict[str, Any]:
        _require(params, "phoneNumber", "purpose")
        return await providers.calls.place_call(
            params["phoneNumber"], params["purpose"], params.get("businessName")
        )

    async def analyze_menu(params: Mapping[str, Any]) -> dict[str, Any]:
        _require(params, "imageUrl")
        return await providers.vision.analyze(params["imageUrl"])

    async def place_order(params: Mapping[str, Any]) -> dict[str, Any]:
        # Orders are recorded locally; no restaurant API is called.
        cost = pricing.order_cost(params)
        delivery_address = params.get("deliveryAddress") or None
        return {
            "orderId": f"ORD-{int(time.time() * 1000)}",
            "restaurant": params.get("restaurant"),
            "items": [
                {**item, "quantity": item.get("quantity") or 1}
                for item in params.get("items") or []
            ],
            "subtotal": to_display(cost.subtotal),
            "tax": to_display(cost.tax),
            "deliveryFee": to_display(cost.delivery_fee),
            "platformFee": to_display(cost.platform_fee),
            "tip": to_display(cost.tip),
            "orderCost": to_display(cost.order_cost),
            "serviceFee": to_display(cost.service_fee),
            "totalCost": to_display(cost.total),
            "deliveryAddress": delivery_address,
            "estimatedDelivery": "30-45 minutes" if delivery_address else "15-20 minutes (pickup)",
        }

    async def grocery_order(params: Mapping[str, Any]) -> dict[str, Any]:
        return await providers.grocery.create_order(GroceryOrder.from_params(params))

    return [
        PaidOperation(WEB_SEARCH, pricing.price_fn(WEB_SEARCH), web_search,
                      "Search the web"),
        PaidOperation(PHONE_CALL, pricing.price_fn(PHONE_CALL), phone_call,
                      "Call a business with an AI voice assistant"),
        PaidOperation(MENU_VISION, pricing.price_fn(MENU_VISION), analyze_menu,
                      "Extract menu items and prices from an image"),
        PaidOperation(PLACE_ORDER, pricing.price_fn(PLACE_ORDER), place_order,
                      "Place a food order (service fee plus order cost)"),
        PaidOperation(GROCERY_ORDER, pricing.price_fn(GROCERY_ORDER), grocery_order,
                      "Place a GoPuff grocery order (service fee)"),
    ]


def register_paid_operations(
    metering: MeteringService,
    pricing: PricingPolicy,
    providers: Providers,
) -> None:
    for operation in build_paid_operations(pricing, providers):
        metering.register(operation)


# =============================================================================
# Toolbox
# =============================================================================

ToolHandler = Callable[[Optional[str], Mapping[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    required: tuple[str, ...] = ()
    paid: bool = False
    price: Optional[Decimal] = None
    aliases: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "required": list(self.required),
            "paid": self.paid,
        }
        if self.price is not None:
            data["price"] = to_display(self.price)
        if self.aliases:
            data["aliases"] = list(self.aliases)
        return data


class ButlerToolbox:
    """
    Dispatches agent tool calls.

    ``execute`` always answers with a dict: domain errors become
    ``{"success": False, ...}`` payloads so the agent can explain them
    (for example asking for a deposit after a 402).
    """

    def __init__(
        self,
        ledger: BaseLedger,
        metering: MeteringService,
        pricing: PricingPolicy,
        quotes: DeliveryQuoteService,
        providers: Providers,
        *,
        fund_limit: Decimal = Decimal("1000.00"),
    ):
        self.ledger = ledger
        self.metering = metering
        self.pricing = pricing
        self.quotes = quotes
        self.providers = providers
        self.fund_limit = fund_limit
        self._handlers: dict[str, ToolHandler] = {
            CHECK_BALANCE: self._check_balance,
            FUND_AGENT: self._fund_agent,
            REQUEST_DELIVERY_QUOTE: self._request_delivery_quote,
            CONFIRM_DELIVERY: self._confirm_delivery,
            GET_DELIVERY_STATUS: self._get_delivery_status,
        }

    @property
    def currency(self) -> str:
        return self.ledger.currency

    # ------------------------------------------------------------------
    # ledger-facing operations shared with the HTTP API
    # ------------------------------------------------------------------

    async def balance(self, account_id: Optional[str]) -> dict[str, Any]:
        account_id = self.ledger.normalize(account_id)
        balance = await self.ledger.get_balance(account_id)
        available = await self.ledger.get_available(account_id)
        return {
            "accountId": account_id,
            "balance": to_display(balance),
            "available": to_display(available),
            "currency": self.currency,
        }

    async def fund(
        self,
        account_id: Optional[str],
        amount: Any,
        memo: Optional[str] = None,
    ) -> dict[str, Any]:
        """Demo top-up, capped at ``fund_limit`` per call."""
        value = to_positive_amount(amount)
        if value > self.fund_limit:
            raise InvalidAmountError(
                amount,
                f"Amount must be between 0 and {format_amount(self.fund_limit, self.currency)}",
            )
        account_id = self.ledger.normalize(account_id)
        new_balance = await self.ledger.credit(account_id, value, memo=memo or "agent funding")
        return {
            "success": True,
            "accountId": account_id,
            "funded": to_display(value),
            "newBalance": to_display(new_balance),
            "currency": self.currency,
            "message": (
                f"Agent funded with {format_amount(value, self.currency)}. "
                f"New balance: {format_amount(new_balance, self.currency)}"
            ),
        }

    async def charge(
        self,
        account_id: Optional[str],
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ChargeResult:
        """Charge a paid operation directly.

        Raises:
            OperationNotPermittedError: operation needs an explicit confirmation
        """
        operation = TOOL_ALIASES.get(operation, operation)
        if operation in CONFIRMATION_REQUIRED:
            raise OperationNotPermittedError(
                f"{operation} must be quoted and confirmed; use "
                f"{REQUEST_DELIVERY_QUOTE} then {CONFIRMATION_REQUIRED[operation]}",
                details={"operation": operation},
            )
        return await self.metering.charge_for(account_id, operation, params)

    # ------------------------------------------------------------------
    # agent tools
    # ------------------------------------------------------------------

    def tool_names(self) -> list[str]:
        return [spec.name for spec in self.describe_specs()]

    def describe_specs(self) -> list[ToolSpec]:
        aliases: dict[str, list[str]] = {}
        for alias, target in TOOL_ALIASES.items():
            aliases.setdefault(target, []).append(alias)

        specs = [
            ToolSpec(CHECK_BALANCE, "Check the current balance of the agent wallet"),
            ToolSpec(FUND_AGENT, "Add demo funds to the agent wallet", required=("amount",)),
        ]
        required_args = {
            WEB_SEARCH: ("query",),
            PHONE_CALL: ("phoneNumber", "purpose"),
            MENU_VISION: ("imageUrl",),
            PLACE_ORDER: ("restaurant", "items"),
            GROCERY_ORDER: ("location_id", "items", "customer_name", "customer_phone",
                            "street_address", "city", "state", "zip"),
        }
        for paid in self.metering.operations():
            specs.append(
                ToolSpec(
                    paid.name,
                    paid.description,
                    required=required_args.get(paid.name, ()),
                    paid=True,
                    price=self.pricing.price_fn(paid.name)({}).amount,
                    aliases=tuple(aliases.get(paid.name, ())),
                )
            )
        specs += [
            ToolSpec(
                REQUEST_DELIVERY_QUOTE,
                "Quote a DoorDash delivery; nothing is charged until it is confirmed",
                required=("pickupAddress", "pickupBusinessName", "pickupPhoneNumber",
                          "dropoffAddress", "dropoffPhoneNumber", "orderValue"),
            ),
            ToolSpec(
                CONFIRM_DELIVERY,
                "Dispatch a quoted delivery after the user explicitly confirmed it",
                required=("quoteId",),
                paid=True,
                price=self.pricing.price_fn(DELIVERY_DISPATCH)({}).amount,
            ),
            ToolSpec(GET_DELIVERY_STATUS, "Check the status of a delivery", required=("deliveryId",)),
        ]
        return specs

    def describe(self) -> list[dict[str, Any]]:
        """Tool catalogue with prices, for the agent prompt."""
        return [spec.to_dict() for spec in self.describe_specs()]

    async def execute(
        self,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        account_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Run one tool call and return a JSON-ready result."""
        arguments = dict(arguments or {})
        try:
            handler = self._handlers.get(tool_name)
            if handler is not None:
                return await handler(account_id, arguments)
            result = await self.charge(account_id, tool_name, arguments)
            return result.to_dict()
        except ButlerException as exc:
            logger.info("Tool %s returned %s", tool_name, exc.error_code)
            return exc.to_dict()
        except Exception as exc:
            logger.exception("Tool %s failed unexpectedly", tool_name)
            return {
                "success": False,
                "error": "INTERNAL_ERROR",
                "message": f"{tool_name} failed: {exc}",
            }

    async def _check_balance(self, account_id: Optional[str], args: Mapping[str, Any]) -> dict[str, Any]:
        data = await self.balance(account_id)
        data["message"] = f"Current balance: {data['balance']:.2f} {self.currency}"
        return data

    async def _fund_agent(self, account_id: Optional[str], args: Mapping[str, Any]) -> dict[str, Any]:
        return await self.fund(account_id, args.get("amount"))

    async def _request_delivery_quote(
        self, account_id: Optional[str], args: Mapping[str, Any]
    ) -> dict[str, Any]:
        quote = await self.quotes.request_quote(args, account_id=account_id)
        return quote.to_dict(self.quotes.now(), self.currency)

    async def _confirm_delivery(self, account_id: Optional[str], args: Mapping[str, Any]) -> dict[str, Any]:
        _require(args, "quoteId")
        result = await self.quotes.confirm_quote(args["quoteId"])
        return result.to_dict()

    async def _get_delivery_status(
        self, account_id: Optional[str], args: Mapping[str, Any]
    ) -> dict[str, Any]:
        _require(args, "deliveryId")
        status = await self.providers.delivery.get_delivery(args["deliveryId"])
        return {"success": True, **status}
