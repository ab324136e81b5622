"""GoPuff grocery orders through the MealMe API."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol

import httpx

from butler_ledger.exceptions import ButlerValidationError
from butler_ledger.money import to_amount, to_minor

from .base import HttpProvider

logger = logging.getLogger("butler.providers.grocery")


@dataclass(frozen=True)
class GroceryOrder:
    """A grocery order as the agent describes it."""
    location_id: str
    items: list[dict[str, Any]]
    customer_name: str
    customer_phone: str
    street_address: str
    city: str
    state: str
    zip: str
    customer_email: Optional[str] = None
    dropoff_instructions: Optional[str] = None
    tip: Decimal = Decimal("0.00")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "GroceryOrder":
        missing = [
            key
            for key in ("location_id", "items", "customer_name", "customer_phone",
                        "street_address", "city", "state", "zip")
            if not params.get(key)
        ]
        if missing:
            raise ButlerValidationError(
                f"Missing grocery order fields: {', '.join(missing)}", field=missing[0]
            )
        items = []
        for item in params["items"]:
            if not isinstance(item, Mapping) or not item.get("product_id"):
                raise ButlerValidationError("Each item needs a product_id", field="items")
            items.append({"product_id": item["product_id"], "quantity": int(item.get("quantity") or 1)})
        tip = to_amount(params["tip"]) if params.get("tip") is not None else Decimal("0.00")
        return cls(
            location_id=str(params["location_id"]),
            items=items,
            customer_name=params["customer_name"],
            customer_phone=params["customer_phone"],
            street_address=params["street_address"],
            city=params["city"],
            state=params["state"],
            zip=str(params["zip"]),
            customer_email=params.get("customer_email"),
            dropoff_instructions=params.get("dropoff_instructions"),
            tip=tip,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "location_id": self.location_id,
            "fulfillment_method": "Delivery",
            "customer": {
                "id": f"user_{int(time.time() * 1000)}",
                "name": self.customer_name,
                "email": self.customer_email,
                "phone_number": self.customer_phone,
                "address": {
                    "street_address": self.street_address,
                    "street_address_detail": "",
                    "city": self.city,
                    "region": self.state,
                    "postal_code": self.zip,
                    "country": "US",
                },
            },
            "items": self.items,
        }
        if self.dropoff_instructions:
            payload["dropoff_instructions"] = self.dropoff_instructions
        if self.tip:
            payload["tip"] = to_minor(self.tip)
        return payload


class GroceryProvider(Protocol):
    async def create_order(self, order: GroceryOrder) -> dict[str, Any]:
        ...


class MealMeGroceryProvider(HttpProvider):
    """MealMe ``POST /order``; payment happens later through a checkout link."""

    dependency = "MealMe"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://api.satsuma.ai",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout=timeout, client=client)
        self._api_key = api_key

    async def create_order(self, order: GroceryOrder) -> dict[str, Any]:
        if not self._api_key:
            raise self._unavailable("API key not configured")

        data = await self._request(
            "POST",
            "/order",
            json=order.to_payload(),
            headers={"Authorization": self._api_key},
        )
        nested = data.get("data") if isinstance(data.get("data"), dict) else {}
        order_id = nested.get("id") or data.get("id") or data.get("order_id")
        logger.info("Created grocery order %s at %s", order_id, order.location_id)
        return {"orderId": order_id, "order": data}
