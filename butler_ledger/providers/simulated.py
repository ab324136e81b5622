"""In-memory collaborators for sandbox and development mode."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote_plus

from butler_ledger.exceptions import DependencyUnavailableError

from .delivery import STATUS_MESSAGES, DeliveryTrip, new_external_delivery_id
from .grocery import GroceryOrder


class SimulatedSearchProvider:
    """Returns canned results that echo the query."""

    def __init__(self) -> None:
        self.queries: list[str] = []

    async def search(self, query: str) -> list[dict[str, str]]:
        self.queries.append(query)
        return [
            {
                "title": f'Search results for "{query}"',
                "url": f"https://duckduckgo.com/?q={quote_plus(query)}",
                "snippet": f"Simulated web search completed for: {query}.",
            }
        ]


class SimulatedCallProvider:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def place_call(
        self,
        phone_number: str,
        purpose: str,
        business_name: Optional[str] = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {"phone_number": phone_number, "purpose": purpose, "business_name": business_name}
        )
        return {
            "callId": f"sim_call_{secrets.token_hex(6)}",
            "status": "queued",
            "phoneNumber": phone_number,
            "businessName": business_name,
            "demoMode": True,
        }


class SimulatedMenuVisionProvider:
    def __init__(self) -> None:
        self.images: list[str] = []

    async def analyze(self, image_url: str) -> dict[str, Any]:
        self.images.append(image_url)
        items = [
            {"name": "House Burger", "description": "Beef patty, cheddar", "price": 12.99, "category": "Entrees"},
            {"name": "Fries", "description": None, "price": 4.5, "category": "Sides"},
        ]
        return {
            "restaurantName": None,
            "menuItems": items,
            "categories": ["Entrees", "Sides"],
            "currency": "USD",
            "notes": "Simulated menu analysis",
            "itemCount": len(items),
        }


class SimulatedGroceryProvider:
    def __init__(self) -> None:
        self.orders: dict[str, GroceryOrder] = {}

    async def create_order(self, order: GroceryOrder) -> dict[str, Any]:
        order_id = f"sim_order_{secrets.token_hex(6)}"
        self.orders[order_id] = order
        return {"orderId": order_id, "order": {"id": order_id, "status": "created", **order.to_payload()}}


class SimulatedDeliveryProvider:
    """Accepts every trip and tracks it by external delivery id."""

    def __init__(self) -> None:
        self.deliveries: dict[str, DeliveryTrip] = {}

    async def create_delivery(self, trip: DeliveryTrip) -> dict[str, Any]:
        delivery_id = new_external_delivery_id()
        self.deliveries[delivery_id] = trip
        now = datetime.now(timezone.utc)
        tracking_url = f"https://track.doordash.com/sandbox/{delivery_id}"
        return {
            "deliveryId": delivery_id,
            "trackingUrl": tracking_url,
            "status": "created",
            "statusMessage": STATUS_MESSAGES["created"],
            "fee": 599,
            "currency": "USD",
            "estimatedPickupTime": (now + timedelta(minutes=15)).isoformat(),
            "estimatedDropoffTime": (now + timedelta(minutes=45)).isoformat(),
            "supportReference": None,
            "message": f"Delivery created successfully! Track at: {tracking_url}",
        }

    async def get_delivery(self, delivery_id: str) -> dict[str, Any]:
        if delivery_id not in self.deliveries:
            raise DependencyUnavailableError("DoorDash", "delivery not found", status_code=404)
        return {
            "deliveryId": delivery_id,
            "status": "created",
            "statusMessage": STATUS_MESSAGES["created"],
            "trackingUrl": f"https://track.doordash.com/sandbox/{delivery_id}",
        }
