"""DoorDash Drive v2 deliveries."""
from __future__ import annotations

import base64
import binascii
import logging
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol

import httpx
import jwt

from butler_ledger.exceptions import ButlerValidationError
from butler_ledger.money import to_amount, to_minor

from .base import HttpProvider

logger = logging.getLogger("butler.providers.delivery")

TOKEN_TTL_SECONDS = 300

STATUS_MESSAGES = {
    "created": "Delivery created, waiting for Dasher",
    "confirmed": "Dasher confirmed",
    "enroute_to_pickup": "Dasher heading to restaurant",
    "arrived_at_pickup": "Dasher arrived at restaurant",
    "picked_up": "Order picked up, on the way!",
    "enroute_to_dropoff": "Dasher heading to you",
    "arrived_at_dropoff": "Dasher arrived!",
    "delivered": "Delivered!",
    "cancelled": "Delivery cancelled",
}


@dataclass(frozen=True)
class DeliveryTrip:
    """
    Pickup and dropoff details for one delivery.

    ``order_value`` and ``tip`` are dollar amounts; the Drive API receives
    them in cents.
    """
    pickup_address: str
    pickup_business_name: str
    pickup_phone_number: str
    dropoff_address: str
    dropoff_phone_number: str
    order_value: Decimal
    tip: Decimal = Decimal("0.00")
    pickup_instructions: Optional[str] = None
    dropoff_instructions: Optional[str] = None
    dropoff_business_name: Optional[str] = None

    REQUIRED = (
        "pickupAddress",
        "pickupBusinessName",
        "pickupPhoneNumber",
        "dropoffAddress",
        "dropoffPhoneNumber",
    )

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "DeliveryTrip":
        missing = [key for key in cls.REQUIRED if not params.get(key)]
        if missing:
            raise ButlerValidationError(
                f"Missing delivery fields: {', '.join(missing)}", field=missing[0]
            )
        if params.get("orderValue") is None:
            raise ButlerValidationError("Missing delivery fields: orderValue", field="orderValue")
        order_value = to_amount(params["orderValue"])
        if order_value < 0:
            raise ButlerValidationError("Order value cannot be negative", field="orderValue")
        raw_tip = params.get("tipAmount", params.get("tip"))
        tip = to_amount(raw_tip) if raw_tip is not None else Decimal("0.00")
        if tip < 0:
            raise ButlerValidationError("Tip cannot be negative", field="tipAmount")
        return cls(
            pickup_address=params["pickupAddress"],
            pickup_business_name=params["pickupBusinessName"],
            pickup_phone_number=params["pickupPhoneNumber"],
            dropoff_address=params["dropoffAddress"],
            dropoff_phone_number=params["dropoffPhoneNumber"],
            order_value=order_value,
            tip=tip,
            pickup_instructions=params.get("pickupInstructions"),
            dropoff_instructions=params.get("dropoffInstructions"),
            dropoff_business_name=params.get("dropoffBusinessName"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pickupAddress": self.pickup_address,
            "pickupBusinessName": self.pickup_business_name,
            "pickupPhoneNumber": self.pickup_phone_number,
            "pickupInstructions": self.pickup_instructions,
            "dropoffAddress": self.dropoff_address,
            "dropoffPhoneNumber": self.dropoff_phone_number,
            "dropoffInstructions": self.dropoff_instructions,
            "orderValue": float(self.order_value),
            "tipAmount": float(self.tip),
        }

    def to_payload(self, external_delivery_id: str) -> dict[str, Any]:
        return {
            "external_delivery_id": external_delivery_id,
            "pickup_address": self.pickup_address,
            "pickup_business_name": self.pickup_business_name,
            "pickup_phone_number": self.pickup_phone_number,
            "pickup_instructions": self.pickup_instructions or "",
            "dropoff_address": self.dropoff_address,
            "dropoff_business_name": self.dropoff_business_name or "Customer",
            "dropoff_phone_number": self.dropoff_phone_number,
            "dropoff_instructions": self.dropoff_instructions or "",
            "order_value": to_minor(self.order_value),
            "tip": to_minor(self.tip),
        }


def new_external_delivery_id() -> str:
    return f"delivery-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def delivery_summary(data: Mapping[str, Any]) -> dict[str, Any]:
    """Map a Drive API delivery object onto the fields agents see."""
    status = data.get("delivery_status")
    return {
        "deliveryId": data.get("external_delivery_id"),
        "trackingUrl": data.get("tracking_url"),
        "status": status,
        "statusMessage": STATUS_MESSAGES.get(status, status),
        "fee": data.get("fee"),
        "currency": data.get("currency"),
        "estimatedPickupTime": data.get("pickup_time_estimated"),
        "estimatedDropoffTime": data.get("dropoff_time_estimated"),
        "supportReference": data.get("support_reference"),
    }


class DeliveryProvider(Protocol):
    async def create_delivery(self, trip: DeliveryTrip) -> dict[str, Any]:
        ...

    async def get_delivery(self, delivery_id: str) -> dict[str, Any]:
        ...


class DoorDashDeliveryProvider(HttpProvider):
    """
    DoorDash Drive client.

    Each request is signed with a short-lived HS256 JWT whose key is the
    base64-decoded signing secret.
    """

    dependency = "DoorDash"

    def __init__(
        self,
        developer_id: Optional[str],
        key_id: Optional[str],
        signing_secret: Optional[str],
        *,
        base_url: str = "https://openapi.doordash.com/drive/v2",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout=timeout, client=client)
        self._developer_id = developer_id
        self._key_id = key_id
        self._signing_secret = signing_secret

    def _token(self) -> str:
        if not (self._developer_id and self._key_id and self._signing_secret):
            raise self._unavailable("credentials not configured")
        try:
            key = base64.b64decode(self._signing_secret)
        except (binascii.Error, ValueError) as exc:
            raise self._unavailable("signing secret is not valid base64") from exc
        now = int(time.time())
        return jwt.encode(
            {
                "aud": "doordash",
                "iss": self._developer_id,
                "kid": self._key_id,
                "exp": now + TOKEN_TTL_SECONDS,
                "iat": now,
            },
            key,
            algorithm="HS256",
            headers={"dd-ver": "DD-JWT-V1"},
        )

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token()}"}

    async def create_delivery(self, trip: DeliveryTrip) -> dict[str, Any]:
        headers = self._headers()
        external_id = new_external_delivery_id()
        logger.info(
            "Creating delivery %s from %s to %s (order value %s)",
            external_id, trip.pickup_business_name, trip.dropoff_address, trip.order_value,
        )
        data = await self._request(
            "POST", "/deliveries", json=trip.to_payload(external_id), headers=headers
        )
        summary = delivery_summary(data)
        summary["message"] = f"Delivery created successfully! Track at: {summary['trackingUrl']}"
        return summary

    async def get_delivery(self, delivery_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"/deliveries/{delivery_id}", headers=self._headers())
        summary = delivery_summary(data)
        summary["dasherName"] = data.get("dasher_name")
        return summary
