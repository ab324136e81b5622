"""Test doubles shared across test modules."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from butler_ledger.exceptions import DependencyUnavailableError


class FakeClock:
    """Manually advanced clock for quote expiry."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FailingDeliveryProvider:
    """Delivery collaborator that is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def create_delivery(self, trip):
        self.attempts += 1
        raise DependencyUnavailableError("DoorDash", "request timed out")

    async def get_delivery(self, delivery_id):
        raise DependencyUnavailableError("DoorDash", "request timed out")


class StalledDeliveryProvider:
    """Delivery collaborator whose dispatch never returns."""

    def __init__(self) -> None:
        self.started = asyncio.Event()

    async def create_delivery(self, trip):
        self.started.set()
        await asyncio.Event().wait()

    async def get_delivery(self, delivery_id):
        raise DependencyUnavailableError("DoorDash", "request timed out")


class FailingSearchProvider:
    async def search(self, query):
        raise DependencyUnavailableError("Tavily", "HTTP 500", status_code=500)


class MalformedSearchProvider:
    """Search collaborator that trips over an unexpected response shape."""

    async def search(self, query):
        return [].get("results")


TRIP = {
    "pickupAddress": "901 Market St, San Francisco, CA",
    "pickupBusinessName": "Tartine",
    "pickupPhoneNumber": "+14155550100",
    "dropoffAddress": "1 Ferry Building, San Francisco, CA",
    "dropoffPhoneNumber": "+14155550199",
    "orderValue": 20,
}
