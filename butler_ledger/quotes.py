"""Delivery quote / confirm state machine.

A quote moves ``QUOTED -> CONFIRMED`` or ``QUOTED -> EXPIRED``. Quotes are
single use: a confirmed quote is deleted, and an expired one is removed the
first time somebody tries to confirm it. There is no retry after expiry;
callers request a new quote.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from .exceptions import InsufficientFundsError, QuoteExpiredError, QuoteNotFoundError
from .metering import ChargeResult, MeteringService
from .money import format_amount, to_display
from .pricing import DELIVERY_DISPATCH, Price, PricingPolicy
from .providers.delivery import DeliveryProvider, DeliveryTrip

logger = logging.getLogger("butler.quotes")

Clock = Callable[[], datetime]

PICKUP_ESTIMATE = timedelta(minutes=15)
DROPOFF_ESTIMATE = timedelta(minutes=45)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _quote_id() -> str:
    return f"quote_{secrets.token_hex(8)}"


@dataclass
class DeliveryQuote:
    """A time-boxed fee estimate awaiting explicit confirmation."""
    account_id: str
    trip: DeliveryTrip
    price: Price
    ttl_seconds: int
    quote_id: str = field(default_factory=_quote_id)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def fee(self) -> Decimal:
        return self.price.amount

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime) -> bool:
        return now - self.created_at > timedelta(seconds=self.ttl_seconds)

    def expires_in(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))

    def to_dict(self, now: datetime, currency: str) -> dict[str, Any]:
        trip = self.trip
        pickup_at = self.created_at + PICKUP_ESTIMATE
        dropoff_at = self.created_at + DROPOFF_ESTIMATE
        return {
            "success": True,
            "quoteId": self.quote_id,
            "accountId": self.account_id,
            "requiresConfirmation": True,
            "estimatedFee": to_display(self.fee),
            "breakdown": self.price.breakdown_for_display(),
            "currency": currency,
            "expiresInSeconds": self.expires_in(now),
            "expiresAt": self.expires_at.isoformat(),
            "createdAt": self.created_at.isoformat(),
            "pickup": {
                "address": trip.pickup_address,
                "businessName": trip.pickup_business_name,
                "phone": trip.pickup_phone_number,
                "instructions": trip.pickup_instructions or "None",
            },
            "dropoff": {
                "address": trip.dropoff_address,
                "phone": trip.dropoff_phone_number,
                "instructions": trip.dropoff_instructions or "None",
            },
            "orderValue": to_display(trip.order_value),
            "estimatedPickupTime": pickup_at.isoformat(),
            "estimatedDropoffTime": dropoff_at.isoformat(),
            "message": (
                f"Delivery quote ready: {trip.pickup_business_name} to {trip.dropoff_address}. "
                f"Estimated fee {format_amount(self.fee, currency)}. "
                "Confirmation required before a Dasher is dispatched."
            ),
        }


class DeliveryQuoteService:
    """
    Issues and confirms delivery quotes.

    Confirmation reserves the quoted fee and claims the quote under the
    book lock, then settles the reservation through ``MeteringService`` so
    the fee is only debited once the delivery was actually dispatched.
    A confirmation cancelled mid-dispatch consumes the quote and charges
    nothing, like a failed dispatch.
    """

    def __init__(
        self,
        metering: MeteringService,
        pricing: PricingPolicy,
        delivery: DeliveryProvider,
        *,
        ttl_seconds: int = 1800,
        clock: Optional[Clock] = None,
    ):
        self._metering = metering
        self._pricing = pricing
        self._delivery = delivery
        self._ttl_seconds = ttl_seconds
        self._clock = clock or _utcnow
        self._quotes: dict[str, DeliveryQuote] = {}
        self._lock = asyncio.Lock()

    @property
    def currency(self) -> str:
        return self._metering.ledger.currency

    def now(self) -> datetime:
        return self._clock()

    async def request_quote(
        self,
        trip_params: Mapping[str, Any],
        account_id: Optional[str] = None,
    ) -> DeliveryQuote:
        """Price a delivery and hold the quote for confirmation."""
        trip = DeliveryTrip.from_params(trip_params)
        price = self._pricing.price(DELIVERY_DISPATCH, trip_params)
        quote = DeliveryQuote(
            account_id=self._metering.ledger.normalize(account_id),
            trip=trip,
            price=price,
            ttl_seconds=self._ttl_seconds,
            created_at=self.now(),
        )
        async with self._lock:
            self._quotes[quote.quote_id] = quote
        logger.info(
            "Issued quote %s for %s: %s",
            quote.quote_id, quote.account_id, format_amount(quote.fee, self.currency),
        )
        return quote

    async def get_quote(self, quote_id: str) -> DeliveryQuote:
        async with self._lock:
            quote = self._quotes.get(quote_id)
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    async def confirm_quote(self, quote_id: str) -> ChargeResult:
        """
        Confirm a quote: charge its fee and dispatch the delivery.

        The fee is reserved while the quote is still in the book, so an
        unfunded confirmation leaves the quote untouched for a retry.

        Raises:
            QuoteNotFoundError: Unknown or already consumed quote
            QuoteExpiredError: Quote older than the confirmation window
            DependencyUnavailableError: Dispatch failed; the quote is
                consumed and nothing is charged
        """
        async with self._lock:
            quote = self._quotes.get(quote_id)
            if quote is None:
                raise QuoteNotFoundError(quote_id)
            if quote.is_expired(self.now()):
                del self._quotes[quote_id]
                logger.info("Quote %s expired at %s", quote_id, quote.expires_at.isoformat())
                raise QuoteExpiredError(quote_id, expired_at=quote.expires_at.isoformat())
            try:
                reservation = await self._metering.hold(
                    quote.account_id, DELIVERY_DISPATCH, quote.price
                )
            except InsufficientFundsError as exc:
                return ChargeResult.payment_required(DELIVERY_DISPATCH, quote.price, exc)
            del self._quotes[quote_id]

        async def dispatch() -> dict[str, Any]:
            payload = await self._delivery.create_delivery(quote.trip)
            return {"quoteId": quote.quote_id, **payload}

        result = await self._metering.settle(reservation, DELIVERY_DISPATCH, quote.price, dispatch)
        logger.info("Quote %s confirmed", quote_id)
        return result

    async def expire_stale(self) -> int:
        """Drop every expired quote; returns how many were removed."""
        now = self.now()
        async with self._lock:
            stale = [qid for qid, quote in self._quotes.items() if quote.is_expired(now)]
            for qid in stale:
                del self._quotes[qid]
        if stale:
            logger.info("Removed %d expired quotes", len(stale))
        return len(stale)

    async def pending_count(self) -> int:
        async with self._lock:
            return len(self._quotes)
