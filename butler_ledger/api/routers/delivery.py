"""Delivery quote and confirmation routes."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from butler_ledger.quotes import DeliveryQuoteService

from ..dependencies import get_quotes
from .charges import charge_response

router = APIRouter(prefix="/delivery", tags=["delivery"])


class QuoteRequest(BaseModel):
    """Trip details use the agent's camelCase names (pickupAddress, orderValue, tipAmount, ...)."""
    account: Optional[str] = None
    trip: dict[str, Any] = Field(default_factory=dict)


@router.post("/quotes", status_code=status.HTTP_201_CREATED, summary="Request a delivery quote")
async def request_quote(
    request: QuoteRequest,
    quotes: DeliveryQuoteService = Depends(get_quotes),
) -> dict:
    quote = await quotes.request_quote(request.trip, account_id=request.account)
    return quote.to_dict(quotes.now(), quotes.currency)


@router.get("/quotes/{quote_id}", summary="Look up a pending quote")
async def get_quote(
    quote_id: str,
    quotes: DeliveryQuoteService = Depends(get_quotes),
) -> dict:
    quote = await quotes.get_quote(quote_id)
    return quote.to_dict(quotes.now(), quotes.currency)


@router.post(
    "/quotes/{quote_id}/confirm",
    summary="Confirm a quote and dispatch the delivery",
    responses={
        402: {"description": "Insufficient funds; the quote stays pending"},
        404: {"description": "Unknown or already used quote"},
        410: {"description": "Quote expired"},
        503: {"description": "Dispatch failed; nothing was charged"},
    },
)
async def confirm_quote(
    quote_id: str,
    quotes: DeliveryQuoteService = Depends(get_quotes),
) -> JSONResponse:
    result = await quotes.confirm_quote(quote_id)
    return charge_response(result.to_dict(), result.is_payment_required)
