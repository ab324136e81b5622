"""Priced operations and metered charges."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from butler_ledger.pricing import PricingPolicy
from butler_ledger.tools import ButlerToolbox

from ..dependencies import get_pricing, get_toolbox

router = APIRouter(tags=["charges"])


class ChargeRequest(BaseModel):
    """Run one paid operation on behalf of an account."""
    account: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)


def charge_response(payload: dict[str, Any], payment_required: bool) -> JSONResponse:
    return JSONResponse(status_code=402 if payment_required else 200, content=payload)


@router.get("/operations", summary="List priced operations")
async def list_operations(
    pricing: PricingPolicy = Depends(get_pricing),
    toolbox: ButlerToolbox = Depends(get_toolbox),
) -> dict:
    return {"currency": toolbox.currency, "operations": pricing.price_table()}


@router.post(
    "/charges/{operation}",
    summary="Charge a paid operation",
    responses={
        402: {"description": "Insufficient funds; nothing was run or charged"},
        404: {"description": "Unknown operation"},
        503: {"description": "External API failed; nothing was charged"},
    },
)
async def charge(
    operation: str,
    request: ChargeRequest,
    toolbox: ButlerToolbox = Depends(get_toolbox),
) -> JSONResponse:
    result = await toolbox.charge(request.account, operation, request.params)
    return charge_response(result.to_dict(), result.is_payment_required)
