"""Balance, deposit and spend routes."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from butler_ledger.config import ButlerSettings
from butler_ledger.exceptions import OperationNotPermittedError
from butler_ledger.ledger import BaseLedger
from butler_ledger.money import format_amount, to_display, to_positive_amount
from butler_ledger.tools import ButlerToolbox

from ..dependencies import get_ledger, get_settings, get_toolbox

router = APIRouter(tags=["balance"])


# ========== Schemas ==========

class BalanceResponse(BaseModel):
    accountId: str
    balance: float
    available: float
    currency: str


class DepositRequest(BaseModel):
    """Credit an account; amounts are validated by the ledger."""
    amount: Optional[Decimal] = None
    account: Optional[str] = None
    userWallet: Optional[str] = Field(None, description="Wallet the deposit came from")
    note: Optional[str] = Field(None, max_length=500)


class DepositResponse(BaseModel):
    success: bool = True
    accountId: str
    amount: float
    newBalance: float
    currency: str
    message: str


class FundAgentRequest(BaseModel):
    amount: Optional[Decimal] = None
    account: Optional[str] = None


class SpendRequest(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = Field(None, max_length=500)
    account: Optional[str] = None


class SpendResponse(BaseModel):
    success: bool = True
    accountId: str
    spent: float
    newBalance: float
    description: Optional[str] = None
    currency: str
    message: str


class SetBalanceRequest(BaseModel):
    amount: Optional[Decimal] = None
    account: Optional[str] = None


# ========== Routes ==========

@router.get("/balance", response_model=BalanceResponse, summary="Get an account balance")
async def get_balance(
    account: Optional[str] = Query(None, description="Account id; defaults to the agent wallet"),
    toolbox: ButlerToolbox = Depends(get_toolbox),
) -> BalanceResponse:
    return BalanceResponse(**await toolbox.balance(account))


@router.post("/deposit", response_model=DepositResponse, summary="Deposit funds")
async def deposit(
    request: DepositRequest,
    ledger: BaseLedger = Depends(get_ledger),
) -> DepositResponse:
    account_id = ledger.normalize(request.account)
    memo = request.note or (f"deposit from {request.userWallet}" if request.userWallet else "deposit")
    amount = to_positive_amount(request.amount)
    new_balance = await ledger.credit(account_id, amount, memo=memo)
    return DepositResponse(
        accountId=account_id,
        amount=to_display(amount),
        newBalance=to_display(new_balance),
        currency=ledger.currency,
        message=f"Deposited {format_amount(amount, ledger.currency)} to {account_id}",
    )


@router.post("/fund-agent", summary="Add demo funds to the agent wallet")
async def fund_agent(
    request: FundAgentRequest,
    toolbox: ButlerToolbox = Depends(get_toolbox),
) -> dict:
    return await toolbox.fund(request.account, request.amount)


@router.post(
    "/spend",
    response_model=SpendResponse,
    summary="Debit an account directly",
    responses={402: {"description": "Insufficient funds"}},
)
async def spend(
    request: SpendRequest,
    ledger: BaseLedger = Depends(get_ledger),
) -> SpendResponse:
    account_id = ledger.normalize(request.account)
    amount = to_positive_amount(request.amount)
    new_balance = await ledger.debit(account_id, amount, memo=request.description)
    return SpendResponse(
        accountId=account_id,
        spent=to_display(amount),
        newBalance=to_display(new_balance),
        description=request.description,
        currency=ledger.currency,
        message=(
            f"Spent {format_amount(amount, ledger.currency)}. "
            f"New balance: {format_amount(new_balance, ledger.currency)}"
        ),
    )


@router.put("/admin/balance", response_model=BalanceResponse, summary="Overwrite a balance")
async def set_balance(
    request: SetBalanceRequest,
    ledger: BaseLedger = Depends(get_ledger),
    settings: ButlerSettings = Depends(get_settings),
) -> BalanceResponse:
    if settings.is_production:
        raise OperationNotPermittedError("Setting balances is disabled in production")
    account_id = ledger.normalize(request.account)
    balance = await ledger.set_balance(account_id, request.amount)
    return BalanceResponse(
        accountId=account_id,
        balance=to_display(balance),
        available=to_display(await ledger.get_available(account_id)),
        currency=ledger.currency,
    )

