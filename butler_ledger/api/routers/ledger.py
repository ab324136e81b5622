"""Ledger journal routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from butler_ledger.ledger import BaseLedger

from ..dependencies import get_ledger

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/entries", summary="List recent ledger entries")
async def list_entries(
    account: Optional[str] = Query(None, description="Only entries of this account"),
    limit: int = Query(50, ge=1, le=500),
    ledger: BaseLedger = Depends(get_ledger),
) -> dict:
    entries = await ledger.list_entries(account, limit=limit)
    return {
        "accountId": ledger.normalize(account) if account is not None else None,
        "entries": [entry.to_dict() for entry in entries],
    }
