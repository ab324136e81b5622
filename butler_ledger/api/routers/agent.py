"""Agent tool dispatch."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from butler_ledger.logging_config import set_account_context
from butler_ledger.tools import ButlerToolbox

from ..dependencies import get_toolbox

router = APIRouter(prefix="/agent", tags=["agent"])


class ToolCall(BaseModel):
    account: Optional[str] = None
    arguments: dict[str, Any] = Field(default_factory=dict)


@router.get("/tools", summary="List agent tools and their prices")
async def list_tools(toolbox: ButlerToolbox = Depends(get_toolbox)) -> dict:
    return {"currency": toolbox.currency, "tools": toolbox.describe()}


@router.post("/tools/{tool_name}", summary="Execute an agent tool")
async def execute_tool(
    tool_name: str,
    call: ToolCall,
    toolbox: ButlerToolbox = Depends(get_toolbox),
) -> dict:
    """Always 200: failures are reported in the body for the agent to read."""
    set_account_context(toolbox.ledger.normalize(call.account))
    return await toolbox.execute(tool_name, call.arguments, account_id=call.account)
