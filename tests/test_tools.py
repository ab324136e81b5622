"""Tests for the agent toolbox."""
from decimal import Decimal

import pytest

from butler_ledger.exceptions import OperationNotPermittedError, UnknownOperationError
from butler_ledger.metering import MeteringService
from butler_ledger.pricing import DELIVERY_DISPATCH
from butler_ledger.tools import TOOL_ALIASES, ButlerToolbox, register_paid_operations

from helpers import FailingSearchProvider


class TestLedgerTools:
    async def test_check_balance(self, toolbox, ledger):
        await ledger.credit("agent", "4.5")
        result = await toolbox.execute("checkBalance")

        assert result["accountId"] == "agent"
        assert result["balance"] == 4.5
        assert result["message"] == "Current balance: 4.50 USDC"

    async def test_fund_agent(self, toolbox, ledger):
        result = await toolbox.execute("fundAgent", {"amount": 25}, account_id="Bob")

        assert result["success"] is True
        assert result["newBalance"] == 25.0
        assert await ledger.get_balance("bob") == Decimal("25.00")

    @pytest.mark.parametrize("amount", [0, -1, 1000.01, "lots", None])
    async def test_fund_agent_rejects_bad_amounts(self, toolbox, ledger, amount):
        result = await toolbox.execute("fundAgent", {"amount": amount})

        assert result["success"] is False
        assert result["error"] == "INVALID_AMOUNT"
        assert await ledger.get_balance("agent") == Decimal("0.00")

    async def test_fund_limit_is_inclusive(self, toolbox):
        result = await toolbox.fund("agent", 1000)
        assert result["funded"] == 1000.0


class TestPaidTools:
    async def test_unfunded_tool_call(self, toolbox, providers):
        result = await toolbox.execute("webSearch", {"query": "coffee"})

        assert result["error"] == "402 Payment Required"
        assert result["required"] == 0.5
        assert result["available"] == 0.0
        assert providers.search.queries == []

    async def test_funded_tool_call(self, toolbox, ledger):
        await ledger.credit("agent", 1)
        result = await toolbox.execute("webSearch", {"query": "coffee"})

        assert result["success"] is True
        assert result["newBalance"] == 0.5

    async def test_alias_resolves_to_paid_operation(self, toolbox, ledger, providers):
        await ledger.credit("agent", 1)
        result = await toolbox.execute(
            "callBusiness", {"phoneNumber": "+14155550100", "purpose": "hours"}
        )

        assert result["operation"] == "phoneCall"
        assert result["cost"] == 0.1
        assert providers.calls.calls[0]["phone_number"] == "+14155550100"

    async def test_missing_argument(self, toolbox, ledger):
        await ledger.credit("agent", 1)
        result = await toolbox.execute("webSearch", {})

        assert result["success"] is False
        assert result["error"] == "VALIDATION_ERROR"
        assert await ledger.get_balance("agent") == Decimal("1.00")

    async def test_dependency_failure_is_reported(self, ledger, pricing, quotes, providers):
        providers.search = FailingSearchProvider()
        failing = MeteringService(ledger)
        register_paid_operations(failing, pricing, providers)
        toolbox = ButlerToolbox(ledger, failing, pricing, quotes, providers)
        await ledger.credit("agent", 1)

        result = await toolbox.execute("webSearch", {"query": "coffee"})

        assert result["error"] == "DEPENDENCY_UNAVAILABLE"
        assert await ledger.get_balance("agent") == Decimal("1.00")

    async def test_unknown_tool(self, toolbox):
        result = await toolbox.execute("teleport")
        assert result["error"] == "UNKNOWN_OPERATION"

    async def test_delivery_dispatch_needs_confirmation(self, toolbox, ledger):
        await ledger.credit("agent", 10)

        with pytest.raises(OperationNotPermittedError):
            await toolbox.charge("agent", DELIVERY_DISPATCH, {})

        result = await toolbox.execute(DELIVERY_DISPATCH, {})
        assert result["error"] == "NOT_PERMITTED"
        assert await ledger.get_balance("agent") == Decimal("10.00")

    async def test_direct_charge_unknown(self, toolbox):
        with pytest.raises(UnknownOperationError):
            await toolbox.charge("agent", "teleport")


class TestDeliveryTools:
    async def test_quote_then_confirm(self, toolbox, ledger, trip):
        await ledger.credit("agent", 10)

        quote = await toolbox.execute("requestDeliveryQuote", trip)
        assert quote["requiresConfirmation"] is True
        assert await ledger.get_balance("agent") == Decimal("10.00")

        confirmed = await toolbox.execute("confirmDelivery", {"quoteId": quote["quoteId"]})
        assert confirmed["success"] is True
        assert confirmed["cost"] == 5.99
        assert confirmed["newBalance"] == 4.01

        status = await toolbox.execute(
            "getDeliveryStatus", {"deliveryId": confirmed["result"]["deliveryId"]}
        )
        assert status["success"] is True
        assert status["status"] == "created"

        again = await toolbox.execute("confirmDelivery", {"quoteId": quote["quoteId"]})
        assert again["error"] == "Quote not found"

    async def test_expired_quote(self, toolbox, clock, trip):
        quote = await toolbox.execute("requestDeliveryQuote", trip)
        clock.advance(1801)

        result = await toolbox.execute("confirmDelivery", {"quoteId": quote["quoteId"]})
        assert result["error"] == "Quote expired"

    async def test_confirm_requires_quote_id(self, toolbox):
        result = await toolbox.execute("confirmDelivery", {})
        assert result["error"] == "VALIDATION_ERROR"


class TestDescribe:
    def test_catalogue(self, toolbox):
        tools = {tool["name"]: tool for tool in toolbox.describe()}

        assert tools["webSearch"]["price"] == 0.5
        assert tools["webSearch"]["paid"] is True
        assert tools["checkBalance"]["paid"] is False
        assert tools["confirmDelivery"]["price"] == 5.99
        assert tools["phoneCall"]["aliases"] == ["callBusiness"]
        assert DELIVERY_DISPATCH not in tools

    def test_aliases_point_at_registered_tools(self, toolbox):
        names = set(toolbox.tool_names())
        assert set(TOOL_ALIASES.values()) <= names
