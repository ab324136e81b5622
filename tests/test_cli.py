"""CLI tests against a mocked API transport."""
import json

import click
import httpx
import pytest
from click.testing import CliRunner

from butler_ledger.cli import cli
from butler_ledger.cli.client import APIError, ButlerAPIClient
from butler_ledger.cli.main import parse_param


def make_obj(settings, handler, seen=None):
    def recording(request):
        if seen is not None:
            seen.append(request)
        return handler(request)

    client = ButlerAPIClient(
        "http://butler.test", transport=httpx.MockTransport(recording)
    )
    return {"settings": settings, "client": client}


@pytest.fixture
def runner():
    return CliRunner()


class TestParseParam:
    def test_json_values(self):
        assert parse_param("limit=3") == ("limit", 3)
        assert parse_param('items=[{"price": 4}]') == ("items", [{"price": 4}])

    def test_plain_string(self):
        assert parse_param("query=tacos near me") == ("query", "tacos near me")

    def test_missing_separator(self):
        with pytest.raises(click.BadParameter):
            parse_param("query")


class TestCommands:
    def test_balance(self, runner, settings):
        seen = []

        def handler(request):
            return httpx.Response(
                200, json={"accountId": "alice", "balance": 4.5, "available": 4.5, "currency": "USDC"}
            )

        result = runner.invoke(cli, ["balance", "--account", "alice"], obj=make_obj(settings, handler, seen))

        assert result.exit_code == 0, result.output
        assert "4.50 USDC" in result.output
        assert seen[0].url.path == "/api/balance"
        assert seen[0].url.params["account"] == "alice"

    def test_deposit(self, runner, settings):
        seen = []

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "accountId": "agent",
                    "amount": 10.0,
                    "newBalance": 10.0,
                    "currency": "USDC",
                    "message": "Deposited 10.00 USDC to agent",
                },
            )

        result = runner.invoke(cli, ["deposit", "10"], obj=make_obj(settings, handler, seen))

        assert result.exit_code == 0, result.output
        assert "Deposited 10.00 USDC" in result.output
        assert json.loads(seen[0].content)["amount"] == "10"

    def test_charge_payment_required(self, runner, settings):
        def handler(request):
            return httpx.Response(
                402,
                json={
                    "success": False,
                    "error": "402 Payment Required",
                    "message": "Insufficient funds.",
                    "required": 0.5,
                    "available": 0.0,
                    "currency": "USDC",
                },
            )

        result = runner.invoke(
            cli, ["charge", "webSearch", "--param", "query=tacos"], obj=make_obj(settings, handler)
        )

        assert result.exit_code == 1
        assert "402 Payment Required" in result.output
        assert "0.5 USDC" in result.output

    def test_charge_sends_params(self, runner, settings):
        seen = []

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "operation": "webSearch",
                    "cost": 0.5,
                    "newBalance": 1.5,
                    "currency": "USDC",
                    "result": {"query": "tacos"},
                },
            )

        result = runner.invoke(
            cli,
            ["charge", "webSearch", "--param", "query=tacos", "--account", "bob"],
            obj=make_obj(settings, handler, seen),
        )

        assert result.exit_code == 0, result.output
        assert "webSearch succeeded" in result.output
        assert seen[0].url.path == "/api/charges/webSearch"
        assert json.loads(seen[0].content) == {"account": "bob", "params": {"query": "tacos"}}

    def test_quote_and_confirm(self, runner, settings):
        seen = []

        def handler(request):
            if request.url.path.endswith("/confirm"):
                return httpx.Response(
                    200,
                    json={
                        "success": True,
                        "operation": "deliveryDispatch",
                        "cost": 5.99,
                        "newBalance": 4.01,
                        "currency": "USDC",
                        "result": {"deliveryId": "delivery-1"},
                    },
                )
            return httpx.Response(
                201,
                json={
                    "quoteId": "quote_abc",
                    "estimatedFee": 5.99,
                    "currency": "USDC",
                    "expiresInSeconds": 1800,
                },
            )

        obj = make_obj(settings, handler, seen)
        result = runner.invoke(
            cli,
            [
                "quote",
                "--pickup-address", "901 Market St",
                "--pickup-name", "Tartine",
                "--pickup-phone", "+14155550100",
                "--dropoff-address", "1 Ferry Building",
                "--dropoff-phone", "+14155550199",
                "--order-value", "20",
                "--tip", "2",
            ],
            obj=obj,
        )
        assert result.exit_code == 0, result.output
        assert "quote_abc" in result.output
        trip = json.loads(seen[0].content)["trip"]
        assert trip["pickupBusinessName"] == "Tartine"
        assert trip["tipAmount"] == "2"

        result = runner.invoke(cli, ["confirm", "quote_abc"], obj=obj)
        assert result.exit_code == 0, result.output
        assert seen[1].url.path == "/api/delivery/quotes/quote_abc/confirm"

    def test_quote_expired(self, runner, settings):
        def handler(request):
            return httpx.Response(410, json={"success": False, "error": "Quote expired", "message": "The delivery quote has expired."})

        result = runner.invoke(cli, ["confirm", "quote_old"], obj=make_obj(settings, handler))

        assert result.exit_code == 1
        assert "expired" in result.output

    def test_entries(self, runner, settings):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "accountId": None,
                    "entries": [
                        {
                            "entryId": "ent_1",
                            "accountId": "agent",
                            "kind": "credit",
                            "amount": "10.00",
                            "balanceAfter": "10.00",
                            "memo": "deposit",
                            "createdAt": "2026-01-01T12:00:00+00:00",
                        }
                    ],
                },
            )

        result = runner.invoke(cli, ["entries"], obj=make_obj(settings, handler))

        assert result.exit_code == 0, result.output
        assert "Ledger entries" in result.output

    def test_prices_run_locally(self, runner, settings):
        def handler(request):
            raise AssertionError("prices must not call the API")

        result = runner.invoke(cli, ["prices"], obj=make_obj(settings, handler))

        assert result.exit_code == 0, result.output
        assert "webSearch" in result.output
        assert "5.99" in result.output


class TestClient:
    def test_unreachable_server(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = ButlerAPIClient("http://butler.test", transport=httpx.MockTransport(handler))
        with pytest.raises(APIError) as exc_info:
            client.balance()
        assert exc_info.value.status_code == 0

    def test_error_payload(self):
        def handler(request):
            return httpx.Response(404, json={"success": False, "error": "UNKNOWN_OPERATION", "message": "Unknown operation 'x'"})

        client = ButlerAPIClient("http://butler.test", transport=httpx.MockTransport(handler))
        with pytest.raises(APIError) as exc_info:
            client.charge("x", {})
        assert exc_info.value.message == "Unknown operation 'x'"
        assert not exc_info.value.is_payment_required
