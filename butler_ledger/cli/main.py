"""
Butler ledger CLI.

Usage:
    butler-ledger [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table

from butler_ledger import __version__
from butler_ledger.config import load_settings
from butler_ledger.pricing import PricingPolicy

from .client import APIError, ButlerAPIClient

console = Console()


def parse_param(raw: str) -> tuple[str, Any]:
    """Parse ``key=value``; values are JSON when they parse as JSON."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise click.BadParameter(f"expected key=value, got {raw!r}", param_hint="--param")
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def get_client(ctx: click.Context) -> ButlerAPIClient:
    client = ctx.obj.get("client")
    if client is None:
        client = ButlerAPIClient(ctx.obj["api_url"], api_prefix=ctx.obj["api_prefix"])
        ctx.obj["client"] = client
        ctx.call_on_close(client.close)
    return client


def print_error(error: APIError) -> None:
    if error.is_payment_required:
        currency = error.payload.get("currency", "")
        console.print("[red]402 Payment Required[/red]")
        console.print(f"  Required:  {error.payload.get('required')} {currency}")
        console.print(f"  Available: {error.payload.get('available')} {currency}")
        console.print("  Deposit more funds and try again.")
    else:
        console.print(f"[red]Error: {error.message}[/red]")


def print_charge(result: Dict[str, Any]) -> None:
    console.print(f"\n[green]✓ {result.get('operation')} succeeded[/green]")
    console.print(f"  Cost: {result.get('cost')} {result.get('currency')}")
    console.print(f"  New balance: {result.get('newBalance')} {result.get('currency')}")
    console.print_json(data=result.get("result") or {})


@click.group()
@click.version_option(__version__, message="%(prog)s %(version)s")
@click.option("--api-url", envvar="BUTLER_API_BASE_URL", help="API base URL")
@click.pass_context
def cli(ctx: click.Context, api_url: Optional[str]):
    """Butler ledger - balances and metered charges for a concierge agent."""
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = load_settings()
    settings = ctx.obj["settings"]
    ctx.obj.setdefault("api_url", api_url or settings.api_base_url)
    ctx.obj.setdefault("api_prefix", settings.api_prefix)


@cli.command()
@click.option("--host", help="Bind address (default from settings)")
@click.option("--port", type=int, help="Port (default from settings)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    import uvicorn

    from butler_ledger.api import create_app
    from butler_ledger.logging_config import setup_logging

    settings = ctx.obj["settings"]
    setup_logging(settings.log_level, json_format=settings.json_logs)
    uvicorn.run(
        create_app(settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
    )


@cli.command()
@click.pass_context
def prices(ctx: click.Context):
    """Show the price of every paid operation."""
    settings = ctx.obj["settings"]
    table = Table(title=f"Operation prices ({settings.currency})")
    table.add_column("Operation", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Pricing")
    for row in PricingPolicy(settings).price_table():
        table.add_row(row["operation"], f"{row['price']:.2f}", row["pricing"])
    console.print(table)


@cli.command()
@click.option("--account", help="Account id (default: the agent wallet)")
@click.pass_context
def balance(ctx: click.Context, account: Optional[str]):
    """Show an account balance."""
    try:
        data = get_client(ctx).balance(account)
    except APIError as e:
        print_error(e)
        ctx.exit(1)
    console.print(f"Account:   [cyan]{data['accountId']}[/cyan]")
    console.print(f"Balance:   {data['balance']:.2f} {data['currency']}")
    console.print(f"Available: {data['available']:.2f} {data['currency']}")


@cli.command()
@click.argument("amount")
@click.option("--account", help="Account id (default: the agent wallet)")
@click.option("--note", help="Memo recorded with the deposit")
@click.pass_context
def deposit(ctx: click.Context, amount: str, account: Optional[str], note: Optional[str]):
    """Deposit AMOUNT into an account."""
    try:
        data = get_client(ctx).deposit(amount, account=account, note=note)
    except APIError as e:
        print_error(e)
        ctx.exit(1)
    console.print(f"[green]✓ {data['message']}[/green]")
    console.print(f"  New balance: {data['newBalance']:.2f} {data['currency']}")


@cli.command()
@click.argument("operation")
@click.option("--param", "params", multiple=True, help="Operation parameter as key=value (repeatable)")
@click.option("--account", help="Account id (default: the agent wallet)")
@click.pass_context
def charge(ctx: click.Context, operation: str, params: tuple[str, ...], account: Optional[str]):
    """Run and pay for OPERATION (e.g. webSearch --param query=tacos)."""
    parsed = dict(parse_param(p) for p in params)
    try:
        result = get_client(ctx).charge(operation, parsed, account=account)
    except APIError as e:
        print_error(e)
        ctx.exit(1)
    print_charge(result)


@cli.command()
@click.option("--pickup-address", required=True)
@click.option("--pickup-name", "pickup_business_name", required=True, help="Pickup business name")
@click.option("--pickup-phone", required=True)
@click.option("--dropoff-address", required=True)
@click.option("--dropoff-phone", required=True)
@click.option("--order-value", required=True, help="Order value in dollars")
@click.option("--tip", help="Dasher tip in dollars")
@click.option("--account", help="Account id (default: the agent wallet)")
@click.pass_context
def quote(
    ctx: click.Context,
    pickup_address: str,
    pickup_business_name: str,
    pickup_phone: str,
    dropoff_address: str,
    dropoff_phone: str,
    order_value: str,
    tip: Optional[str],
    account: Optional[str],
):
    """Request a delivery quote."""
    trip: Dict[str, Any] = {
        "pickupAddress": pickup_address,
        "pickupBusinessName": pickup_business_name,
        "pickupPhoneNumber": pickup_phone,
        "dropoffAddress": dropoff_address,
        "dropoffPhoneNumber": dropoff_phone,
        "orderValue": order_value,
    }
    if tip is not None:
        trip["tipAmount"] = tip
    try:
        data = get_client(ctx).request_quote(trip, account=account)
    except APIError as e:
        print_error(e)
        ctx.exit(1)
    console.print(f"\n[green]✓ Quote {data['quoteId']}[/green]")
    console.print(f"  Estimated fee: {data['estimatedFee']:.2f} {data['currency']}")
    console.print(f"  Expires in: {data['expiresInSeconds']}s")
    console.print(f"  Confirm with: butler-ledger confirm {data['quoteId']}")


@cli.command()
@click.argument("quote_id")
@click.pass_context
def confirm(ctx: click.Context, quote_id: str):
    """Confirm QUOTE_ID and dispatch the delivery."""
    try:
        result = get_client(ctx).confirm_quote(quote_id)
    except APIError as e:
        print_error(e)
        ctx.exit(1)
    print_charge(result)


@cli.command()
@click.option("--account", help="Only entries of this account")
@click.option("--limit", default=20, type=int, help="Number of entries (default: 20)")
@click.pass_context
def entries(ctx: click.Context, account: Optional[str], limit: int):
    """List recent ledger entries."""
    try:
        data = get_client(ctx).entries(account, limit=limit)
    except APIError as e:
        print_error(e)
        ctx.exit(1)
    table = Table(title="Ledger entries")
    table.add_column("When")
    table.add_column("Account", style="cyan")
    table.add_column("Kind")
    table.add_column("Amount", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Memo")
    for entry in data["entries"]:
        table.add_row(
            entry["createdAt"],
            entry["accountId"],
            entry["kind"],
            entry["amount"],
            entry["balanceAfter"],
            entry.get("memo") or "",
        )
    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
