"""Shared fixtures: every test builds its own ledger, services and app."""
from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from butler_ledger.api import create_app
from butler_ledger.api.dependencies import Container
from butler_ledger.config import ButlerSettings
from butler_ledger.ledger import InMemoryLedger
from butler_ledger.metering import MeteringService
from butler_ledger.pricing import PricingPolicy
from butler_ledger.providers import simulated_providers
from butler_ledger.quotes import DeliveryQuoteService
from butler_ledger.tools import ButlerToolbox, register_paid_operations

from helpers import TRIP, FakeClock


@pytest.fixture
def trip() -> dict:
    return dict(TRIP)


@pytest.fixture
def settings() -> ButlerSettings:
    return ButlerSettings(
        _env_file=None,
        environment="dev",
        provider_mode="simulated",
        starting_balance=Decimal("0.00"),
        quote_sweep_interval_seconds=0,
    )


@pytest.fixture
def ledger(settings) -> InMemoryLedger:
    return InMemoryLedger.from_settings(settings)


@pytest.fixture
def pricing(settings) -> PricingPolicy:
    return PricingPolicy(settings)


@pytest.fixture
def providers():
    return simulated_providers()


@pytest.fixture
def metering(ledger, pricing, providers) -> MeteringService:
    service = MeteringService(ledger)
    register_paid_operations(service, pricing, providers)
    return service


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quotes(metering, pricing, providers, clock, settings) -> DeliveryQuoteService:
    return DeliveryQuoteService(
        metering,
        pricing,
        providers.delivery,
        ttl_seconds=settings.quote_ttl_seconds,
        clock=clock,
    )


@pytest.fixture
def toolbox(ledger, metering, pricing, quotes, providers, settings) -> ButlerToolbox:
    return ButlerToolbox(
        ledger, metering, pricing, quotes, providers, fund_limit=settings.fund_agent_limit
    )


@pytest.fixture
def container(settings, providers, clock) -> Container:
    return Container(settings, providers=providers, quote_clock=clock)


@pytest.fixture
def app(container):
    return create_app(container=container)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
