"""Dependency injection for FastAPI routes."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from butler_ledger.config import ButlerSettings
from butler_ledger.ledger import BaseLedger, InMemoryLedger
from butler_ledger.logging_config import mask_value
from butler_ledger.metering import MeteringService
from butler_ledger.pricing import PricingPolicy
from butler_ledger.providers import Providers, build_providers
from butler_ledger.quotes import DeliveryQuoteService
from butler_ledger.tools import ButlerToolbox, register_paid_operations

logger = logging.getLogger("butler.api")


class Container:
    """
    Owns the ledger and the services built on it.

    One container per application; tests build their own so no balance
    state leaks between them.
    """

    def __init__(
        self,
        settings: ButlerSettings,
        ledger: Optional[BaseLedger] = None,
        providers: Optional[Providers] = None,
        quote_clock=None,
    ):
        self._settings = settings
        self._ledger: BaseLedger = ledger or InMemoryLedger.from_settings(settings)
        self._providers = providers or build_providers(settings)
        self._pricing = PricingPolicy(settings)
        self._metering = MeteringService(self._ledger)
        register_paid_operations(self._metering, self._pricing, self._providers)
        self._quotes = DeliveryQuoteService(
            self._metering,
            self._pricing,
            self._providers.delivery,
            ttl_seconds=settings.quote_ttl_seconds,
            clock=quote_clock,
        )
        self._toolbox = ButlerToolbox(
            self._ledger,
            self._metering,
            self._pricing,
            self._quotes,
            self._providers,
            fund_limit=settings.fund_agent_limit,
        )

    @property
    def settings(self) -> ButlerSettings:
        return self._settings

    @property
    def ledger(self) -> BaseLedger:
        return self._ledger

    @property
    def providers(self) -> Providers:
        return self._providers

    @property
    def pricing(self) -> PricingPolicy:
        return self._pricing

    @property
    def metering(self) -> MeteringService:
        return self._metering

    @property
    def quotes(self) -> DeliveryQuoteService:
        return self._quotes

    @property
    def toolbox(self) -> ButlerToolbox:
        return self._toolbox


def build_container(settings: ButlerSettings) -> Container:
    """Build the service graph for ``settings``."""
    if settings.provider_mode == "live":
        logger.info(
            "Live providers: tavily=%s vapi=%s openai=%s mealme=%s doordash=%s",
            mask_value(settings.tavily_api_key),
            mask_value(settings.vapi_secret_key),
            mask_value(settings.openai_api_key),
            mask_value(settings.mealme_api_key),
            mask_value(settings.doordash_key_id),
        )
    else:
        logger.info("Using simulated providers")
    return Container(settings)


def get_container(request: Request) -> Container:
    """Dependency for the application's container."""
    return request.app.state.container


def get_settings(request: Request) -> ButlerSettings:
    return get_container(request).settings


def get_ledger(request: Request) -> BaseLedger:
    """Dependency for ledger."""
    return get_container(request).ledger


def get_toolbox(request: Request) -> ButlerToolbox:
    """Dependency for the agent toolbox."""
    return get_container(request).toolbox


def get_quotes(request: Request) -> DeliveryQuoteService:
    """Dependency for the delivery quote service."""
    return get_container(request).quotes


def get_pricing(request: Request) -> PricingPolicy:
    return get_container(request).pricing
