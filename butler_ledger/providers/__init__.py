"""
External collaborator clients.

Each collaborator has a live client (httpx or openai) and an in-memory twin;
``build_providers`` picks one set according to ``settings.provider_mode``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from butler_ledger.config import ButlerSettings

from .base import HttpProvider
from .calls import CallProvider, VapiCallProvider
from .delivery import DeliveryProvider, DeliveryTrip, DoorDashDeliveryProvider
from .grocery import GroceryOrder, GroceryProvider, MealMeGroceryProvider
from .search import DuckDuckGoSearchProvider, SearchProvider, TavilySearchProvider
from .simulated import (
    SimulatedCallProvider,
    SimulatedDeliveryProvider,
    SimulatedGroceryProvider,
    SimulatedMenuVisionProvider,
    SimulatedSearchProvider,
)
from .vision import MenuVisionProvider, OpenAIMenuVisionProvider


@dataclass
class Providers:
    search: SearchProvider
    calls: CallProvider
    vision: MenuVisionProvider
    grocery: GroceryProvider
    delivery: DeliveryProvider


def simulated_providers() -> Providers:
    return Providers(
        search=SimulatedSearchProvider(),
        calls=SimulatedCallProvider(),
        vision=SimulatedMenuVisionProvider(),
        grocery=SimulatedGroceryProvider(),
        delivery=SimulatedDeliveryProvider(),
    )


def build_providers(
    settings: ButlerSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> Providers:
    """Build the collaborator set for the configured provider mode.

    A shared ``client`` is used by every HTTP collaborator when given;
    otherwise each request opens its own.
    """
    if settings.provider_mode == "simulated":
        return simulated_providers()

    timeout = settings.dependency_timeout_seconds
    duckduckgo = DuckDuckGoSearchProvider(
        settings.duckduckgo_base_url, timeout=timeout, client=client
    )
    return Providers(
        search=TavilySearchProvider(
            settings.tavily_api_key,
            base_url=settings.tavily_base_url,
            fallback=duckduckgo,
            timeout=timeout,
            client=client,
        ),
        calls=VapiCallProvider(
            settings.vapi_secret_key,
            base_url=settings.vapi_base_url,
            forward_number=settings.call_forward_number,
            timeout=timeout,
            client=client,
        ),
        vision=OpenAIMenuVisionProvider(
            settings.openai_api_key,
            model=settings.openai_vision_model,
            timeout=timeout,
        ),
        grocery=MealMeGroceryProvider(
            settings.mealme_api_key,
            base_url=settings.mealme_base_url,
            timeout=timeout,
            client=client,
        ),
        delivery=DoorDashDeliveryProvider(
            settings.doordash_developer_id,
            settings.doordash_key_id,
            settings.doordash_signing_secret,
            base_url=settings.doordash_base_url,
            timeout=timeout,
            client=client,
        ),
    )


__all__ = [
    "Providers",
    "build_providers",
    "simulated_providers",
    "HttpProvider",
    "SearchProvider",
    "TavilySearchProvider",
    "DuckDuckGoSearchProvider",
    "CallProvider",
    "VapiCallProvider",
    "MenuVisionProvider",
    "OpenAIMenuVisionProvider",
    "GroceryProvider",
    "GroceryOrder",
    "MealMeGroceryProvider",
    "DeliveryProvider",
    "DeliveryTrip",
    "DoorDashDeliveryProvider",
    "SimulatedSearchProvider",
    "SimulatedCallProvider",
    "SimulatedMenuVisionProvider",
    "SimulatedGroceryProvider",
    "SimulatedDeliveryProvider",
]
