"""Canonical configuration surface for the Butler ledger service."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ButlerSettings(BaseSettings):
    """Main Butler configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUTLER_",
        env_file=".env",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api"
    api_base_url: str = "http://localhost:8000"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # Ledger
    currency: Literal["USDC", "USDK"] = "USDC"
    default_account_id: str = "agent"
    # Balance of an account the first time it is referenced. Demo
    # deployments typically set this to 10.00.
    starting_balance: Decimal = Decimal("0.00")
    journal_max_entries: int = 10_000
    # Largest single demo top-up through fund-agent.
    fund_agent_limit: Decimal = Decimal("1000.00")

    # Pricing
    tax_rate: Decimal = Decimal("0.0875")
    web_search_price: Decimal = Decimal("0.50")
    phone_call_price: Decimal = Decimal("0.10")
    menu_vision_price: Decimal = Decimal("0.25")
    order_service_fee: Decimal = Decimal("1.00")
    grocery_service_fee: Decimal = Decimal("1.00")
    delivery_base_fee: Decimal = Decimal("5.99")
    order_delivery_fee: Decimal = Decimal("4.99")
    order_platform_fee: Decimal = Decimal("1.99")

    # Delivery quotes
    quote_ttl_seconds: int = 1800
    # Background removal of expired quotes; 0 disables the sweep.
    quote_sweep_interval_seconds: float = 60.0

    # External collaborators
    provider_mode: Literal["simulated", "live"] = "simulated"
    dependency_timeout_seconds: float = 30.0

    tavily_api_key: Optional[str] = None
    tavily_base_url: str = "https://api.tavily.com"
    duckduckgo_base_url: str = "https://api.duckduckgo.com"

    vapi_secret_key: Optional[str] = None
    vapi_base_url: str = "https://api.vapi.ai"
    # When set, outbound calls ring this number instead of the business.
    call_forward_number: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_vision_model: str = "gpt-4o"

    mealme_api_key: Optional[str] = None
    mealme_base_url: str = "https://api.satsuma.ai"

    doordash_developer_id: Optional[str] = None
    doordash_key_id: Optional[str] = None
    doordash_signing_secret: Optional[str] = None
    doordash_base_url: str = "https://openapi.doordash.com/drive/v2"

    @field_validator(
        "starting_balance",
        "fund_agent_limit",
        "tax_rate",
        "web_search_price",
        "phone_call_price",
        "menu_vision_price",
        "order_service_fee",
        "grocery_service_fee",
        "delivery_base_fee",
        "order_delivery_fee",
        "order_platform_fee",
    )
    @classmethod
    def validate_non_negative(cls, v: Decimal, info) -> Decimal:
        if v < 0:
            raise ValueError(f"{info.field_name} must not be negative")
        return v

    @field_validator("default_account_id")
    @classmethod
    def normalize_default_account(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("default_account_id must not be blank")
        return v

    @field_validator("quote_ttl_seconds", "journal_max_entries")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"


@lru_cache
def load_settings(env_file: str | None = None) -> ButlerSettings:
    """Load ButlerSettings once per process to keep services consistent."""
    if env_file:
        return ButlerSettings(_env_file=Path(env_file))
    return ButlerSettings()
