"""FastAPI application entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from butler_ledger import __version__
from butler_ledger.config import ButlerSettings, load_settings
from butler_ledger.logging_config import setup_logging
from butler_ledger.quotes import DeliveryQuoteService

from .dependencies import Container, build_container
from .middleware import RequestContextMiddleware, register_exception_handlers
from .routers import agent, balance, charges, delivery, ledger

logger = logging.getLogger("butler.api")


async def sweep_expired_quotes(quotes: DeliveryQuoteService, interval: float) -> None:
    """Periodically drop quotes nobody confirmed in time."""
    while True:
        await asyncio.sleep(interval)
        try:
            await quotes.expire_stale()
        except Exception:
            logger.exception("Quote expiry sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    container: Container = app.state.container
    settings = container.settings
    sweeper: Optional[asyncio.Task] = None
    if settings.quote_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            sweep_expired_quotes(container.quotes, settings.quote_sweep_interval_seconds)
        )
    logger.info(
        "Butler ledger started (%s, %s, providers=%s)",
        settings.environment, settings.currency, settings.provider_mode,
    )
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
        logger.info("Butler ledger stopped")


def create_app(
    settings: Optional[ButlerSettings] = None,
    container: Optional[Container] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Each app owns its container (ledger, pricing, quotes, providers); pass
    one in to share or pre-seed state.
    """
    if container is None:
        settings = settings or load_settings()
        container = build_container(settings)
    settings = container.settings

    app = FastAPI(
        title="Butler Ledger API",
        description=(
            "Metered-spend balance ledger for a concierge agent. Paid tools "
            "check funds first, run the external action, and debit only after "
            "it succeeded; unfunded calls answer 402 Payment Required."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    for module in (balance, charges, delivery, ledger, agent):
        app.include_router(module.router, prefix=settings.api_prefix)

    @app.get("/health", tags=["health"])
    async def health_check():
        """Liveness check."""
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.environment,
            "currency": settings.currency,
            "providers": settings.provider_mode,
        }

    return app


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = load_settings()
    setup_logging(settings.log_level, json_format=settings.json_logs)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
