"""
Production FastAPI Application

Inventory API plus the background expiry sweeper.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown."""
    Logger.base.info('[Inventory Service] Starting up...')

    tracing = TracingConfig(service_name='inventory-service')
    tracing.setup()
    Logger.base.info('[Inventory Service] OpenTelemetry tracing configured')

    container.wire(modules=WIRE_MODULES)
    Logger.base.info('[Inventory Service] Dependency injection wired')

    backend = container.config_service().INVENTORY_STORE_BACKEND
    if backend == 'postgres':
        import src.service.inventory.driven_adapter.model  # noqa: F401  registers tables

        database = container.database()
        tracing.instrument_sqlalchemy(engine=database.engine)
        await database.create_tables()
        Logger.base.info('[Inventory Service] PostgreSQL ready + instrumented')
    Logger.base.info(f'[Inventory Service] Inventory store backend: {backend}')

    async with anyio.create_task_group() as tg:
        sweeper = container.expiry_sweeper()
        if settings.SWEEPER_ENABLED:
            tg.start_soon(sweeper.run)
            Logger.base.info('[Inventory Service] Expiry sweeper started')

        yield

        Logger.base.info('[Inventory Service] Shutting down...')
        sweeper.stop()
        tg.cancel_scope.cancel()

    if backend == 'postgres':
        await container.database().dispose()
        Logger.base.info('[Inventory Service] Database engine disposed')

    tracing.shutdown()
    container.unwire()

    Logger.base.info('[Inventory Service] Shutdown complete')


app = create_app(lifespan=lifespan)


@app.get('/')
async def root() -> RedirectResponse:
    """Root endpoint - redirect to docs."""
    return RedirectResponse(url='/docs')
