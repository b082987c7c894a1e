"""
FastAPI app factory shared by the service entrypoint and the test app

Routers:
- /api/inventory          holds, status, SSE stream
- /api/inventory/admin    ticket types, capacity, refunds, bulk, audit, sweep
- /health, /health/ready, /metrics
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.exception.exception_handlers import register_exception_handlers
from src.platform.exception.exceptions import TransientError
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig
from src.service.inventory.driving_adapter.http_controller.admin_controller import (
    router as admin_router,
)
from src.service.inventory.driving_adapter.http_controller.inventory_controller import (
    router as inventory_router,
)


def create_app(
    *,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[Any]],
    title_suffix: str = '',
    description: str = 'Ticket Inventory & Hold Engine',
    service_name: str = 'inventory-service',
) -> FastAPI:
    """
    Args:
        lifespan: startup/shutdown context (DI wiring, sweeper, database)
        title_suffix: e.g. ' (Test)'
        service_name: resource name on exported spans
    """
    app = FastAPI(
        title=f'{settings.PROJECT_NAME}{title_suffix}',
        description=description,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # Must run before routes are mounted
    TracingConfig(service_name=service_name).instrument_fastapi(app=app)

    app.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    app.include_router(inventory_router, prefix='/api/inventory', tags=['inventory'])
    app.include_router(admin_router, prefix='/api/inventory/admin', tags=['inventory-admin'])

    _register_common_endpoints(app)
    return app


def _register_common_endpoints(app: FastAPI) -> None:
    @app.get('/health')
    async def health_check() -> dict[str, str]:
        """Liveness: the process is up"""
        return {
            'status': 'healthy',
            'service': 'Ticket Inventory Service',
            'store_backend': settings.INVENTORY_STORE_BACKEND,
        }

    @app.get('/health/ready')
    async def readiness_check() -> dict[str, Any]:
        """Readiness: the inventory store answers a read"""
        try:
            async with container.unit_of_work() as uow:
                active_holds = await uow.hold_repo.count_active()
        except Exception as e:
            Logger.base.warning(f'[HEALTH] Inventory store not ready: {e}')
            raise TransientError('Inventory store unavailable') from e
        return {'status': 'ready', 'active_holds': active_holds}

    @app.get('/metrics')
    async def get_metrics() -> PlainTextResponse:
        return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
