"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi-sqlalchemy.html
"""

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.database.orm_db_setting import Database
from src.platform.database.unit_of_work import SqlAlchemyUnitOfWork
from src.platform.event.in_memory_broadcaster import InMemoryEventBroadcasterImpl
from src.service.inventory.app.service.conflict_resolution_strategy import build_strategy
from src.service.inventory.app.service.conflict_resolver import ConflictResolver
from src.service.inventory.app.service.expiry_schedule import ExpirySchedule
from src.service.inventory.app.service.expiry_sweeper import ExpirySweeper
from src.service.inventory.app.service.hold_manager import HoldManager
from src.service.inventory.app.service.inventory_status_facade import InventoryStatusFacade
from src.service.inventory.domain.value_object.hold_timeout_policy import HoldTimeoutPolicy
from src.service.inventory.driven_adapter.memory.in_memory_inventory_store import (
    InMemoryInventoryStore,
)
from src.service.inventory.driven_adapter.memory.in_memory_unit_of_work import (
    InMemoryUnitOfWork,
)


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Storage: one backend per process, picked by INVENTORY_STORE_BACKEND
    database = providers.Singleton(Database)
    memory_store = providers.Singleton(InMemoryInventoryStore)

    # Fresh unit of work per call; services receive `unit_of_work.provider` as their factory
    unit_of_work = providers.Selector(
        config_service.provided.INVENTORY_STORE_BACKEND,
        memory=providers.Factory(InMemoryUnitOfWork, store=memory_store),
        postgres=providers.Factory(SqlAlchemyUnitOfWork, session_factory=database.provided.session),
    )

    # Status push (SSE)
    broadcaster = providers.Singleton(InMemoryEventBroadcasterImpl)

    status_facade = providers.Singleton(
        InventoryStatusFacade,
        uow_factory=unit_of_work.provider,
        broadcaster=broadcaster,
        low_stock_threshold=config_service.provided.LOW_STOCK_THRESHOLD,
        very_low_stock_threshold=config_service.provided.VERY_LOW_STOCK_THRESHOLD,
        cache_ttl_seconds=config_service.provided.INVENTORY_STATUS_CACHE_TTL_SECONDS,
    )

    # Holds
    timeout_policy = providers.Singleton(
        HoldTimeoutPolicy.from_minutes, config_service.provided.HOLD_TIMEOUT_MINUTES
    )
    conflict_resolver = providers.Singleton(
        ConflictResolver,
        strategy=providers.Singleton(
            build_strategy, config_service.provided.CONFLICT_RESOLUTION_STRATEGY
        ),
        coalescing_window=config_service.provided.CONFLICT_COALESCING_WINDOW_SECONDS,
        max_attempts=config_service.provided.HOLD_MAX_RETRIES,
    )
    expiry_schedule = providers.Singleton(ExpirySchedule)

    hold_manager = providers.Singleton(
        HoldManager,
        uow_factory=unit_of_work.provider,
        conflict_resolver=conflict_resolver,
        timeout_policy=timeout_policy,
        expiry_scheduler=expiry_schedule,
        change_notifier=status_facade,
        max_retries=config_service.provided.HOLD_MAX_RETRIES,
        scarcity_threshold=config_service.provided.CONFLICT_SCARCITY_THRESHOLD,
    )

    # Background expiry (started by main.py lifespan)
    expiry_sweeper = providers.Singleton(
        ExpirySweeper,
        uow_factory=unit_of_work.provider,
        hold_manager=hold_manager,
        schedule=expiry_schedule,
        interval_seconds=config_service.provided.INVENTORY_SWEEP_INTERVAL_SECONDS,
        batch_size=config_service.provided.INVENTORY_SWEEP_BATCH_SIZE,
    )


container = Container()


def setup() -> None:
    container.config_service()


def cleanup() -> None:
    container.reset_singletons()
