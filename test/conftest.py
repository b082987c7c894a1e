"""
Test Configuration and Fixtures

This module provides:
- Environment setup (memory backend, no background sweeper, test log dir)
- A controllable clock for expiry tests
- In-memory unit of work wiring for service-level tests
- The FastAPI test client (imported from fixture_loader.py)

Architecture:
- Unit tests (test/**/unit/): build services by hand around a fresh InMemoryInventoryStore
- API tests: go through the DI container; the memory store is cleared before each test
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# Settings are read at import time (core_setting.settings)
# =============================================================================
import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    os.environ['INVENTORY_STORE_BACKEND'] = 'memory'
    os.environ['SWEEPER_ENABLED'] = 'false'
    os.environ.setdefault('CONFLICT_COALESCING_WINDOW_SECONDS', '0.01')

    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)


_early_setup_test_environment()

from collections.abc import Callable  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402

from src.platform.database.unit_of_work import AbstractUnitOfWork  # noqa: E402
from src.platform.event.in_memory_broadcaster import InMemoryEventBroadcasterImpl  # noqa: E402
from src.service.inventory.app.command.create_ticket_inventory_use_case import (  # noqa: E402
    CreateTicketInventoryUseCase,
)
from src.service.inventory.app.service.conflict_resolver import ConflictResolver  # noqa: E402
from src.service.inventory.app.service.expiry_schedule import ExpirySchedule  # noqa: E402
from src.service.inventory.app.service.hold_manager import HoldManager  # noqa: E402
from src.service.inventory.app.service.inventory_status_facade import (  # noqa: E402
    InventoryStatusFacade,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import (  # noqa: E402
    TicketInventory,
)
from src.service.inventory.domain.value_object.hold_timeout_policy import (  # noqa: E402
    HoldTimeoutPolicy,
)
from src.service.inventory.driven_adapter.memory.in_memory_inventory_store import (  # noqa: E402
    InMemoryInventoryStore,
)
from src.service.inventory.driven_adapter.memory.in_memory_unit_of_work import (  # noqa: E402
    InMemoryUnitOfWork,
)


# =============================================================================
# Clock
# =============================================================================
class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# In-memory storage
# =============================================================================
@pytest.fixture
def store() -> InMemoryInventoryStore:
    return InMemoryInventoryStore()


@pytest.fixture
def uow_factory(store: InMemoryInventoryStore) -> Callable[[], AbstractUnitOfWork]:
    return lambda: InMemoryUnitOfWork(store=store)


# =============================================================================
# Services
# =============================================================================
@pytest.fixture
def broadcaster() -> InMemoryEventBroadcasterImpl:
    return InMemoryEventBroadcasterImpl()


@pytest.fixture
def status_facade(uow_factory, broadcaster, clock) -> InventoryStatusFacade:
    return InventoryStatusFacade(
        uow_factory=uow_factory,
        broadcaster=broadcaster,
        low_stock_threshold=10,
        very_low_stock_threshold=3,
        cache_ttl_seconds=60.0,
        clock=clock,
    )


@pytest.fixture
def conflict_resolver(clock) -> ConflictResolver:
    return ConflictResolver(coalescing_window=0.01, clock=clock)


@pytest.fixture
def expiry_schedule() -> ExpirySchedule:
    return ExpirySchedule()


@pytest.fixture
def hold_manager(
    uow_factory, conflict_resolver, expiry_schedule, status_facade, clock
) -> HoldManager:
    return HoldManager(
        uow_factory=uow_factory,
        conflict_resolver=conflict_resolver,
        timeout_policy=HoldTimeoutPolicy.from_minutes(),
        expiry_scheduler=expiry_schedule,
        change_notifier=status_facade,
        clock=clock,
    )


@pytest.fixture
def create_inventory(uow_factory, clock) -> Callable:
    """Create a ticket type through the use case so the audit log starts with +total"""

    async def _create(
        ticket_type_id: str = 'ga', total_quantity: int = 10, event_id: str = 'event-1'
    ) -> TicketInventory:
        use_case = CreateTicketInventoryUseCase(uow_factory=uow_factory, clock=clock)
        return await use_case.execute(
            ticket_type_id=ticket_type_id,
            event_id=event_id,
            total_quantity=total_quantity,
            actor_id='admin-1',
        )

    return _create


# =============================================================================
# Load API fixtures
# =============================================================================
from test.fixture_loader import *  # noqa: E402, F401, F403
