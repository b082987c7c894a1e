"""
Inventory Status Facade - read-optimized availability views

Architecture:
- Read-through cache per ticket type, TTL bounded
- Refreshed from the committed post-state on every ledger mutation
  (on_inventory_changed), which also pushes an update to subscribers
- Advisory only: hold decisions always re-read the ledger
"""

import time
from typing import Dict, Optional, TypedDict

from anyio.streams.memory import MemoryObjectReceiveStream
from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.event.i_in_memory_broadcaster import IInMemoryEventBroadcaster
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.platform.types.clock import Clock, utc_now
from src.service.inventory.app.dto.status_dto import (
    EventInventorySummary,
    InventoryStatusSummary,
    InventoryStatusView,
    InventoryUpdateEvent,
)
from src.service.inventory.app.interface.i_inventory_change_notifier import (
    IInventoryChangeNotifier,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import InventoryStatus, InventoryUpdateType


class CacheEntry(TypedDict):
    view: InventoryStatusView
    timestamp: float


class InventoryStatusFacade(IInventoryChangeNotifier):
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        broadcaster: Optional[IInMemoryEventBroadcaster] = None,
        low_stock_threshold: int = 10,
        very_low_stock_threshold: int = 3,
        cache_ttl_seconds: float = 5.0,
        clock: Clock = utc_now,
    ) -> None:
        self.uow_factory = uow_factory
        self.broadcaster = broadcaster
        self.low_stock_threshold = low_stock_threshold
        self.very_low_stock_threshold = very_low_stock_threshold
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)
        self._cache: Dict[str, CacheEntry] = {}
        self._ttl_seconds = cache_ttl_seconds

    def _is_expired(self, *, entry: CacheEntry) -> bool:
        return time.monotonic() - entry['timestamp'] > self._ttl_seconds

    def _cached(self, ticket_type_id: str) -> Optional[InventoryStatusView]:
        entry = self._cache.get(ticket_type_id)
        if entry is None or self._is_expired(entry=entry):
            return None
        return entry['view']

    def _store(self, view: InventoryStatusView) -> InventoryStatusView:
        self._cache[view.ticket_type_id] = {'view': view, 'timestamp': time.monotonic()}
        return view

    def invalidate(self, ticket_type_id: Optional[str] = None) -> None:
        if ticket_type_id is None:
            self._cache.clear()
        else:
            self._cache.pop(ticket_type_id, None)

    def to_view(self, inventory: TicketInventory) -> InventoryStatusView:
        available = inventory.available_quantity
        is_sold_out = available <= 0
        is_very_low = not is_sold_out and available <= self.very_low_stock_threshold
        is_low = not is_sold_out and available <= self.low_stock_threshold

        if is_sold_out:
            status = InventoryStatus.SOLD_OUT
        elif is_very_low:
            status = InventoryStatus.VERY_LOW_STOCK
        elif is_low:
            status = InventoryStatus.LOW_STOCK
        else:
            status = InventoryStatus.AVAILABLE

        return InventoryStatusView(
            ticket_type_id=inventory.ticket_type_id,
            event_id=inventory.event_id,
            total_quantity=inventory.total_quantity,
            sold_quantity=inventory.sold_quantity,
            held_quantity=inventory.held_quantity,
            available_quantity=available,
            status=status,
            is_sold_out=is_sold_out,
            is_low_stock=is_low,
            is_very_low_stock=is_very_low,
            version=inventory.version,
            updated_at=inventory.updated_at,
        )

    async def get_status(self, ticket_type_id: str) -> InventoryStatusView:
        with self.tracer.start_as_current_span(
            'status_facade.get_status', attributes={'ticket_type.id': ticket_type_id}
        ) as span:
            cached = self._cached(ticket_type_id)
            span.set_attribute('cache_hit', cached is not None)
            if cached is not None:
                return cached

            async with self.uow_factory() as uow:
                inventory = await uow.inventory_repo.get(ticket_type_id=ticket_type_id)
            if inventory is None:
                raise NotFoundError(f'Ticket type {ticket_type_id} not found')
            return self._store(self.to_view(inventory))

    async def get_bulk_status(self, ticket_type_ids: list[str]) -> list[InventoryStatusView]:
        """Views in request order; unknown ids are skipped"""
        found: Dict[str, InventoryStatusView] = {}
        missing: list[str] = []
        for ticket_type_id in ticket_type_ids:
            cached = self._cached(ticket_type_id)
            if cached is not None:
                found[ticket_type_id] = cached
            else:
                missing.append(ticket_type_id)

        if missing:
            async with self.uow_factory() as uow:
                for ticket_type_id in missing:
                    inventory = await uow.inventory_repo.get(ticket_type_id=ticket_type_id)
                    if inventory is not None:
                        found[ticket_type_id] = self._store(self.to_view(inventory))

        return [found[tid] for tid in ticket_type_ids if tid in found]

    async def get_event_summary(self, event_id: str) -> EventInventorySummary:
        async with self.uow_factory() as uow:
            inventories = await uow.inventory_repo.list_by_event(event_id=event_id)
        if not inventories:
            raise NotFoundError(f'No inventory for event {event_id}')

        views = [self._store(self.to_view(inventory)) for inventory in inventories]
        return EventInventorySummary(
            event_id=event_id,
            ticket_types=views,
            total_capacity=sum(v.total_quantity for v in views),
            total_sold=sum(v.sold_quantity for v in views),
            total_held=sum(v.held_quantity for v in views),
            total_available=sum(v.available_quantity for v in views),
        )

    async def get_summary(self) -> InventoryStatusSummary:
        async with self.uow_factory() as uow:
            inventories = await uow.inventory_repo.list_all()
            active_holds = await uow.hold_repo.count_active()

        summary = InventoryStatusSummary(
            total_events=len({inventory.event_id for inventory in inventories}),
            total_ticket_types=len(inventories),
            active_holds=active_holds,
        )
        for inventory in inventories:
            view = self._store(self.to_view(inventory))
            summary.total_capacity += view.total_quantity
            summary.total_sold += view.sold_quantity
            summary.total_held += view.held_quantity
            summary.total_available += view.available_quantity
            if view.is_sold_out:
                summary.sold_out_types.append(view.ticket_type_id)
            elif view.is_low_stock:
                summary.low_stock_alerts.append(view.ticket_type_id)
        return summary

    async def on_inventory_changed(
        self, *, inventory: TicketInventory, update_type: InventoryUpdateType
    ) -> None:
        current = self._cache.get(inventory.ticket_type_id)
        # Concurrent notifications can arrive out of order; never step back a version
        if current is not None and current['view'].version > inventory.version:
            return

        view = self._store(self.to_view(inventory))
        if self.broadcaster is None:
            return

        event = InventoryUpdateEvent(
            type=update_type,
            ticket_type_id=view.ticket_type_id,
            event_id=view.event_id,
            available_quantity=view.available_quantity,
            held_quantity=view.held_quantity,
            sold_quantity=view.sold_quantity,
            timestamp=self.clock(),
        )
        try:
            await self.broadcaster.broadcast(topic=view.ticket_type_id, event_data=event.to_dict())
        except Exception as e:
            # The mutation is already committed; a lost push only delays the UI until next poll
            Logger.base.warning(f'[STATUS] Broadcast for {view.ticket_type_id} failed: {e}')

    async def subscribe(self, ticket_type_id: str) -> MemoryObjectReceiveStream[dict]:
        if self.broadcaster is None:
            raise RuntimeError('Status facade has no broadcaster configured')
        return await self.broadcaster.subscribe(topic=ticket_type_id)

    async def unsubscribe(
        self, ticket_type_id: str, stream: MemoryObjectReceiveStream[dict]
    ) -> None:
        if self.broadcaster is not None:
            await self.broadcaster.unsubscribe(topic=ticket_type_id, stream=stream)
