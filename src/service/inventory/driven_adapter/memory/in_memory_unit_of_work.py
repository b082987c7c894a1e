"""
In-memory Unit of Work

Optimistic transaction over InMemoryInventoryStore: repositories read the
committed state overlaid with this unit's own staged writes, every write is
checked early against committed state and re-checked atomically at commit.
Reads yield to the event loop the way a network round-trip would, so
concurrent units of work interleave realistically.
"""

from datetime import datetime
from typing import Optional

from anyio.lowlevel import checkpoint

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import (
    ConflictError,
    HoldNotActiveError,
    VersionConflictError,
)
from src.service.inventory.app.dto.audit_dto import AuditLogFilter
from src.service.inventory.app.interface.i_inventory_hold_repo import IInventoryHoldRepo
from src.service.inventory.app.interface.i_inventory_transaction_repo import (
    IInventoryTransactionRepo,
)
from src.service.inventory.app.interface.i_ticket_inventory_repo import ITicketInventoryRepo
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import HoldStatus
from src.service.inventory.driven_adapter.memory.in_memory_inventory_store import (
    InMemoryInventoryStore,
    StagedChanges,
)


class InMemoryTicketInventoryRepo(ITicketInventoryRepo):
    def __init__(self, *, store: InMemoryInventoryStore, staged: StagedChanges) -> None:
        self._store = store
        self._staged = staged

    def _current(self, ticket_type_id: str) -> Optional[TicketInventory]:
        if ticket_type_id in self._staged.swapped_inventories:
            return self._staged.swapped_inventories[ticket_type_id][0]
        if ticket_type_id in self._staged.new_inventories:
            return self._staged.new_inventories[ticket_type_id]
        return self._store.inventories.get(ticket_type_id)

    def _snapshot(self) -> dict[str, TicketInventory]:
        merged = {**self._store.inventories, **self._staged.new_inventories}
        for ticket_type_id, (inventory, _) in self._staged.swapped_inventories.items():
            merged[ticket_type_id] = inventory
        return merged

    async def get(self, *, ticket_type_id: str) -> Optional[TicketInventory]:
        await checkpoint()
        return self._current(ticket_type_id)

    async def list_by_event(self, *, event_id: str) -> list[TicketInventory]:
        await checkpoint()
        return sorted(
            (inv for inv in self._snapshot().values() if inv.event_id == event_id),
            key=lambda inv: inv.ticket_type_id,
        )

    async def list_all(self) -> list[TicketInventory]:
        await checkpoint()
        return sorted(self._snapshot().values(), key=lambda inv: inv.ticket_type_id)

    async def add(self, *, inventory: TicketInventory) -> None:
        if self._current(inventory.ticket_type_id) is not None:
            raise ConflictError(f'Inventory for ticket type {inventory.ticket_type_id} already exists')
        self._staged.new_inventories[inventory.ticket_type_id] = inventory

    async def compare_and_swap(self, *, inventory: TicketInventory, expected_version: int) -> None:
        ticket_type_id = inventory.ticket_type_id
        current = self._current(ticket_type_id)
        if current is None or current.version != expected_version:
            raise VersionConflictError(
                f'Ticket type {ticket_type_id} changed since version {expected_version}',
                expected_version=expected_version,
            )

        if ticket_type_id in self._staged.new_inventories:
            self._staged.new_inventories[ticket_type_id] = inventory
            return
        # Commit checks against the committed version seen by the first swap in this unit
        base_version = self._staged.swapped_inventories.get(
            ticket_type_id, (None, expected_version)
        )[1]
        self._staged.swapped_inventories[ticket_type_id] = (inventory, base_version)


class InMemoryInventoryHoldRepo(IInventoryHoldRepo):
    def __init__(self, *, store: InMemoryInventoryStore, staged: StagedChanges) -> None:
        self._store = store
        self._staged = staged

    def _snapshot(self) -> dict[str, InventoryHold]:
        return {**self._store.holds, **self._staged.new_holds, **self._staged.terminated_holds}

    def _active(self) -> list[InventoryHold]:
        return [hold for hold in self._snapshot().values() if hold.status == HoldStatus.ACTIVE]

    async def get(self, *, hold_id: str) -> Optional[InventoryHold]:
        await checkpoint()
        return self._snapshot().get(hold_id)

    async def add(self, *, hold: InventoryHold) -> None:
        self._staged.new_holds[hold.id] = hold

    async def transition(self, *, hold: InventoryHold, new_status: HoldStatus) -> InventoryHold:
        current = self._snapshot().get(hold.id)
        if current is None or current.status != HoldStatus.ACTIVE:
            raise HoldNotActiveError(f'Hold {hold.id} is no longer active')
        updated = current.transition(new_status)
        if hold.id in self._staged.new_holds:
            self._staged.new_holds[hold.id] = updated
        else:
            self._staged.terminated_holds[hold.id] = updated
        return updated

    async def list_active_by_session(
        self, *, session_id: str, ticket_type_id: Optional[str] = None
    ) -> list[InventoryHold]:
        await checkpoint()
        return sorted(
            (
                hold
                for hold in self._active()
                if hold.session_id == session_id
                and (ticket_type_id is None or hold.ticket_type_id == ticket_type_id)
            ),
            key=lambda hold: hold.created_at,
        )

    async def list_active(
        self,
        *,
        event_id: Optional[str] = None,
        ticket_type_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[InventoryHold]:
        await checkpoint()
        active = sorted(
            (
                hold
                for hold in self._active()
                if (event_id is None or hold.event_id == event_id)
                and (ticket_type_id is None or hold.ticket_type_id == ticket_type_id)
            ),
            key=lambda hold: hold.created_at,
        )
        return active if limit is None else active[:limit]

    async def list_expired(self, *, now: datetime, limit: int) -> list[InventoryHold]:
        await checkpoint()
        expired = sorted(
            (hold for hold in self._active() if hold.expires_at <= now),
            key=lambda hold: hold.expires_at,
        )
        return expired[:limit]

    async def count_active(self) -> int:
        await checkpoint()
        return len(self._active())

    async def sum_active_quantity(self, *, ticket_type_id: str) -> int:
        await checkpoint()
        return sum(hold.quantity for hold in self._active() if hold.ticket_type_id == ticket_type_id)


class InMemoryInventoryTransactionRepo(IInventoryTransactionRepo):
    def __init__(self, *, store: InMemoryInventoryStore, staged: StagedChanges) -> None:
        self._store = store
        self._staged = staged

    async def append(self, *, transaction: InventoryTransaction) -> None:
        self._staged.transactions.append(transaction)

    async def query(self, *, filter: AuditLogFilter) -> list[InventoryTransaction]:
        await checkpoint()
        matched = [
            tx
            for tx in [*self._store.transactions, *self._staged.transactions]
            if self._matches(tx, filter)
        ]
        matched.sort(key=lambda tx: (tx.timestamp, tx.id))
        if filter.limit is not None:
            matched = matched[: filter.limit]
        return matched

    @staticmethod
    def _matches(tx: InventoryTransaction, filter: AuditLogFilter) -> bool:
        if filter.ticket_type_id is not None and tx.ticket_type_id != filter.ticket_type_id:
            return False
        if filter.event_id is not None and tx.event_id != filter.event_id:
            return False
        if filter.types and tx.type not in filter.types:
            return False
        if filter.related_hold_id is not None and tx.related_hold_id != filter.related_hold_id:
            return False
        if filter.session_id is not None and tx.session_id != filter.session_id:
            return False
        if filter.since is not None and tx.timestamp < filter.since:
            return False
        if filter.until is not None and tx.timestamp > filter.until:
            return False
        return True


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, *, store: InMemoryInventoryStore) -> None:
        self._store = store
        self._staged = StagedChanges()

    async def __aenter__(self):
        self._staged = StagedChanges()
        self.inventory_repo = InMemoryTicketInventoryRepo(store=self._store, staged=self._staged)
        self.hold_repo = InMemoryInventoryHoldRepo(store=self._store, staged=self._staged)
        self.transaction_repo = InMemoryInventoryTransactionRepo(
            store=self._store, staged=self._staged
        )
        return await super().__aenter__()

    async def _commit(self) -> None:
        try:
            self._store.commit(self._staged)
        finally:
            self._reset()

    async def rollback(self) -> None:
        self._reset()

    def _reset(self) -> None:
        # Clear in place: the repositories hold a reference to the same object
        self._staged.new_inventories.clear()
        self._staged.swapped_inventories.clear()
        self._staged.new_holds.clear()
        self._staged.terminated_holds.clear()
        self._staged.transactions.clear()
