"""
In-memory Inventory Store

Process-local backing store for the in-memory unit of work. Units of work
stage their writes and hand them to `commit()`, which re-validates every
optimistic precondition and applies the whole change set atomically or not
at all.
"""

import threading
from typing import Dict, List

import attrs

from src.platform.exception.exceptions import (
    ConflictError,
    HoldNotActiveError,
    VersionConflictError,
)
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import HoldStatus


@attrs.define
class StagedChanges:
    new_inventories: Dict[str, TicketInventory] = attrs.field(factory=dict)
    # ticket_type_id -> (new state, version the committed row must still have)
    swapped_inventories: Dict[str, tuple[TicketInventory, int]] = attrs.field(factory=dict)
    new_holds: Dict[str, InventoryHold] = attrs.field(factory=dict)
    terminated_holds: Dict[str, InventoryHold] = attrs.field(factory=dict)
    transactions: List[InventoryTransaction] = attrs.field(factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.new_inventories
            or self.swapped_inventories
            or self.new_holds
            or self.terminated_holds
            or self.transactions
        )


class InMemoryInventoryStore:
    def __init__(self) -> None:
        self.inventories: Dict[str, TicketInventory] = {}
        self.holds: Dict[str, InventoryHold] = {}
        self.transactions: List[InventoryTransaction] = []
        self._lock = threading.Lock()

    def commit(self, changes: StagedChanges) -> None:
        if changes.is_empty:
            return

        with self._lock:
            self._validate(changes)

            self.inventories.update(changes.new_inventories)
            for ticket_type_id, (inventory, _) in changes.swapped_inventories.items():
                self.inventories[ticket_type_id] = inventory
            self.holds.update(changes.new_holds)
            self.holds.update(changes.terminated_holds)
            self.transactions.extend(changes.transactions)

    def _validate(self, changes: StagedChanges) -> None:
        for ticket_type_id in changes.new_inventories:
            if ticket_type_id in self.inventories:
                raise ConflictError(f'Inventory for ticket type {ticket_type_id} already exists')

        for ticket_type_id, (_, expected_version) in changes.swapped_inventories.items():
            if ticket_type_id in changes.new_inventories:
                continue
            current = self.inventories.get(ticket_type_id)
            if current is None or current.version != expected_version:
                raise VersionConflictError(
                    f'Ticket type {ticket_type_id} changed since version {expected_version}',
                    expected_version=expected_version,
                )

        for hold_id in changes.terminated_holds:
            if hold_id in changes.new_holds:
                continue
            current = self.holds.get(hold_id)
            if current is None or current.status != HoldStatus.ACTIVE:
                raise HoldNotActiveError(f'Hold {hold_id} is no longer active')

    def clear(self) -> None:
        with self._lock:
            self.inventories.clear()
            self.holds.clear()
            self.transactions.clear()
