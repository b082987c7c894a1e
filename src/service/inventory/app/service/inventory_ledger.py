"""
Inventory Ledger

Authoritative per-ticket-type counters. All mutations are optimistic
compare-and-swap on the row version, validated against
sold + held <= total before anything is written.
"""

from typing import Optional

from src.platform.exception.exceptions import NotFoundError, VersionConflictError
from src.platform.logging.loguru_io import Logger
from src.platform.types.clock import Clock, utc_now
from src.service.inventory.app.interface.i_ticket_inventory_repo import ITicketInventoryRepo
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory


class InventoryLedger:
    def __init__(self, *, inventory_repo: ITicketInventoryRepo, clock: Clock = utc_now) -> None:
        self.inventory_repo = inventory_repo
        self.clock = clock

    async def get_status(self, ticket_type_id: str) -> TicketInventory:
        inventory = await self.inventory_repo.get(ticket_type_id=ticket_type_id)
        if inventory is None:
            raise NotFoundError(f'Ticket type {ticket_type_id} not found')
        return inventory

    async def try_mutate(
        self,
        ticket_type_id: str,
        *,
        delta_sold: int,
        delta_held: int,
        expected_version: int,
    ) -> TicketInventory:
        """
        Apply deltas to sold/held when the stored version still equals expected_version

        Raises:
            VersionConflictError: someone else wrote first; re-read and retry
            InvariantViolationError: post-state would oversell or go negative
        """
        current = await self.get_status(ticket_type_id)
        self._check_version(current, expected_version)

        updated = current.apply(delta_sold=delta_sold, delta_held=delta_held, now=self.clock())
        await self.inventory_repo.compare_and_swap(
            inventory=updated, expected_version=expected_version
        )
        return updated

    async def adjust_capacity(
        self, ticket_type_id: str, *, new_total: int, expected_version: Optional[int] = None
    ) -> TicketInventory:
        """
        Set total capacity; rejected when new_total < sold + held

        Without expected_version the freshly read version is used, so the
        write still fails if the row changes between read and swap.
        """
        current = await self.get_status(ticket_type_id)
        if expected_version is None:
            expected_version = current.version
        self._check_version(current, expected_version)

        updated = current.with_total(new_total=new_total, now=self.clock())
        await self.inventory_repo.compare_and_swap(
            inventory=updated, expected_version=expected_version
        )
        Logger.base.info(
            f'[LEDGER] Capacity of {ticket_type_id} {current.total_quantity} -> {new_total} '
            f'(v{updated.version})'
        )
        return updated

    async def create(
        self, *, ticket_type_id: str, event_id: str, total_quantity: int
    ) -> TicketInventory:
        inventory = TicketInventory.create(
            ticket_type_id=ticket_type_id,
            event_id=event_id,
            total_quantity=total_quantity,
            now=self.clock(),
        )
        await self.inventory_repo.add(inventory=inventory)
        return inventory

    @staticmethod
    def _check_version(current: TicketInventory, expected_version: int) -> None:
        if current.version != expected_version:
            raise VersionConflictError(
                f'Ticket type {current.ticket_type_id} is at version {current.version}, '
                f'expected {expected_version}',
                expected_version=expected_version,
            )
