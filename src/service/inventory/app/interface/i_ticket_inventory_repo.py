"""
Ticket Inventory Repository Interface

Ledger rows, one per ticket type. Writes are optimistic: the caller supplies
the version it read and the write only lands when it still matches.
"""

from abc import ABC, abstractmethod
from typing import Optional

from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory


class ITicketInventoryRepo(ABC):
    @abstractmethod
    async def get(self, *, ticket_type_id: str) -> Optional[TicketInventory]:
        pass

    @abstractmethod
    async def list_by_event(self, *, event_id: str) -> list[TicketInventory]:
        pass

    @abstractmethod
    async def list_all(self) -> list[TicketInventory]:
        pass

    @abstractmethod
    async def add(self, *, inventory: TicketInventory) -> None:
        """
        Insert a new ledger row

        Raises:
            ConflictError: ticket type already has inventory
        """
        pass

    @abstractmethod
    async def compare_and_swap(self, *, inventory: TicketInventory, expected_version: int) -> None:
        """
        Replace the row only when its stored version equals expected_version

        Raises:
            VersionConflictError: stored version differs (or row is gone)
        """
        pass
