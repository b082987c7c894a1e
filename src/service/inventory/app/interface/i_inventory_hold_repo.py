"""
Inventory Hold Repository Interface
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.enum import HoldStatus


class IInventoryHoldRepo(ABC):
    @abstractmethod
    async def get(self, *, hold_id: str) -> Optional[InventoryHold]:
        pass

    @abstractmethod
    async def add(self, *, hold: InventoryHold) -> None:
        pass

    @abstractmethod
    async def transition(self, *, hold: InventoryHold, new_status: HoldStatus) -> InventoryHold:
        """
        Move an ACTIVE hold to a terminal status

        Conditional on the stored status still being ACTIVE, so two concurrent
        terminations of the same hold cannot both succeed.

        Raises:
            HoldNotActiveError: the stored hold is no longer ACTIVE
        """
        pass

    @abstractmethod
    async def list_active_by_session(
        self, *, session_id: str, ticket_type_id: Optional[str] = None
    ) -> list[InventoryHold]:
        pass

    @abstractmethod
    async def list_active(
        self,
        *,
        event_id: Optional[str] = None,
        ticket_type_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[InventoryHold]:
        """ACTIVE holds, oldest first, optionally narrowed to one event or ticket type"""
        pass

    @abstractmethod
    async def list_expired(self, *, now: datetime, limit: int) -> list[InventoryHold]:
        """ACTIVE holds with expires_at <= now, earliest expiry first"""
        pass

    @abstractmethod
    async def count_active(self) -> int:
        pass

    @abstractmethod
    async def sum_active_quantity(self, *, ticket_type_id: str) -> int:
        pass
