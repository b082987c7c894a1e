from abc import ABC, abstractmethod

from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import InventoryUpdateType


class IInventoryChangeNotifier(ABC):
    """Told about every committed ledger mutation (status cache refresh, push to subscribers)"""

    @abstractmethod
    async def on_inventory_changed(
        self, *, inventory: TicketInventory, update_type: InventoryUpdateType
    ) -> None:
        pass
