from abc import ABC, abstractmethod

from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold


class IExpiryScheduler(ABC):
    """Registration port of the expiry sweeper"""

    @abstractmethod
    def register(self, hold: InventoryHold) -> None:
        pass
