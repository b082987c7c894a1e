"""
Inventory Transaction Repository Interface

Append-only: there is deliberately no update or delete.
"""

from abc import ABC, abstractmethod

from src.service.inventory.app.dto.audit_dto import AuditLogFilter
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)


class IInventoryTransactionRepo(ABC):
    @abstractmethod
    async def append(self, *, transaction: InventoryTransaction) -> None:
        pass

    @abstractmethod
    async def query(self, *, filter: AuditLogFilter) -> list[InventoryTransaction]:
        """Matching transactions in append order (timestamp, then id)"""
        pass
