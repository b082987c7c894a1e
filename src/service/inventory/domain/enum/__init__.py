"""Inventory Domain Enums"""

from src.service.inventory.domain.enum.bulk_operation import BulkOperation
from src.service.inventory.domain.enum.hold_status import HoldStatus
from src.service.inventory.domain.enum.inventory_status import InventoryStatus
from src.service.inventory.domain.enum.inventory_update_type import InventoryUpdateType
from src.service.inventory.domain.enum.purchase_channel import PurchaseChannel
from src.service.inventory.domain.enum.resolution_strategy import ResolutionStrategy
from src.service.inventory.domain.enum.transaction_type import TransactionType

__all__ = [
    'BulkOperation',
    'HoldStatus',
    'InventoryStatus',
    'InventoryUpdateType',
    'PurchaseChannel',
    'ResolutionStrategy',
    'TransactionType',
]
