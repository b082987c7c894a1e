"""Importing this package registers the inventory tables on Base.metadata"""

from src.service.inventory.driven_adapter.model.inventory_hold_model import InventoryHoldModel
from src.service.inventory.driven_adapter.model.inventory_transaction_model import (
    InventoryTransactionModel,
)
from src.service.inventory.driven_adapter.model.ticket_inventory_model import (
    TicketInventoryModel,
)


__all__ = ['InventoryHoldModel', 'InventoryTransactionModel', 'TicketInventoryModel']
