"""Inventory Service Interfaces"""

from src.service.inventory.app.interface.i_expiry_scheduler import IExpiryScheduler
from src.service.inventory.app.interface.i_inventory_change_notifier import (
    IInventoryChangeNotifier,
)
from src.service.inventory.app.interface.i_inventory_hold_repo import IInventoryHoldRepo
from src.service.inventory.app.interface.i_inventory_transaction_repo import (
    IInventoryTransactionRepo,
)
from src.service.inventory.app.interface.i_ticket_inventory_repo import ITicketInventoryRepo


__all__ = [
    'IExpiryScheduler',
    'IInventoryChangeNotifier',
    'IInventoryHoldRepo',
    'IInventoryTransactionRepo',
    'ITicketInventoryRepo',
]
