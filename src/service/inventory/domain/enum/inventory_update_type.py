"""Inventory Update Type Enum (status notifications)"""

from enum import StrEnum


class InventoryUpdateType(StrEnum):
    INVENTORY_CHANGED = 'inventory_changed'
    HOLD_CREATED = 'hold_created'
    HOLD_RELEASED = 'hold_released'
    HOLD_EXPIRED = 'hold_expired'
    PURCHASE_COMPLETED = 'purchase_completed'
