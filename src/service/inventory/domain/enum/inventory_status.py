"""Availability level shown next to a ticket type"""

from enum import StrEnum


class InventoryStatus(StrEnum):
    AVAILABLE = 'available'
    LOW_STOCK = 'low_stock'
    VERY_LOW_STOCK = 'very_low_stock'
    SOLD_OUT = 'sold_out'
