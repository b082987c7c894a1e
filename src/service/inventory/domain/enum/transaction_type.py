"""Inventory Transaction Type Enum"""

from enum import StrEnum


class TransactionType(StrEnum):
    HOLD_CREATE = 'hold_create'
    HOLD_RELEASE = 'hold_release'
    HOLD_EXPIRE = 'hold_expire'
    PURCHASE_COMPLETE = 'purchase_complete'
    REFUND = 'refund'
    ADMIN_ADJUSTMENT = 'admin_adjustment'
