"""Bulk Operation Enum"""

from enum import StrEnum


class BulkOperation(StrEnum):
    ADD_INVENTORY = 'add_inventory'
    REMOVE_INVENTORY = 'remove_inventory'
    SET_INVENTORY = 'set_inventory'
    RELEASE_ALL_HOLDS = 'release_all_holds'
