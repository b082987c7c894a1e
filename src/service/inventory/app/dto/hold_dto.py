"""
Hold DTOs

Result objects returned by the hold manager operations.
"""

from typing import Optional

import attrs

from src.service.inventory.domain.entity.conflict_resolution_entity import ConflictResolution
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)


@attrs.define
class HoldCreationResult:
    success: bool
    requested_quantity: int
    available_quantity: int
    hold: Optional[InventoryHold] = None
    error: Optional[str] = None
    conflict_resolution: Optional[ConflictResolution] = None

    @classmethod
    def granted(
        cls,
        *,
        hold: InventoryHold,
        available_quantity: int,
        conflict_resolution: Optional[ConflictResolution] = None,
    ) -> 'HoldCreationResult':
        return cls(
            success=True,
            requested_quantity=hold.quantity,
            available_quantity=available_quantity,
            hold=hold,
            conflict_resolution=conflict_resolution,
        )

    @classmethod
    def insufficient(
        cls,
        *,
        requested_quantity: int,
        available_quantity: int,
        conflict_resolution: Optional[ConflictResolution] = None,
    ) -> 'HoldCreationResult':
        return cls(
            success=False,
            requested_quantity=requested_quantity,
            available_quantity=available_quantity,
            error=(
                f'Insufficient inventory: requested {requested_quantity}, '
                f'available {available_quantity}'
            ),
            conflict_resolution=conflict_resolution,
        )


@attrs.define
class ReleaseResult:
    """Releasing an already-terminal hold is a no-op: empty ids, zero quantity"""

    released_hold_ids: list[str] = attrs.field(factory=list)
    released_quantity: int = 0

    @property
    def released(self) -> bool:
        return bool(self.released_hold_ids)

    def merge(self, other: 'ReleaseResult') -> 'ReleaseResult':
        return ReleaseResult(
            released_hold_ids=[*self.released_hold_ids, *other.released_hold_ids],
            released_quantity=self.released_quantity + other.released_quantity,
        )


@attrs.define
class PurchaseResult:
    success: bool
    hold: InventoryHold
    transaction: InventoryTransaction
    remaining_available: int
