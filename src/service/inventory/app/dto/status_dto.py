"""
Status DTOs

Read-optimized availability views served by the status facade, and the
update event pushed to subscribers.
"""

from datetime import datetime
from typing import Any, Optional

import attrs

from src.service.inventory.domain.enum import InventoryStatus, InventoryUpdateType


@attrs.define(frozen=True)
class InventoryStatusView:
    ticket_type_id: str
    event_id: str
    total_quantity: int
    sold_quantity: int
    held_quantity: int
    available_quantity: int
    status: InventoryStatus
    is_sold_out: bool
    is_low_stock: bool
    is_very_low_stock: bool
    version: int
    updated_at: Optional[datetime] = None


@attrs.define
class EventInventorySummary:
    event_id: str
    ticket_types: list[InventoryStatusView]
    total_capacity: int = 0
    total_sold: int = 0
    total_held: int = 0
    total_available: int = 0

    @property
    def is_sold_out(self) -> bool:
        return bool(self.ticket_types) and self.total_available == 0


@attrs.define
class InventoryStatusSummary:
    total_events: int = 0
    total_ticket_types: int = 0
    total_capacity: int = 0
    total_sold: int = 0
    total_held: int = 0
    total_available: int = 0
    active_holds: int = 0
    low_stock_alerts: list[str] = attrs.field(factory=list)
    sold_out_types: list[str] = attrs.field(factory=list)


@attrs.define
class InventoryUpdateEvent:
    type: InventoryUpdateType
    ticket_type_id: str
    event_id: str
    available_quantity: int
    held_quantity: int
    sold_quantity: int
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            'type': str(self.type),
            'ticket_type_id': self.ticket_type_id,
            'event_id': self.event_id,
            'available_quantity': self.available_quantity,
            'held_quantity': self.held_quantity,
            'sold_quantity': self.sold_quantity,
            'timestamp': self.timestamp.isoformat(),
        }
