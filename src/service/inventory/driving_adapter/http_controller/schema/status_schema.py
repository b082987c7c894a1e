from datetime import datetime
from typing import List, Optional, Self

from pydantic import BaseModel, Field

from src.service.inventory.app.dto.status_dto import (
    EventInventorySummary,
    InventoryStatusSummary,
    InventoryStatusView,
)
from src.service.inventory.domain.enum import InventoryStatus


class InventoryStatusResponse(BaseModel):
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

    @classmethod
    def from_view(cls, view: InventoryStatusView) -> Self:
        return cls(
            ticket_type_id=view.ticket_type_id,
            event_id=view.event_id,
            total_quantity=view.total_quantity,
            sold_quantity=view.sold_quantity,
            held_quantity=view.held_quantity,
            available_quantity=view.available_quantity,
            status=view.status,
            is_sold_out=view.is_sold_out,
            is_low_stock=view.is_low_stock,
            is_very_low_stock=view.is_very_low_stock,
            version=view.version,
            updated_at=view.updated_at,
        )


class BulkStatusRequest(BaseModel):
    ticket_type_ids: List[str] = Field(min_length=1)


class EventSummaryResponse(BaseModel):
    event_id: str
    total_capacity: int
    total_sold: int
    total_held: int
    total_available: int
    is_sold_out: bool
    ticket_types: List[InventoryStatusResponse]

    @classmethod
    def from_summary(cls, summary: EventInventorySummary) -> Self:
        return cls(
            event_id=summary.event_id,
            total_capacity=summary.total_capacity,
            total_sold=summary.total_sold,
            total_held=summary.total_held,
            total_available=summary.total_available,
            is_sold_out=summary.is_sold_out,
            ticket_types=[InventoryStatusResponse.from_view(v) for v in summary.ticket_types],
        )


class InventorySummaryResponse(BaseModel):
    total_events: int
    total_ticket_types: int
    total_capacity: int
    total_sold: int
    total_held: int
    total_available: int
    active_holds: int
    low_stock_alerts: List[str]
    sold_out_types: List[str]

    @classmethod
    def from_summary(cls, summary: InventoryStatusSummary) -> Self:
        return cls(
            total_events=summary.total_events,
            total_ticket_types=summary.total_ticket_types,
            total_capacity=summary.total_capacity,
            total_sold=summary.total_sold,
            total_held=summary.total_held,
            total_available=summary.total_available,
            active_holds=summary.active_holds,
            low_stock_alerts=summary.low_stock_alerts,
            sold_out_types=summary.sold_out_types,
        )
