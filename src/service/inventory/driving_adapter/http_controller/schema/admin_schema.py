from datetime import datetime
from typing import List, Optional, Self

from pydantic import BaseModel, Field

from src.service.inventory.app.dto.audit_dto import LedgerTotals, ReconciliationReport
from src.service.inventory.app.dto.bulk_update_dto import BulkUpdateResult
from src.service.inventory.app.dto.sweep_dto import SweepReport
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import BulkOperation, PurchaseChannel, TransactionType


class TicketInventoryCreateRequest(BaseModel):
    ticket_type_id: str = Field(min_length=1)
    event_id: str = Field(min_length=1)
    total_quantity: int = Field(ge=0)
    actor_id: Optional[str] = None


class TicketInventoryResponse(BaseModel):
    ticket_type_id: str
    event_id: str
    total_quantity: int
    sold_quantity: int
    held_quantity: int
    available_quantity: int
    version: int
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, inventory: TicketInventory) -> Self:
        return cls(
            ticket_type_id=inventory.ticket_type_id,
            event_id=inventory.event_id,
            total_quantity=inventory.total_quantity,
            sold_quantity=inventory.sold_quantity,
            held_quantity=inventory.held_quantity,
            available_quantity=inventory.available_quantity,
            version=inventory.version,
            updated_at=inventory.updated_at,
        )


class CapacityAdjustRequest(BaseModel):
    new_total: int = Field(ge=0)
    actor_id: str = Field(min_length=1)
    reason: Optional[str] = None
    expected_version: Optional[int] = None


class RefundRequest(BaseModel):
    quantity: int = Field(gt=0)
    actor_id: Optional[str] = None
    reason: Optional[str] = None
    session_id: Optional[str] = None


class BulkOperationItem(BaseModel):
    ticket_type_id: str
    operation: BulkOperation
    quantity: Optional[int] = Field(default=None, ge=0)
    reason: Optional[str] = None


class BulkUpdateRequest(BaseModel):
    operations: List[BulkOperationItem] = Field(min_length=1)
    actor_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            'examples': [
                {
                    'operations': [
                        {'ticket_type_id': 'ga-2025', 'operation': 'add_inventory', 'quantity': 50},
                        {'ticket_type_id': 'vip-2025', 'operation': 'release_all_holds'},
                    ],
                    'actor_id': 'admin-1',
                }
            ]
        }


class BulkOperationOutcomeResponse(BaseModel):
    ticket_type_id: str
    operation: BulkOperation
    success: bool
    previous_quantity: Optional[int] = None
    new_quantity: Optional[int] = None
    holds_released: int = 0
    error: Optional[str] = None


class BulkUpdateSummaryResponse(BaseModel):
    total_processed: int
    successful_updates: int
    failed_updates: int
    inventory_adjustment: int
    holds_released: int


class BulkUpdateResponse(BaseModel):
    success: bool
    outcomes: List[BulkOperationOutcomeResponse]
    errors: List[str]
    summary: BulkUpdateSummaryResponse

    @classmethod
    def from_result(cls, result: BulkUpdateResult) -> Self:
        return cls(
            success=result.success,
            outcomes=[
                BulkOperationOutcomeResponse(
                    ticket_type_id=o.ticket_type_id,
                    operation=o.operation,
                    success=o.success,
                    previous_quantity=o.previous_quantity,
                    new_quantity=o.new_quantity,
                    holds_released=o.holds_released,
                    error=o.error,
                )
                for o in result.outcomes
            ],
            errors=result.errors,
            summary=BulkUpdateSummaryResponse(
                total_processed=result.summary.total_processed,
                successful_updates=result.summary.successful_updates,
                failed_updates=result.summary.failed_updates,
                inventory_adjustment=result.summary.inventory_adjustment,
                holds_released=result.summary.holds_released,
            ),
        )


class AuditEntryResponse(BaseModel):
    id: str
    type: TransactionType
    ticket_type_id: str
    event_id: str
    quantity: int
    channel: PurchaseChannel
    timestamp: datetime
    related_hold_id: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    actor_id: Optional[str] = None
    reason: Optional[str] = None
    available_before: Optional[int] = None
    available_after: Optional[int] = None

    @classmethod
    def from_entity(cls, tx: InventoryTransaction) -> Self:
        return cls(
            id=tx.id,
            type=tx.type,
            ticket_type_id=tx.ticket_type_id,
            event_id=tx.event_id,
            quantity=tx.quantity,
            channel=tx.channel,
            timestamp=tx.timestamp,
            related_hold_id=tx.related_hold_id,
            session_id=tx.session_id,
            user_id=tx.user_id,
            actor_id=tx.actor_id,
            reason=tx.reason,
            available_before=tx.available_before,
            available_after=tx.available_after,
        )


class LedgerTotalsResponse(BaseModel):
    total_quantity: int
    sold_quantity: int
    held_quantity: int
    available_quantity: int
    transaction_count: int

    @classmethod
    def from_totals(cls, totals: LedgerTotals) -> Self:
        return cls(
            total_quantity=totals.total_quantity,
            sold_quantity=totals.sold_quantity,
            held_quantity=totals.held_quantity,
            available_quantity=totals.available_quantity,
            transaction_count=totals.transaction_count,
        )


class ReconciliationResponse(BaseModel):
    ticket_type_id: str
    is_consistent: bool
    ledger: LedgerTotalsResponse
    replayed: LedgerTotalsResponse
    active_hold_quantity: int
    discrepancies: dict[str, int]

    @classmethod
    def from_report(cls, report: ReconciliationReport) -> Self:
        return cls(
            ticket_type_id=report.ticket_type_id,
            is_consistent=report.is_consistent,
            ledger=LedgerTotalsResponse.from_totals(report.ledger),
            replayed=LedgerTotalsResponse.from_totals(report.replayed),
            active_hold_quantity=report.active_hold_quantity,
            discrepancies=report.discrepancies,
        )


class SweepResponse(BaseModel):
    scanned: int
    expired: int
    skipped: int
    failed: int

    @classmethod
    def from_report(cls, report: SweepReport) -> Self:
        return cls(
            scanned=report.scanned,
            expired=report.expired,
            skipped=report.skipped,
            failed=report.failed,
        )
