from src.service.inventory.app.dto.audit_dto import (
    AuditLogFilter,
    LedgerTotals,
    ReconciliationReport,
)
from src.service.inventory.app.dto.bulk_update_dto import (
    BulkOperationOutcome,
    BulkOperationRequest,
    BulkUpdateResult,
    BulkUpdateSummary,
)
from src.service.inventory.app.dto.hold_dto import (
    HoldCreationResult,
    PurchaseResult,
    ReleaseResult,
)
from src.service.inventory.app.dto.status_dto import (
    EventInventorySummary,
    InventoryStatusSummary,
    InventoryStatusView,
    InventoryUpdateEvent,
)
from src.service.inventory.app.dto.sweep_dto import SweepReport


__all__ = [
    'AuditLogFilter',
    'BulkOperationOutcome',
    'BulkOperationRequest',
    'BulkUpdateResult',
    'BulkUpdateSummary',
    'EventInventorySummary',
    'HoldCreationResult',
    'InventoryStatusSummary',
    'InventoryStatusView',
    'InventoryUpdateEvent',
    'LedgerTotals',
    'PurchaseResult',
    'ReconciliationReport',
    'ReleaseResult',
    'SweepReport',
]
