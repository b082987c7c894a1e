"""
Audit Log

Append-only trail of inventory transactions. Replaying a ticket type's log
from empty reproduces its ledger counters; reconcile() compares the two.
"""

from src.service.inventory.app.dto.audit_dto import (
    AuditLogFilter,
    LedgerTotals,
    ReconciliationReport,
)
from src.service.inventory.app.interface.i_inventory_transaction_repo import (
    IInventoryTransactionRepo,
)
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory


class AuditLog:
    def __init__(self, *, transaction_repo: IInventoryTransactionRepo) -> None:
        self.transaction_repo = transaction_repo

    async def append(self, transaction: InventoryTransaction) -> None:
        await self.transaction_repo.append(transaction=transaction)

    async def query(self, filter: AuditLogFilter) -> list[InventoryTransaction]:
        return await self.transaction_repo.query(filter=filter)

    async def replay(self, ticket_type_id: str) -> LedgerTotals:
        transactions = await self.transaction_repo.query(
            filter=AuditLogFilter(ticket_type_id=ticket_type_id)
        )
        totals = LedgerTotals()
        for transaction in transactions:
            delta_total, delta_sold, delta_held = transaction.ledger_delta()
            totals.total_quantity += delta_total
            totals.sold_quantity += delta_sold
            totals.held_quantity += delta_held
            totals.transaction_count += 1
        return totals

    async def reconcile(
        self, inventory: TicketInventory, *, active_hold_quantity: int
    ) -> ReconciliationReport:
        replayed = await self.replay(inventory.ticket_type_id)
        return ReconciliationReport(
            ticket_type_id=inventory.ticket_type_id,
            ledger=LedgerTotals(
                total_quantity=inventory.total_quantity,
                sold_quantity=inventory.sold_quantity,
                held_quantity=inventory.held_quantity,
                transaction_count=replayed.transaction_count,
            ),
            replayed=replayed,
            active_hold_quantity=active_hold_quantity,
        )
