"""
Inventory Transaction Repository Implementation - append-only audit trail
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.types.clock import ensure_utc
from src.service.inventory.app.dto.audit_dto import AuditLogFilter
from src.service.inventory.app.interface.i_inventory_transaction_repo import (
    IInventoryTransactionRepo,
)
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.enum import PurchaseChannel, TransactionType
from src.service.inventory.driven_adapter.model.inventory_transaction_model import (
    InventoryTransactionModel,
)


class InventoryTransactionRepoImpl(IInventoryTransactionRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: InventoryTransactionModel) -> InventoryTransaction:
        return InventoryTransaction(
            id=model.id,
            type=TransactionType(model.type),
            ticket_type_id=model.ticket_type_id,
            event_id=model.event_id,
            quantity=model.quantity,
            channel=PurchaseChannel(model.channel),
            timestamp=ensure_utc(model.timestamp),
            related_hold_id=model.related_hold_id,
            session_id=model.session_id,
            user_id=model.user_id,
            actor_id=model.actor_id,
            reason=model.reason,
            available_before=model.available_before,
            available_after=model.available_after,
            metadata=dict(model.transaction_metadata or {}),
        )

    async def append(self, *, transaction: InventoryTransaction) -> None:
        self.session.add(
            InventoryTransactionModel(
                id=transaction.id,
                type=str(transaction.type),
                ticket_type_id=transaction.ticket_type_id,
                event_id=transaction.event_id,
                quantity=transaction.quantity,
                channel=str(transaction.channel),
                timestamp=transaction.timestamp,
                related_hold_id=transaction.related_hold_id,
                session_id=transaction.session_id,
                user_id=transaction.user_id,
                actor_id=transaction.actor_id,
                reason=transaction.reason,
                available_before=transaction.available_before,
                available_after=transaction.available_after,
                transaction_metadata=transaction.metadata,
            )
        )
        await self.session.flush()

    async def query(self, *, filter: AuditLogFilter) -> list[InventoryTransaction]:
        model = InventoryTransactionModel
        stmt = select(model)
        if filter.ticket_type_id is not None:
            stmt = stmt.where(model.ticket_type_id == filter.ticket_type_id)
        if filter.event_id is not None:
            stmt = stmt.where(model.event_id == filter.event_id)
        if filter.types:
            stmt = stmt.where(model.type.in_([str(t) for t in filter.types]))
        if filter.related_hold_id is not None:
            stmt = stmt.where(model.related_hold_id == filter.related_hold_id)
        if filter.session_id is not None:
            stmt = stmt.where(model.session_id == filter.session_id)
        if filter.since is not None:
            stmt = stmt.where(model.timestamp >= filter.since)
        if filter.until is not None:
            stmt = stmt.where(model.timestamp <= filter.until)
        stmt = stmt.order_by(model.timestamp, model.id)
        if filter.limit is not None:
            stmt = stmt.limit(filter.limit)

        result = await self.session.execute(stmt)
        return [self._model_to_entity(row) for row in result.scalars().all()]
