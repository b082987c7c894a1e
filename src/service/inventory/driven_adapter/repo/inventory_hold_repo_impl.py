"""
Inventory Hold Repository Implementation
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.exception.exceptions import HoldNotActiveError
from src.platform.logging.loguru_io import Logger
from src.platform.types.clock import ensure_utc
from src.service.inventory.app.interface.i_inventory_hold_repo import IInventoryHoldRepo
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.enum import HoldStatus, PurchaseChannel
from src.service.inventory.driven_adapter.model.inventory_hold_model import InventoryHoldModel


class InventoryHoldRepoImpl(IInventoryHoldRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: InventoryHoldModel) -> InventoryHold:
        return InventoryHold(
            id=model.id,
            ticket_type_id=model.ticket_type_id,
            event_id=model.event_id,
            quantity=model.quantity,
            session_id=model.session_id,
            channel=PurchaseChannel(model.channel),
            created_at=ensure_utc(model.created_at),
            expires_at=ensure_utc(model.expires_at),
            status=HoldStatus(model.status),
            user_id=model.user_id,
            metadata=dict(model.hold_metadata or {}),
        )

    async def get(self, *, hold_id: str) -> Optional[InventoryHold]:
        result = await self.session.execute(
            select(InventoryHoldModel)
            .where(InventoryHoldModel.id == hold_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def add(self, *, hold: InventoryHold) -> None:
        self.session.add(
            InventoryHoldModel(
                id=hold.id,
                ticket_type_id=hold.ticket_type_id,
                event_id=hold.event_id,
                quantity=hold.quantity,
                session_id=hold.session_id,
                user_id=hold.user_id,
                channel=str(hold.channel),
                status=str(hold.status),
                created_at=hold.created_at,
                expires_at=hold.expires_at,
                hold_metadata=hold.metadata,
            )
        )
        await self.session.flush()

    @Logger.io
    async def transition(self, *, hold: InventoryHold, new_status: HoldStatus) -> InventoryHold:
        updated = hold.transition(new_status)
        result = await self.session.execute(
            update(InventoryHoldModel)
            .where(
                InventoryHoldModel.id == hold.id,
                InventoryHoldModel.status == str(HoldStatus.ACTIVE),
            )
            .values(status=str(new_status))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise HoldNotActiveError(f'Hold {hold.id} is no longer active')
        return updated

    async def list_active_by_session(
        self, *, session_id: str, ticket_type_id: Optional[str] = None
    ) -> list[InventoryHold]:
        stmt = select(InventoryHoldModel).where(
            InventoryHoldModel.session_id == session_id,
            InventoryHoldModel.status == str(HoldStatus.ACTIVE),
        )
        if ticket_type_id is not None:
            stmt = stmt.where(InventoryHoldModel.ticket_type_id == ticket_type_id)
        result = await self.session.execute(stmt.order_by(InventoryHoldModel.created_at))
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def list_active(
        self,
        *,
        event_id: Optional[str] = None,
        ticket_type_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[InventoryHold]:
        stmt = select(InventoryHoldModel).where(
            InventoryHoldModel.status == str(HoldStatus.ACTIVE)
        )
        if event_id is not None:
            stmt = stmt.where(InventoryHoldModel.event_id == event_id)
        if ticket_type_id is not None:
            stmt = stmt.where(InventoryHoldModel.ticket_type_id == ticket_type_id)
        stmt = stmt.order_by(InventoryHoldModel.created_at)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def list_expired(self, *, now: datetime, limit: int) -> list[InventoryHold]:
        result = await self.session.execute(
            select(InventoryHoldModel)
            .where(
                InventoryHoldModel.status == str(HoldStatus.ACTIVE),
                InventoryHoldModel.expires_at <= now,
            )
            .order_by(InventoryHoldModel.expires_at)
            .limit(limit)
        )
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def count_active(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(InventoryHoldModel)
            .where(InventoryHoldModel.status == str(HoldStatus.ACTIVE))
        )
        return int(result.scalar_one())

    async def sum_active_quantity(self, *, ticket_type_id: str) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(InventoryHoldModel.quantity), 0)).where(
                InventoryHoldModel.ticket_type_id == ticket_type_id,
                InventoryHoldModel.status == str(HoldStatus.ACTIVE),
            )
        )
        return int(result.scalar_one())
