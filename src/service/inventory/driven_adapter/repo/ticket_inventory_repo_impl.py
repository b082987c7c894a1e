"""
Ticket Inventory Repository Implementation - ledger rows with optimistic CAS
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.exception.exceptions import ConflictError, VersionConflictError
from src.platform.logging.loguru_io import Logger
from src.platform.types.clock import ensure_utc
from src.service.inventory.app.interface.i_ticket_inventory_repo import ITicketInventoryRepo
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.driven_adapter.model.ticket_inventory_model import (
    TicketInventoryModel,
)


class TicketInventoryRepoImpl(ITicketInventoryRepo):
    def __init__(self, *, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _model_to_entity(model: TicketInventoryModel) -> TicketInventory:
        return TicketInventory(
            ticket_type_id=model.ticket_type_id,
            event_id=model.event_id,
            total_quantity=model.total_quantity,
            sold_quantity=model.sold_quantity,
            held_quantity=model.held_quantity,
            version=model.version,
            updated_at=ensure_utc(model.updated_at) if model.updated_at else None,
        )

    async def get(self, *, ticket_type_id: str) -> Optional[TicketInventory]:
        # populate_existing: never serve a row cached before our own CAS
        result = await self.session.execute(
            select(TicketInventoryModel)
            .where(TicketInventoryModel.ticket_type_id == ticket_type_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def list_by_event(self, *, event_id: str) -> list[TicketInventory]:
        result = await self.session.execute(
            select(TicketInventoryModel)
            .where(TicketInventoryModel.event_id == event_id)
            .order_by(TicketInventoryModel.ticket_type_id)
        )
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def list_all(self) -> list[TicketInventory]:
        result = await self.session.execute(
            select(TicketInventoryModel).order_by(TicketInventoryModel.ticket_type_id)
        )
        return [self._model_to_entity(model) for model in result.scalars().all()]

    @Logger.io
    async def add(self, *, inventory: TicketInventory) -> None:
        if await self.session.get(TicketInventoryModel, inventory.ticket_type_id) is not None:
            raise ConflictError(f'Inventory for ticket type {inventory.ticket_type_id} already exists')
        self.session.add(
            TicketInventoryModel(
                ticket_type_id=inventory.ticket_type_id,
                event_id=inventory.event_id,
                total_quantity=inventory.total_quantity,
                sold_quantity=inventory.sold_quantity,
                held_quantity=inventory.held_quantity,
                version=inventory.version,
                updated_at=inventory.updated_at,
            )
        )
        await self.session.flush()

    @Logger.io
    async def compare_and_swap(self, *, inventory: TicketInventory, expected_version: int) -> None:
        result = await self.session.execute(
            update(TicketInventoryModel)
            .where(
                TicketInventoryModel.ticket_type_id == inventory.ticket_type_id,
                TicketInventoryModel.version == expected_version,
            )
            .values(
                total_quantity=inventory.total_quantity,
                sold_quantity=inventory.sold_quantity,
                held_quantity=inventory.held_quantity,
                version=inventory.version,
                updated_at=inventory.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise VersionConflictError(
                f'Ticket type {inventory.ticket_type_id} changed since version {expected_version}',
                expected_version=expected_version,
            )
