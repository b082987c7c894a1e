from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold


class ListActiveHoldsUseCase:
    """Admin dashboard view of outstanding holds"""

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: UnitOfWorkFactory = Depends(Provide[Container.unit_of_work.provider]),
    ) -> Self:
        return cls(uow_factory=uow_factory)

    @Logger.io
    async def execute(
        self,
        *,
        event_id: Optional[str] = None,
        ticket_type_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[InventoryHold]:
        if limit is not None and limit <= 0:
            raise DomainError('limit must be greater than 0')
        async with self.uow_factory() as uow:
            return await uow.hold_repo.list_active(
                event_id=event_id, ticket_type_id=ticket_type_id, limit=limit
            )
