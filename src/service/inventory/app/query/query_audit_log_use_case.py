from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.logging.loguru_io import Logger
from src.service.inventory.app.dto.audit_dto import AuditLogFilter
from src.service.inventory.app.service.audit_log import AuditLog
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)


class QueryAuditLogUseCase:
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
    async def execute(self, *, filter: AuditLogFilter) -> list[InventoryTransaction]:
        async with self.uow_factory() as uow:
            return await AuditLog(transaction_repo=uow.transaction_repo).query(filter)
