from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.logging.loguru_io import Logger
from src.service.inventory.app.dto.audit_dto import ReconciliationReport
from src.service.inventory.app.service.audit_log import AuditLog
from src.service.inventory.app.service.inventory_ledger import InventoryLedger


class ReconcileInventoryUseCase:
    """
    Rebuild a ticket type's counters from its audit log and compare them with
    the ledger and with the sum of active holds, all read in one unit of work.
    """

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
    async def execute(self, *, ticket_type_id: str) -> ReconciliationReport:
        async with self.uow_factory() as uow:
            inventory = await InventoryLedger(inventory_repo=uow.inventory_repo).get_status(
                ticket_type_id
            )
            active_hold_quantity = await uow.hold_repo.sum_active_quantity(
                ticket_type_id=ticket_type_id
            )
            report = await AuditLog(transaction_repo=uow.transaction_repo).reconcile(
                inventory, active_hold_quantity=active_hold_quantity
            )

        if not report.is_consistent:
            Logger.base.warning(
                f'[AUDIT] Ledger of {ticket_type_id} disagrees with its log: {report.discrepancies}'
            )
        return report
