from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.platform.types.clock import Clock, utc_now
from src.service.inventory.app.interface.i_inventory_change_notifier import (
    IInventoryChangeNotifier,
)
from src.service.inventory.app.service.audit_log import AuditLog
from src.service.inventory.app.service.inventory_ledger import InventoryLedger
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import InventoryUpdateType, TransactionType


class CreateTicketInventoryUseCase:
    """
    Define the inventory of a new ticket type.

    The opening capacity is logged as an admin adjustment of +total so the
    audit log alone can rebuild the ledger.
    """

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        change_notifier: Optional[IInventoryChangeNotifier] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.uow_factory = uow_factory
        self.change_notifier = change_notifier
        self.clock = clock

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: UnitOfWorkFactory = Depends(Provide[Container.unit_of_work.provider]),
        change_notifier: IInventoryChangeNotifier = Depends(Provide[Container.status_facade]),
    ) -> Self:
        return cls(uow_factory=uow_factory, change_notifier=change_notifier)

    @Logger.io
    async def execute(
        self,
        *,
        ticket_type_id: str,
        event_id: str,
        total_quantity: int,
        actor_id: Optional[str] = None,
    ) -> TicketInventory:
        if total_quantity < 0:
            raise DomainError('total_quantity must not be negative')

        async with self.uow_factory() as uow:
            ledger = InventoryLedger(inventory_repo=uow.inventory_repo, clock=self.clock)
            inventory = await ledger.create(
                ticket_type_id=ticket_type_id, event_id=event_id, total_quantity=total_quantity
            )
            await AuditLog(transaction_repo=uow.transaction_repo).append(
                InventoryTransaction.for_inventory(
                    type=TransactionType.ADMIN_ADJUSTMENT,
                    quantity=total_quantity,
                    before=None,
                    after=inventory,
                    now=inventory.updated_at or self.clock(),
                    actor_id=actor_id,
                    reason='ticket type created',
                )
            )
            await uow.commit()

        Logger.base.info(
            f'[LEDGER] Created {ticket_type_id} for event {event_id} with {total_quantity} units'
        )
        if self.change_notifier is not None:
            await self.change_notifier.on_inventory_changed(
                inventory=inventory, update_type=InventoryUpdateType.INVENTORY_CHANGED
            )
        return inventory
