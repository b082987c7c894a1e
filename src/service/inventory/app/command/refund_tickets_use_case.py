from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import DomainError, TransientError, VersionConflictError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.inventory_metrics import metrics
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
from src.service.inventory.domain.enum import (
    InventoryUpdateType,
    PurchaseChannel,
    TransactionType,
)


class RefundTicketsUseCase:
    """Return sold units to stock (sold -= quantity); refunding more than was sold is rejected"""

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        change_notifier: Optional[IInventoryChangeNotifier] = None,
        clock: Clock = utc_now,
        max_retries: int = 3,
    ) -> None:
        self.uow_factory = uow_factory
        self.change_notifier = change_notifier
        self.clock = clock
        self.max_retries = max_retries

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
        quantity: int,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        session_id: Optional[str] = None,
        channel: PurchaseChannel = PurchaseChannel.ADMIN,
    ) -> TicketInventory:
        if quantity <= 0:
            raise DomainError('quantity must be greater than 0')

        for attempt in range(1, self.max_retries + 1):
            async with self.uow_factory() as uow:
                ledger = InventoryLedger(inventory_repo=uow.inventory_repo, clock=self.clock)
                before = await ledger.get_status(ticket_type_id)
                try:
                    after = await ledger.try_mutate(
                        ticket_type_id,
                        delta_sold=-quantity,
                        delta_held=0,
                        expected_version=before.version,
                    )
                    await AuditLog(transaction_repo=uow.transaction_repo).append(
                        InventoryTransaction.for_inventory(
                            type=TransactionType.REFUND,
                            quantity=quantity,
                            before=before,
                            after=after,
                            now=after.updated_at or self.clock(),
                            actor_id=actor_id,
                            reason=reason,
                            channel=channel,
                            session_id=session_id,
                        )
                    )
                    await uow.commit()
                except VersionConflictError:
                    metrics.version_conflicts.labels(operation='refund').inc()
                    Logger.base.info(
                        f'[LEDGER] Version conflict refunding {ticket_type_id} '
                        f'(attempt {attempt}/{self.max_retries})'
                    )
                    continue

            Logger.base.info(f'[LEDGER] Refunded {quantity} x {ticket_type_id}')
            if self.change_notifier is not None:
                await self.change_notifier.on_inventory_changed(
                    inventory=after, update_type=InventoryUpdateType.INVENTORY_CHANGED
                )
            return after

        raise TransientError(f'Could not refund {ticket_type_id}, retry')
