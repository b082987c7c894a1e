from typing import Callable, Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import TransientError, VersionConflictError
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
from src.service.inventory.domain.enum import InventoryUpdateType, TransactionType


class AdjustCapacityUseCase:
    """
    Change the total capacity of a ticket type.

    A reduction below sold + held is rejected outright (InvariantViolationError)
    and leaves the ledger untouched; active holds are never revoked to make
    room. Version conflicts are retried unless the caller pinned a version.
    """

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
        new_total: int,
        actor_id: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TicketInventory:
        _, after = await self.apply(
            ticket_type_id=ticket_type_id,
            new_total_of=lambda _current: new_total,
            actor_id=actor_id,
            reason=reason,
            expected_version=expected_version,
        )
        return after

    async def apply(
        self,
        *,
        ticket_type_id: str,
        new_total_of: Callable[[TicketInventory], int],
        actor_id: Optional[str],
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> tuple[TicketInventory, TicketInventory]:
        """
        Recompute the new total from the freshly read state on every attempt

        Returns:
            (state before, state after); identical when the total did not change
        """
        attempts = 1 if expected_version is not None else self.max_retries
        for attempt in range(1, attempts + 1):
            async with self.uow_factory() as uow:
                ledger = InventoryLedger(inventory_repo=uow.inventory_repo, clock=self.clock)
                before = await ledger.get_status(ticket_type_id)
                new_total = new_total_of(before)
                if new_total == before.total_quantity:
                    return before, before

                try:
                    after = await ledger.adjust_capacity(
                        ticket_type_id,
                        new_total=new_total,
                        expected_version=(
                            expected_version if expected_version is not None else before.version
                        ),
                    )
                    await AuditLog(transaction_repo=uow.transaction_repo).append(
                        InventoryTransaction.for_inventory(
                            type=TransactionType.ADMIN_ADJUSTMENT,
                            quantity=after.total_quantity - before.total_quantity,
                            before=before,
                            after=after,
                            now=after.updated_at or self.clock(),
                            actor_id=actor_id,
                            reason=reason,
                        )
                    )
                    await uow.commit()
                except VersionConflictError:
                    metrics.version_conflicts.labels(operation='adjust_capacity').inc()
                    if expected_version is not None:
                        raise
                    Logger.base.info(
                        f'[LEDGER] Version conflict adjusting {ticket_type_id} '
                        f'(attempt {attempt}/{attempts})'
                    )
                    continue

            if self.change_notifier is not None:
                await self.change_notifier.on_inventory_changed(
                    inventory=after, update_type=InventoryUpdateType.INVENTORY_CHANGED
                )
            return before, after

        raise TransientError(f'Could not adjust capacity of {ticket_type_id}, retry')
