from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.exception.exceptions import CustomBaseError, DomainError
from src.platform.logging.loguru_io import Logger
from src.service.inventory.app.command.adjust_capacity_use_case import AdjustCapacityUseCase
from src.service.inventory.app.dto.bulk_update_dto import (
    BulkOperationOutcome,
    BulkOperationRequest,
    BulkUpdateResult,
)
from src.service.inventory.app.service.hold_manager import HoldManager
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import BulkOperation


class BulkUpdateInventoryUseCase:
    """
    Apply a list of admin inventory operations.

    Operations run in order and independently: one failing (unknown ticket
    type, reduction below sold + held, ...) is reported in its outcome and
    does not stop the rest.
    """

    def __init__(
        self, *, adjust_capacity: AdjustCapacityUseCase, hold_manager: HoldManager
    ) -> None:
        self.adjust_capacity = adjust_capacity
        self.hold_manager = hold_manager

    @classmethod
    @inject
    def depends(
        cls,
        adjust_capacity: AdjustCapacityUseCase = Depends(AdjustCapacityUseCase.depends),
        hold_manager: HoldManager = Depends(Provide[Container.hold_manager]),
    ) -> Self:
        return cls(adjust_capacity=adjust_capacity, hold_manager=hold_manager)

    @Logger.io
    async def execute(
        self, *, operations: list[BulkOperationRequest], actor_id: Optional[str] = None
    ) -> BulkUpdateResult:
        outcomes = [await self._run(operation, actor_id=actor_id) for operation in operations]
        result = BulkUpdateResult.from_outcomes(outcomes)
        Logger.base.info(
            f'[BULK] {result.summary.successful_updates}/{result.summary.total_processed} '
            f'operations succeeded, capacity change {result.summary.inventory_adjustment:+d}, '
            f'{result.summary.holds_released} holds released'
        )
        return result

    async def _run(
        self, operation: BulkOperationRequest, *, actor_id: Optional[str]
    ) -> BulkOperationOutcome:
        try:
            if operation.operation == BulkOperation.RELEASE_ALL_HOLDS:
                released = await self.hold_manager.release_all_holds(
                    operation.ticket_type_id, actor_id=actor_id
                )
                return BulkOperationOutcome(
                    ticket_type_id=operation.ticket_type_id,
                    operation=operation.operation,
                    success=True,
                    holds_released=len(released.released_hold_ids),
                )

            before, after = await self.adjust_capacity.apply(
                ticket_type_id=operation.ticket_type_id,
                new_total_of=self._new_total_of(operation),
                actor_id=actor_id,
                reason=operation.reason or f'bulk {operation.operation}',
            )
            return BulkOperationOutcome(
                ticket_type_id=operation.ticket_type_id,
                operation=operation.operation,
                success=True,
                previous_quantity=before.total_quantity,
                new_quantity=after.total_quantity,
            )
        except CustomBaseError as e:
            Logger.base.warning(
                f'[BULK] {operation.operation} on {operation.ticket_type_id} failed: {e.message}'
            )
            return BulkOperationOutcome(
                ticket_type_id=operation.ticket_type_id,
                operation=operation.operation,
                success=False,
                error=e.message,
            )

    @staticmethod
    def _new_total_of(operation: BulkOperationRequest):
        quantity = operation.quantity
        if quantity is None or quantity < 0:
            raise DomainError(f'{operation.operation} needs a non-negative quantity')

        def new_total_of(current: TicketInventory) -> int:
            match operation.operation:
                case BulkOperation.ADD_INVENTORY:
                    return current.total_quantity + quantity
                case BulkOperation.REMOVE_INVENTORY:
                    return current.total_quantity - quantity
                case BulkOperation.SET_INVENTORY:
                    return quantity
            raise DomainError(f'Unsupported bulk operation: {operation.operation}')

        return new_total_of
