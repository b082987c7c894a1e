from datetime import datetime
from typing import List, Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query, status

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.inventory.app.command.adjust_capacity_use_case import AdjustCapacityUseCase
from src.service.inventory.app.command.bulk_update_inventory_use_case import (
    BulkUpdateInventoryUseCase,
)
from src.service.inventory.app.command.create_ticket_inventory_use_case import (
    CreateTicketInventoryUseCase,
)
from src.service.inventory.app.command.refund_tickets_use_case import RefundTicketsUseCase
from src.service.inventory.app.dto.audit_dto import AuditLogFilter
from src.service.inventory.app.dto.bulk_update_dto import BulkOperationRequest
from src.service.inventory.app.query.list_active_holds_use_case import ListActiveHoldsUseCase
from src.service.inventory.app.query.query_audit_log_use_case import QueryAuditLogUseCase
from src.service.inventory.app.query.reconcile_inventory_use_case import (
    ReconcileInventoryUseCase,
)
from src.service.inventory.app.service.expiry_sweeper import ExpirySweeper
from src.service.inventory.app.service.hold_manager import HoldManager
from src.service.inventory.domain.enum import TransactionType
from src.service.inventory.driving_adapter.http_controller.schema.admin_schema import (
    AuditEntryResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    CapacityAdjustRequest,
    ReconciliationResponse,
    RefundRequest,
    SweepResponse,
    TicketInventoryCreateRequest,
    TicketInventoryResponse,
)
from src.service.inventory.driving_adapter.http_controller.schema.hold_schema import (
    HoldResponse,
    ReleaseResponse,
)


router = APIRouter()


@inject
async def get_expiry_sweeper(
    sweeper: ExpirySweeper = Depends(Provide[Container.expiry_sweeper]),
) -> ExpirySweeper:
    return sweeper


@inject
async def get_hold_manager(
    hold_manager: HoldManager = Depends(Provide[Container.hold_manager]),
) -> HoldManager:
    return hold_manager


@router.post('/ticket_type', status_code=status.HTTP_201_CREATED)
@Logger.io
async def create_ticket_inventory(
    request: TicketInventoryCreateRequest,
    use_case: CreateTicketInventoryUseCase = Depends(CreateTicketInventoryUseCase.depends),
) -> TicketInventoryResponse:
    inventory = await use_case.execute(
        ticket_type_id=request.ticket_type_id,
        event_id=request.event_id,
        total_quantity=request.total_quantity,
        actor_id=request.actor_id,
    )
    return TicketInventoryResponse.from_entity(inventory)


@router.patch('/ticket_type/{ticket_type_id}/capacity')
@Logger.io
async def adjust_capacity(
    ticket_type_id: str,
    request: CapacityAdjustRequest,
    use_case: AdjustCapacityUseCase = Depends(AdjustCapacityUseCase.depends),
) -> TicketInventoryResponse:
    inventory = await use_case.execute(
        ticket_type_id=ticket_type_id,
        new_total=request.new_total,
        actor_id=request.actor_id,
        reason=request.reason,
        expected_version=request.expected_version,
    )
    return TicketInventoryResponse.from_entity(inventory)


@router.post('/ticket_type/{ticket_type_id}/refund')
@Logger.io
async def refund_tickets(
    ticket_type_id: str,
    request: RefundRequest,
    use_case: RefundTicketsUseCase = Depends(RefundTicketsUseCase.depends),
) -> TicketInventoryResponse:
    inventory = await use_case.execute(
        ticket_type_id=ticket_type_id,
        quantity=request.quantity,
        actor_id=request.actor_id,
        reason=request.reason,
        session_id=request.session_id,
    )
    return TicketInventoryResponse.from_entity(inventory)


@router.post('/bulk')
@Logger.io
async def bulk_update(
    request: BulkUpdateRequest,
    use_case: BulkUpdateInventoryUseCase = Depends(BulkUpdateInventoryUseCase.depends),
) -> BulkUpdateResponse:
    result = await use_case.execute(
        operations=[
            BulkOperationRequest(
                ticket_type_id=item.ticket_type_id,
                operation=item.operation,
                quantity=item.quantity,
                reason=item.reason,
            )
            for item in request.operations
        ],
        actor_id=request.actor_id,
    )
    return BulkUpdateResponse.from_result(result)


@router.get('/audit')
@Logger.io
async def query_audit_log(
    ticket_type_id: Optional[str] = None,
    event_id: Optional[str] = None,
    types: List[TransactionType] = Query(default=[]),
    related_hold_id: Optional[str] = None,
    session_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=10_000),
    use_case: QueryAuditLogUseCase = Depends(QueryAuditLogUseCase.depends),
) -> List[AuditEntryResponse]:
    transactions = await use_case.execute(
        filter=AuditLogFilter(
            ticket_type_id=ticket_type_id,
            event_id=event_id,
            types=types or None,
            related_hold_id=related_hold_id,
            session_id=session_id,
            since=since,
            until=until,
            limit=limit,
        )
    )
    return [AuditEntryResponse.from_entity(tx) for tx in transactions]


@router.get('/ticket_type/{ticket_type_id}/reconcile')
@Logger.io
async def reconcile_inventory(
    ticket_type_id: str,
    use_case: ReconcileInventoryUseCase = Depends(ReconcileInventoryUseCase.depends),
) -> ReconciliationResponse:
    return ReconciliationResponse.from_report(await use_case.execute(ticket_type_id=ticket_type_id))


@router.post('/sweep')
@Logger.io
async def run_sweep(sweeper: ExpirySweeper = Depends(get_expiry_sweeper)) -> SweepResponse:
    """Run one expiry cycle now instead of waiting for the next interval"""
    return SweepResponse.from_report(await sweeper.sweep_once())


@router.get('/holds')
@Logger.io
async def list_active_holds(
    event_id: Optional[str] = None,
    ticket_type_id: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=10_000),
    use_case: ListActiveHoldsUseCase = Depends(ListActiveHoldsUseCase.depends),
) -> List[HoldResponse]:
    holds = await use_case.execute(event_id=event_id, ticket_type_id=ticket_type_id, limit=limit)
    return [HoldResponse.from_entity(hold) for hold in holds]


@router.post('/event/{event_id}/release_holds')
@Logger.io
async def release_event_holds(
    event_id: str,
    actor_id: Optional[str] = None,
    hold_manager: HoldManager = Depends(get_hold_manager),
) -> ReleaseResponse:
    """Force-release every active hold of the event, across its ticket types"""
    result = await hold_manager.release_event_holds(event_id, actor_id=actor_id)
    return ReleaseResponse(
        released_hold_ids=result.released_hold_ids, released_quantity=result.released_quantity
    )
