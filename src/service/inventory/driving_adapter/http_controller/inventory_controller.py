from collections.abc import AsyncIterator
from typing import List

import anyio
import orjson
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from opentelemetry import trace
from sse_starlette.sse import EventSourceResponse

from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.inventory.app.service.hold_manager import HoldManager
from src.service.inventory.app.service.inventory_status_facade import InventoryStatusFacade
from src.service.inventory.driving_adapter.http_controller.schema.hold_schema import (
    HoldCompleteRequest,
    HoldCreateRequest,
    HoldCreationResponse,
    HoldReleaseRequest,
    PurchaseResponse,
    ReleaseResponse,
)
from src.service.inventory.driving_adapter.http_controller.schema.status_schema import (
    BulkStatusRequest,
    EventSummaryResponse,
    InventoryStatusResponse,
    InventorySummaryResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


@inject
async def get_hold_manager(
    hold_manager: HoldManager = Depends(Provide[Container.hold_manager]),
) -> HoldManager:
    return hold_manager


@inject
async def get_status_facade(
    status_facade: InventoryStatusFacade = Depends(Provide[Container.status_facade]),
) -> InventoryStatusFacade:
    return status_facade


# ============================ Holds ============================


@router.post(
    '/hold',
    status_code=status.HTTP_201_CREATED,
    responses={409: {'model': HoldCreationResponse, 'description': 'Not enough inventory'}},
)
@Logger.io
async def request_hold(
    request: HoldCreateRequest,
    hold_manager: HoldManager = Depends(get_hold_manager),
) -> HoldCreationResponse:
    with tracer.start_as_current_span('controller.request_hold') as span:
        span.set_attribute('ticket_type.id', request.ticket_type_id)
        span.set_attribute('hold.quantity', request.quantity)

        result = await hold_manager.request_hold(
            ticket_type_id=request.ticket_type_id,
            quantity=request.quantity,
            session_id=request.session_id,
            channel=request.channel,
            user_id=request.user_id,
            priority=request.priority,
            metadata=request.metadata,
        )
        response = HoldCreationResponse.from_result(result)
        if not result.success:
            # Caller may retry with a smaller quantity
            return JSONResponse(  # type: ignore[return-value]
                status_code=status.HTTP_409_CONFLICT, content=response.model_dump(mode='json')
            )
        return response


@router.post('/hold/release')
@Logger.io
async def release_hold(
    request: HoldReleaseRequest,
    hold_manager: HoldManager = Depends(get_hold_manager),
) -> ReleaseResponse:
    result = await hold_manager.release_hold(
        hold_id=request.hold_id,
        session_id=request.session_id,
        ticket_type_id=request.ticket_type_id,
    )
    return ReleaseResponse(
        released_hold_ids=result.released_hold_ids, released_quantity=result.released_quantity
    )


@router.post('/hold/{hold_id}/complete')
@Logger.io
async def complete_hold(
    hold_id: str,
    request: HoldCompleteRequest,
    hold_manager: HoldManager = Depends(get_hold_manager),
) -> PurchaseResponse:
    result = await hold_manager.complete_hold(hold_id, session_id=request.session_id)
    return PurchaseResponse.from_result(result)


# ============================ Status ============================


@router.get('/status/{ticket_type_id}')
async def get_status(
    ticket_type_id: str,
    status_facade: InventoryStatusFacade = Depends(get_status_facade),
) -> InventoryStatusResponse:
    return InventoryStatusResponse.from_view(await status_facade.get_status(ticket_type_id))


@router.post('/status/bulk')
async def get_bulk_status(
    request: BulkStatusRequest,
    status_facade: InventoryStatusFacade = Depends(get_status_facade),
) -> List[InventoryStatusResponse]:
    views = await status_facade.get_bulk_status(request.ticket_type_ids)
    return [InventoryStatusResponse.from_view(view) for view in views]


@router.get('/event/{event_id}/summary')
async def get_event_summary(
    event_id: str,
    status_facade: InventoryStatusFacade = Depends(get_status_facade),
) -> EventSummaryResponse:
    return EventSummaryResponse.from_summary(await status_facade.get_event_summary(event_id))


@router.get('/summary')
async def get_summary(
    status_facade: InventoryStatusFacade = Depends(get_status_facade),
) -> InventorySummaryResponse:
    return InventorySummaryResponse.from_summary(await status_facade.get_summary())


# ============================ SSE Endpoint ============================


@router.get('/status/{ticket_type_id}/stream', status_code=status.HTTP_200_OK)
@Logger.io
async def stream_status(
    ticket_type_id: str,
    status_facade: InventoryStatusFacade = Depends(get_status_facade),
) -> EventSourceResponse:
    """
    SSE stream of availability changes for one ticket type

    Flow:
    1. Send the current status as the initial event (404 if the ticket type is unknown)
    2. Push an `inventory_update` event for every committed ledger mutation
    """
    initial = await status_facade.get_status(ticket_type_id)
    Logger.base.info(f'[SSE] Client subscribing to ticket type {ticket_type_id}')

    async def event_generator() -> AsyncIterator[dict[str, str]]:
        stream = await status_facade.subscribe(ticket_type_id)
        try:
            yield {
                'event': 'initial_status',
                'data': InventoryStatusResponse.from_view(initial).model_dump_json(),
            }
            async for event_data in stream:
                yield {'event': 'inventory_update', 'data': orjson.dumps(event_data).decode()}
        except anyio.get_cancelled_exc_class():
            Logger.base.info(f'[SSE] Client disconnected from {ticket_type_id}')
            raise
        finally:
            with anyio.CancelScope(shield=True):
                await status_facade.unsubscribe(ticket_type_id, stream)

    return EventSourceResponse(event_generator())
