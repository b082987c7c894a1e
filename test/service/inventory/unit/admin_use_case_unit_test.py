"""
Unit tests for the admin inventory use cases

- CreateTicketInventoryUseCase
- AdjustCapacityUseCase: never revokes holds to shrink capacity
- RefundTicketsUseCase
- BulkUpdateInventoryUseCase: independent operations, per-operation outcome
- ListActiveHoldsUseCase: outstanding holds by event or ticket type
"""

from unittest.mock import AsyncMock

import pytest

from src.platform.exception.exceptions import (
    ConflictError,
    DomainError,
    InvariantViolationError,
    VersionConflictError,
)
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
from src.service.inventory.domain.enum import (
    BulkOperation,
    InventoryUpdateType,
    TransactionType,
)


async def _inventory(uow_factory, ticket_type_id: str = 'ga'):
    async with uow_factory() as uow:
        return await uow.inventory_repo.get(ticket_type_id=ticket_type_id)


async def _admin_adjustments(uow_factory, ticket_type_id: str = 'ga'):
    async with uow_factory() as uow:
        return await uow.transaction_repo.query(
            filter=AuditLogFilter(
                ticket_type_id=ticket_type_id, types=[TransactionType.ADMIN_ADJUSTMENT]
            )
        )


@pytest.mark.unit
class TestCreateTicketInventory:
    @pytest.mark.asyncio
    async def test_create_notifies_and_logs_opening_capacity(self, uow_factory, clock):
        notifier = AsyncMock()
        use_case = CreateTicketInventoryUseCase(
            uow_factory=uow_factory, change_notifier=notifier, clock=clock
        )

        inventory = await use_case.execute(
            ticket_type_id='ga', event_id='event-1', total_quantity=100, actor_id='admin-1'
        )

        assert inventory.available_quantity == 100
        (opening,) = await _admin_adjustments(uow_factory)
        assert opening.quantity == 100
        assert (opening.available_before, opening.available_after) == (0, 100)
        notifier.on_inventory_changed.assert_awaited_once_with(
            inventory=inventory, update_type=InventoryUpdateType.INVENTORY_CHANGED
        )

    @pytest.mark.asyncio
    async def test_duplicate_ticket_type(self, create_inventory):
        await create_inventory(ticket_type_id='ga')

        with pytest.raises(ConflictError):
            await create_inventory(ticket_type_id='ga')

    @pytest.mark.asyncio
    async def test_negative_capacity(self, create_inventory):
        with pytest.raises(DomainError):
            await create_inventory(total_quantity=-1)


@pytest.mark.unit
class TestAdjustCapacity:
    @pytest.fixture
    def use_case(self, uow_factory, clock) -> AdjustCapacityUseCase:
        return AdjustCapacityUseCase(uow_factory=uow_factory, clock=clock)

    @pytest.fixture
    async def committed(self, create_inventory, hold_manager):
        """capacity 10 with 2 sold and 3 held"""
        await create_inventory(total_quantity=10)
        sold = await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='a')
        await hold_manager.complete_hold(sold.hold.id)
        held = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='b')
        return held.hold

    @pytest.mark.asyncio
    async def test_reduction_below_sold_plus_held_is_rejected(
        self, use_case, committed, uow_factory
    ):
        before = await _inventory(uow_factory)

        with pytest.raises(InvariantViolationError) as exc_info:
            await use_case.execute(ticket_type_id='ga', new_total=4, actor_id='admin-1')

        assert exc_info.value.available_quantity == 5
        assert await _inventory(uow_factory) == before
        async with uow_factory() as uow:
            assert (await uow.hold_repo.get(hold_id=committed.id)).quantity == 3

    @pytest.mark.asyncio
    async def test_reduction_to_exactly_committed(self, use_case, committed, uow_factory):
        after = await use_case.execute(
            ticket_type_id='ga', new_total=5, actor_id='admin-1', reason='venue change'
        )

        assert after.available_quantity == 0
        *_, adjustment = await _admin_adjustments(uow_factory)
        assert adjustment.quantity == -5
        assert adjustment.reason == 'venue change'

    @pytest.mark.asyncio
    async def test_unchanged_total_is_a_no_op(self, use_case, committed, uow_factory):
        before = await _inventory(uow_factory)

        after = await use_case.execute(ticket_type_id='ga', new_total=10, actor_id='admin-1')

        assert after == before
        assert len(await _admin_adjustments(uow_factory)) == 1

    @pytest.mark.asyncio
    async def test_pinned_stale_version_is_not_retried(self, use_case, committed, uow_factory):
        stale = (await _inventory(uow_factory)).version - 1

        with pytest.raises(VersionConflictError):
            await use_case.execute(
                ticket_type_id='ga', new_total=20, actor_id='admin-1', expected_version=stale
            )

    @pytest.mark.asyncio
    async def test_increase_makes_room(self, use_case, committed, hold_manager):
        await use_case.execute(ticket_type_id='ga', new_total=15, actor_id='admin-1')

        result = await hold_manager.request_hold(ticket_type_id='ga', quantity=10, session_id='c')

        assert result.success
        assert result.available_quantity == 0


@pytest.mark.unit
class TestRefundTickets:
    @pytest.fixture
    async def sold_three(self, create_inventory, hold_manager):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        await hold_manager.complete_hold(granted.hold.id)

    @pytest.mark.asyncio
    async def test_refund_returns_units_to_stock(self, sold_three, uow_factory, clock):
        after = await RefundTicketsUseCase(uow_factory=uow_factory, clock=clock).execute(
            ticket_type_id='ga', quantity=2, actor_id='admin-1'
        )

        assert (after.sold_quantity, after.available_quantity) == (1, 9)

    @pytest.mark.asyncio
    async def test_refund_more_than_sold(self, sold_three, uow_factory, clock):
        with pytest.raises(InvariantViolationError):
            await RefundTicketsUseCase(uow_factory=uow_factory, clock=clock).execute(
                ticket_type_id='ga', quantity=4
            )

        assert (await _inventory(uow_factory)).sold_quantity == 3


@pytest.mark.unit
class TestBulkUpdateInventory:
    @pytest.fixture
    def use_case(self, uow_factory, clock, hold_manager) -> BulkUpdateInventoryUseCase:
        return BulkUpdateInventoryUseCase(
            adjust_capacity=AdjustCapacityUseCase(uow_factory=uow_factory, clock=clock),
            hold_manager=hold_manager,
        )

    @pytest.fixture
    async def ticket_types(self, create_inventory, hold_manager):
        await create_inventory(ticket_type_id='ga', total_quantity=10)
        await create_inventory(ticket_type_id='vip', total_quantity=5)
        await hold_manager.request_hold(ticket_type_id='vip', quantity=2, session_id='a')
        await hold_manager.request_hold(ticket_type_id='vip', quantity=1, session_id='b')

    @pytest.mark.asyncio
    async def test_mixed_operations(self, use_case, ticket_types, uow_factory):
        result = await use_case.execute(
            operations=[
                BulkOperationRequest('ga', BulkOperation.ADD_INVENTORY, quantity=5),
                BulkOperationRequest('ga', BulkOperation.REMOVE_INVENTORY, quantity=3),
                BulkOperationRequest('vip', BulkOperation.RELEASE_ALL_HOLDS),
                BulkOperationRequest('vip', BulkOperation.SET_INVENTORY, quantity=8),
            ],
            actor_id='admin-1',
        )

        assert result.success
        assert result.errors == []
        assert result.summary.total_processed == 4
        assert result.summary.successful_updates == 4
        assert result.summary.inventory_adjustment == 5 - 3 + 3
        assert result.summary.holds_released == 2
        assert [(o.previous_quantity, o.new_quantity) for o in result.outcomes] == [
            (10, 15),
            (15, 12),
            (None, None),
            (5, 8),
        ]
        assert (await _inventory(uow_factory, 'ga')).total_quantity == 12
        vip = await _inventory(uow_factory, 'vip')
        assert (vip.total_quantity, vip.held_quantity) == (8, 0)

    @pytest.mark.asyncio
    async def test_failures_are_reported_and_do_not_stop_the_rest(
        self, use_case, ticket_types, uow_factory
    ):
        result = await use_case.execute(
            operations=[
                BulkOperationRequest('missing', BulkOperation.ADD_INVENTORY, quantity=5),
                BulkOperationRequest('vip', BulkOperation.SET_INVENTORY, quantity=2),
                BulkOperationRequest('ga', BulkOperation.ADD_INVENTORY),
                BulkOperationRequest('ga', BulkOperation.ADD_INVENTORY, quantity=1),
            ]
        )

        assert not result.success
        assert [o.success for o in result.outcomes] == [False, False, False, True]
        assert result.summary.failed_updates == 3
        assert len(result.errors) == 3
        assert result.errors[0].startswith('missing:')
        assert (await _inventory(uow_factory, 'vip')).total_quantity == 5
        assert (await _inventory(uow_factory, 'ga')).total_quantity == 11

    @pytest.mark.asyncio
    async def test_release_all_holds_on_unknown_ticket_type_releases_nothing(
        self, use_case, ticket_types
    ):
        result = await use_case.execute(
            operations=[BulkOperationRequest('missing', BulkOperation.RELEASE_ALL_HOLDS)]
        )

        assert result.outcomes[0].success
        assert result.summary.holds_released == 0

    @pytest.mark.asyncio
    async def test_unknown_ticket_type_error_message(self, use_case, ticket_types):
        result = await use_case.execute(
            operations=[BulkOperationRequest('missing', BulkOperation.SET_INVENTORY, quantity=1)]
        )

        assert 'not found' in result.outcomes[0].error


@pytest.mark.unit
class TestListActiveHolds:
    @pytest.fixture
    async def holds(self, create_inventory, hold_manager, clock):
        await create_inventory(ticket_type_id='ga', event_id='event-1')
        await create_inventory(ticket_type_id='vip', event_id='event-1')
        await create_inventory(ticket_type_id='other', event_id='event-2')
        granted = {}
        for session_id, ticket_type_id in [('a', 'ga'), ('b', 'vip'), ('c', 'other'), ('d', 'ga')]:
            clock.advance(seconds=1)
            result = await hold_manager.request_hold(
                ticket_type_id=ticket_type_id, quantity=1, session_id=session_id
            )
            granted[session_id] = result.hold
        await hold_manager.release_hold(hold_id=granted['d'].id)
        return granted

    @pytest.fixture
    def use_case(self, uow_factory):
        return ListActiveHoldsUseCase(uow_factory=uow_factory)

    @pytest.mark.asyncio
    async def test_all_active_holds_oldest_first(self, use_case, holds):
        result = await use_case.execute()

        assert [hold.session_id for hold in result] == ['a', 'b', 'c']

    @pytest.mark.asyncio
    async def test_filter_by_event(self, use_case, holds):
        result = await use_case.execute(event_id='event-1')

        assert {hold.id for hold in result} == {holds['a'].id, holds['b'].id}

    @pytest.mark.asyncio
    async def test_filter_by_ticket_type_and_limit(self, use_case, holds):
        assert [h.id for h in await use_case.execute(ticket_type_id='ga')] == [holds['a'].id]
        assert len(await use_case.execute(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_non_positive_limit(self, use_case):
        with pytest.raises(DomainError):
            await use_case.execute(limit=0)
