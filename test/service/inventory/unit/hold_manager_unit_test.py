"""
Unit tests for HoldManager

Hold lifecycle against the in-memory store:
1. request_hold: optimistic grant, insufficient stock, validation, retries
2. release_hold: idempotent, by hold or by session, ownership check
3. complete_hold: hold -> sale, re-validated at call time
4. expire_hold: only acts once expires_at has passed
"""

from datetime import timedelta

import anyio
import pytest
from sqlalchemy.exc import OperationalError

from src.platform.exception.exceptions import (
    DomainError,
    ForbiddenError,
    HoldNotActiveError,
    NotFoundError,
    TransientError,
    VersionConflictError,
)
from src.service.inventory.app.dto.audit_dto import AuditLogFilter
from src.service.inventory.app.service.conflict_resolver import ConflictResolver
from src.service.inventory.app.service.hold_manager import HoldManager
from src.service.inventory.domain.enum import HoldStatus, PurchaseChannel, TransactionType
from src.service.inventory.domain.value_object.hold_timeout_policy import HoldTimeoutPolicy
from src.service.inventory.driven_adapter.memory.in_memory_unit_of_work import (
    InMemoryUnitOfWork,
)


class ConflictingUnitOfWork(InMemoryUnitOfWork):
    """Loses the version race on the first `conflicts` commits it is asked to make"""

    def __init__(self, *, store, budget: dict[str, int]) -> None:
        super().__init__(store=store)
        self._budget = budget

    async def _commit(self) -> None:
        if self._budget['conflicts'] > 0:
            self._budget['conflicts'] -= 1
            await self.rollback()
            raise VersionConflictError('simulated concurrent writer')
        await super()._commit()


class UnreachableStoreUnitOfWork(InMemoryUnitOfWork):
    """Every commit fails the way a dropped database connection does"""

    async def _commit(self) -> None:
        await self.rollback()
        raise OperationalError('COMMIT', {}, ConnectionError('connection reset'))


async def _inventory(uow_factory, ticket_type_id: str = 'ga'):
    async with uow_factory() as uow:
        return await uow.inventory_repo.get(ticket_type_id=ticket_type_id)


async def _transactions(uow_factory, **filter_kwargs):
    async with uow_factory() as uow:
        return await uow.transaction_repo.query(filter=AuditLogFilter(**filter_kwargs))


@pytest.mark.unit
class TestRequestHold:
    @pytest.mark.asyncio
    async def test_grant_moves_stock_from_available_to_held(
        self, hold_manager, create_inventory, uow_factory, clock, expiry_schedule
    ):
        await create_inventory(ticket_type_id='ga', total_quantity=10)

        result = await hold_manager.request_hold(
            ticket_type_id='ga', quantity=4, session_id='sess-a', user_id='user-1'
        )

        assert result.success
        assert result.available_quantity == 6
        assert result.hold.status == HoldStatus.ACTIVE
        assert result.hold.expires_at == clock.now + timedelta(minutes=15)
        assert result.conflict_resolution is None

        inventory = await _inventory(uow_factory)
        assert (inventory.held_quantity, inventory.available_quantity) == (4, 6)
        assert len(expiry_schedule) == 1

        (created,) = await _transactions(
            uow_factory, types=[TransactionType.HOLD_CREATE], related_hold_id=result.hold.id
        )
        assert (created.available_before, created.available_after) == (10, 6)
        assert created.user_id == 'user-1'

    @pytest.mark.asyncio
    async def test_cash_channel_gets_longer_timeout(self, hold_manager, create_inventory, clock):
        await create_inventory(total_quantity=5)

        result = await hold_manager.request_hold(
            ticket_type_id='ga', quantity=1, session_id='box-office', channel=PurchaseChannel.CASH
        )

        assert result.hold.expires_at == clock.now + timedelta(hours=4)

    @pytest.mark.asyncio
    async def test_insufficient_stock_reports_what_is_left(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(total_quantity=10)
        await hold_manager.request_hold(ticket_type_id='ga', quantity=6, session_id='sess-a')

        result = await hold_manager.request_hold(
            ticket_type_id='ga', quantity=6, session_id='sess-b'
        )

        assert not result.success
        assert result.hold is None
        assert result.available_quantity == 4
        assert 'available 4' in result.error
        assert (await _inventory(uow_factory)).held_quantity == 6

    @pytest.mark.asyncio
    async def test_two_concurrent_requests_for_six_out_of_ten(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(total_quantity=10)
        results = []

        async def request(session_id: str) -> None:
            results.append(
                await hold_manager.request_hold(
                    ticket_type_id='ga', quantity=6, session_id=session_id
                )
            )

        async with anyio.create_task_group() as tg:
            tg.start_soon(request, 'sess-a')
            tg.start_soon(request, 'sess-b')

        granted = [r for r in results if r.success]
        rejected = [r for r in results if not r.success]
        assert len(granted) == 1
        assert len(rejected) == 1
        assert rejected[0].available_quantity == 4
        assert (await _inventory(uow_factory)).held_quantity == 6

    @pytest.mark.asyncio
    @pytest.mark.parametrize('quantity', [0, -2])
    async def test_non_positive_quantity(self, hold_manager, create_inventory, quantity):
        await create_inventory()

        with pytest.raises(DomainError):
            await hold_manager.request_hold(ticket_type_id='ga', quantity=quantity, session_id='s')

    @pytest.mark.asyncio
    async def test_unknown_channel(self, hold_manager, create_inventory):
        await create_inventory()

        with pytest.raises(DomainError):
            await hold_manager.request_hold(
                ticket_type_id='ga', quantity=1, session_id='s', channel='fax'
            )

    @pytest.mark.asyncio
    async def test_unknown_ticket_type(self, hold_manager):
        with pytest.raises(NotFoundError):
            await hold_manager.request_hold(ticket_type_id='missing', quantity=1, session_id='s')

    @pytest.mark.asyncio
    async def test_version_conflict_is_retried(self, store, create_inventory, clock, uow_factory):
        await create_inventory(total_quantity=10)
        budget = {'conflicts': 2}
        hold_manager = HoldManager(
            uow_factory=lambda: ConflictingUnitOfWork(store=store, budget=budget),
            conflict_resolver=ConflictResolver(coalescing_window=0.01, clock=clock),
            timeout_policy=HoldTimeoutPolicy.from_minutes(),
            clock=clock,
            max_retries=3,
        )

        result = await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='s')

        assert result.success
        assert budget['conflicts'] == 0
        assert (await _inventory(uow_factory)).held_quantity == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_transient_error(
        self, store, create_inventory, clock, uow_factory
    ):
        await create_inventory(total_quantity=10)
        hold_manager = HoldManager(
            uow_factory=lambda: ConflictingUnitOfWork(store=store, budget={'conflicts': 99}),
            conflict_resolver=ConflictResolver(coalescing_window=0.01, clock=clock),
            timeout_policy=HoldTimeoutPolicy.from_minutes(),
            clock=clock,
            max_retries=3,
        )

        with pytest.raises(TransientError):
            await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='s')

        inventory = await _inventory(uow_factory)
        assert inventory.held_quantity == 0
        assert await _transactions(uow_factory, types=[TransactionType.HOLD_CREATE]) == []

    @pytest.mark.asyncio
    async def test_lost_connection_on_commit_is_transient(
        self, store, create_inventory, clock, uow_factory
    ):
        await create_inventory(total_quantity=10)
        hold_manager = HoldManager(
            uow_factory=lambda: UnreachableStoreUnitOfWork(store=store),
            conflict_resolver=ConflictResolver(coalescing_window=0.01, clock=clock),
            timeout_policy=HoldTimeoutPolicy.from_minutes(),
            clock=clock,
        )

        with pytest.raises(TransientError):
            await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='s')

        assert (await _inventory(uow_factory)).held_quantity == 0


@pytest.mark.unit
class TestReleaseHold:
    @pytest.mark.asyncio
    async def test_release_returns_stock(self, hold_manager, create_inventory, uow_factory):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')

        result = await hold_manager.release_hold(hold_id=granted.hold.id)

        assert result.released_hold_ids == [granted.hold.id]
        assert result.released_quantity == 3
        assert (await _inventory(uow_factory)).available_quantity == 10
        async with uow_factory() as uow:
            assert (await uow.hold_repo.get(hold_id=granted.hold.id)).status == HoldStatus.RELEASED

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, hold_manager, create_inventory, uow_factory):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        await hold_manager.release_hold(hold_id=granted.hold.id)

        again = await hold_manager.release_hold(hold_id=granted.hold.id)

        assert not again.released
        assert again.released_quantity == 0
        assert (await _inventory(uow_factory)).available_quantity == 10
        releases = await _transactions(uow_factory, types=[TransactionType.HOLD_RELEASE])
        assert len(releases) == 1

    @pytest.mark.asyncio
    async def test_release_by_session_only_touches_that_session(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(ticket_type_id='ga', total_quantity=10)
        await create_inventory(ticket_type_id='vip', total_quantity=10)
        await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='a')
        await hold_manager.request_hold(ticket_type_id='vip', quantity=1, session_id='a')
        other = await hold_manager.request_hold(ticket_type_id='ga', quantity=4, session_id='b')

        result = await hold_manager.release_hold(session_id='a')

        assert len(result.released_hold_ids) == 2
        assert result.released_quantity == 3
        assert (await _inventory(uow_factory, 'ga')).held_quantity == 4
        async with uow_factory() as uow:
            assert (await uow.hold_repo.get(hold_id=other.hold.id)).status == HoldStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_release_by_session_filtered_by_ticket_type(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(ticket_type_id='ga', total_quantity=10)
        await create_inventory(ticket_type_id='vip', total_quantity=10)
        await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='a')
        await hold_manager.request_hold(ticket_type_id='vip', quantity=1, session_id='a')

        result = await hold_manager.release_hold(session_id='a', ticket_type_id='vip')

        assert result.released_quantity == 1
        assert (await _inventory(uow_factory, 'ga')).held_quantity == 2

    @pytest.mark.asyncio
    async def test_unknown_hold(self, hold_manager):
        with pytest.raises(NotFoundError):
            await hold_manager.release_hold(hold_id='no-such-hold')

    @pytest.mark.asyncio
    async def test_hold_of_another_session(self, hold_manager, create_inventory):
        await create_inventory()
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=1, session_id='a')

        with pytest.raises(ForbiddenError):
            await hold_manager.release_hold(hold_id=granted.hold.id, session_id='b')

        result = await hold_manager.release_hold(
            hold_id=granted.hold.id, session_id='b', admin_override=True, actor_id='admin-1'
        )
        assert result.released

    @pytest.mark.asyncio
    async def test_neither_hold_nor_session(self, hold_manager):
        with pytest.raises(DomainError):
            await hold_manager.release_hold()


@pytest.mark.unit
class TestCompleteHold:
    @pytest.mark.asyncio
    async def test_complete_converts_hold_into_sale(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')

        purchase = await hold_manager.complete_hold(granted.hold.id, session_id='a')

        assert purchase.success
        assert purchase.hold.status == HoldStatus.COMPLETED
        assert purchase.transaction.type == TransactionType.PURCHASE_COMPLETE
        assert purchase.remaining_available == 7
        inventory = await _inventory(uow_factory)
        assert (inventory.sold_quantity, inventory.held_quantity) == (3, 0)

    @pytest.mark.asyncio
    async def test_second_completion_is_rejected(self, hold_manager, create_inventory, uow_factory):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        await hold_manager.complete_hold(granted.hold.id)

        with pytest.raises(HoldNotActiveError):
            await hold_manager.complete_hold(granted.hold.id)

        assert (await _inventory(uow_factory)).sold_quantity == 3

    @pytest.mark.asyncio
    async def test_expired_hold_cannot_be_completed_before_the_sweep(
        self, hold_manager, create_inventory, uow_factory, clock
    ):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        clock.advance(minutes=15)

        with pytest.raises(HoldNotActiveError):
            await hold_manager.complete_hold(granted.hold.id)

        inventory = await _inventory(uow_factory)
        assert (inventory.sold_quantity, inventory.held_quantity) == (0, 3)

    @pytest.mark.asyncio
    async def test_released_hold_cannot_be_completed(self, hold_manager, create_inventory):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        await hold_manager.release_hold(hold_id=granted.hold.id)

        with pytest.raises(HoldNotActiveError):
            await hold_manager.complete_hold(granted.hold.id)

    @pytest.mark.asyncio
    async def test_complete_checks_session(self, hold_manager, create_inventory):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=1, session_id='a')

        with pytest.raises(ForbiddenError):
            await hold_manager.complete_hold(granted.hold.id, session_id='b')


@pytest.mark.unit
class TestExpireHold:
    @pytest.mark.asyncio
    async def test_not_yet_due_is_a_no_op(self, hold_manager, create_inventory, uow_factory, clock):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        clock.advance(minutes=14)

        result = await hold_manager.expire_hold(granted.hold.id)

        assert not result.released
        assert (await _inventory(uow_factory)).held_quantity == 3

    @pytest.mark.asyncio
    async def test_due_hold_is_expired(self, hold_manager, create_inventory, uow_factory, clock):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        clock.advance(minutes=15)

        result = await hold_manager.expire_hold(granted.hold.id)

        assert result.released_quantity == 3
        async with uow_factory() as uow:
            assert (await uow.hold_repo.get(hold_id=granted.hold.id)).status == HoldStatus.EXPIRED
        (expired,) = await _transactions(uow_factory, types=[TransactionType.HOLD_EXPIRE])
        assert expired.related_hold_id == granted.hold.id

    @pytest.mark.asyncio
    async def test_completed_hold_is_never_expired(
        self, hold_manager, create_inventory, uow_factory, clock
    ):
        await create_inventory(total_quantity=10)
        granted = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='a')
        await hold_manager.complete_hold(granted.hold.id)
        clock.advance(hours=1)

        result = await hold_manager.expire_hold(granted.hold.id)

        assert not result.released
        inventory = await _inventory(uow_factory)
        assert (inventory.sold_quantity, inventory.held_quantity) == (3, 0)

    @pytest.mark.asyncio
    async def test_release_all_holds_of_ticket_type(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(ticket_type_id='ga', total_quantity=10)
        await create_inventory(ticket_type_id='vip', total_quantity=10)
        await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='a')
        await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='b')
        await hold_manager.request_hold(ticket_type_id='vip', quantity=1, session_id='a')

        result = await hold_manager.release_all_holds('ga', actor_id='admin-1')

        assert result.released_quantity == 5
        assert (await _inventory(uow_factory, 'ga')).held_quantity == 0
        assert (await _inventory(uow_factory, 'vip')).held_quantity == 1
        releases = await _transactions(uow_factory, types=[TransactionType.HOLD_RELEASE])
        assert {tx.actor_id for tx in releases} == {'admin-1'}

    @pytest.mark.asyncio
    async def test_release_event_holds_spans_its_ticket_types(
        self, hold_manager, create_inventory, uow_factory
    ):
        await create_inventory(ticket_type_id='ga', total_quantity=10, event_id='event-1')
        await create_inventory(ticket_type_id='vip', total_quantity=10, event_id='event-1')
        await create_inventory(ticket_type_id='other', total_quantity=10, event_id='event-2')
        await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='a')
        vip = await hold_manager.request_hold(ticket_type_id='vip', quantity=1, session_id='b')
        await hold_manager.request_hold(ticket_type_id='other', quantity=4, session_id='a')
        completed = await hold_manager.request_hold(ticket_type_id='ga', quantity=1, session_id='c')
        await hold_manager.complete_hold(completed.hold.id)

        result = await hold_manager.release_event_holds('event-1', actor_id='admin-1')

        assert result.released_quantity == 3
        assert vip.hold.id in result.released_hold_ids
        assert (await _inventory(uow_factory, 'ga')).held_quantity == 0
        assert (await _inventory(uow_factory, 'ga')).sold_quantity == 1
        assert (await _inventory(uow_factory, 'vip')).held_quantity == 0
        assert (await _inventory(uow_factory, 'other')).held_quantity == 4
        async with uow_factory() as uow:
            assert await uow.hold_repo.list_active(event_id='event-1') == []

    @pytest.mark.asyncio
    async def test_release_event_holds_without_holds(self, hold_manager, create_inventory):
        await create_inventory(event_id='event-1')

        result = await hold_manager.release_event_holds('event-1')

        assert not result.released
        assert result.released_quantity == 0
