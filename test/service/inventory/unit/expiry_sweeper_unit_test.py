"""
Unit tests for ExpirySweeper

The clock is injected, so expiry is driven by advancing FakeClock rather
than sleeping.
"""

from datetime import timedelta
import anyio
import pytest

from src.service.inventory.app.dto.hold_dto import ReleaseResult
from src.service.inventory.app.service.expiry_sweeper import ExpirySweeper
from src.service.inventory.domain.enum import HoldStatus


@pytest.mark.unit
class TestExpirySweeper:
    @pytest.fixture
    def sweeper(self, uow_factory, hold_manager, expiry_schedule, clock) -> ExpirySweeper:
        return ExpirySweeper(
            uow_factory=uow_factory,
            hold_manager=hold_manager,
            schedule=expiry_schedule,
            interval_seconds=300,
            batch_size=100,
            clock=clock,
        )

    @pytest.fixture
    async def holds(self, hold_manager, create_inventory):
        await create_inventory(total_quantity=10)
        first = await hold_manager.request_hold(ticket_type_id='ga', quantity=2, session_id='a')
        second = await hold_manager.request_hold(ticket_type_id='ga', quantity=3, session_id='b')
        return first.hold, second.hold

    @pytest.mark.asyncio
    async def test_nothing_due(self, sweeper, holds, clock):
        clock.advance(minutes=10)

        report = await sweeper.sweep_once()

        assert (report.scanned, report.expired) == (0, 0)

    @pytest.mark.asyncio
    async def test_due_holds_are_reclaimed(self, sweeper, holds, clock, uow_factory):
        clock.advance(minutes=15)

        report = await sweeper.sweep_once()

        assert (report.scanned, report.expired, report.failed) == (2, 2, 0)
        async with uow_factory() as uow:
            inventory = await uow.inventory_repo.get(ticket_type_id='ga')
            statuses = {(await uow.hold_repo.get(hold_id=h.id)).status for h in holds}
        assert inventory.available_quantity == 10
        assert statuses == {HoldStatus.EXPIRED}

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(self, sweeper, holds, clock, uow_factory):
        clock.advance(minutes=15)
        await sweeper.sweep_once()

        report = await sweeper.sweep_once()

        assert report.scanned == 0
        async with uow_factory() as uow:
            assert (await uow.inventory_repo.get(ticket_type_id='ga')).held_quantity == 0

    @pytest.mark.asyncio
    async def test_completed_and_released_holds_are_left_alone(
        self, sweeper, holds, hold_manager, clock, uow_factory
    ):
        first, second = holds
        await hold_manager.complete_hold(first.id)
        await hold_manager.release_hold(hold_id=second.id)
        clock.advance(hours=1)

        report = await sweeper.sweep_once()

        assert report.scanned == 0
        async with uow_factory() as uow:
            inventory = await uow.inventory_repo.get(ticket_type_id='ga')
        assert (inventory.sold_quantity, inventory.held_quantity) == (2, 0)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_cycle(
        self, sweeper, holds, hold_manager, clock, uow_factory, monkeypatch
    ):
        first, second = holds
        expire_hold = hold_manager.expire_hold

        async def flaky_expire(hold_id: str) -> ReleaseResult:
            if hold_id == first.id:
                raise RuntimeError('storage hiccup')
            return await expire_hold(hold_id)

        clock.advance(minutes=15)
        monkeypatch.setattr(hold_manager, 'expire_hold', flaky_expire)
        report = await sweeper.sweep_once()
        monkeypatch.undo()

        assert (report.scanned, report.expired, report.failed) == (2, 1, 1)
        async with uow_factory() as uow:
            assert (await uow.hold_repo.get(hold_id=first.id)).status == HoldStatus.ACTIVE
            assert (await uow.hold_repo.get(hold_id=second.id)).status == HoldStatus.EXPIRED

        retry = await sweeper.sweep_once()
        assert retry.expired == 1

    @pytest.mark.asyncio
    async def test_batch_size_bounds_one_cycle(self, sweeper, holds, clock):
        sweeper.batch_size = 1
        clock.advance(minutes=15)

        first = await sweeper.sweep_once()
        second = await sweeper.sweep_once()

        assert (first.expired, second.expired) == (1, 1)

    @pytest.mark.asyncio
    async def test_wakes_up_for_the_earliest_registered_expiry(
        self, sweeper, holds, clock, expiry_schedule
    ):
        assert sweeper.seconds_until_next_sweep() == 300

        sweeper.interval_seconds = 3600
        assert sweeper.seconds_until_next_sweep() == timedelta(minutes=15).total_seconds()

        clock.advance(minutes=20)
        assert sweeper.seconds_until_next_sweep() == 0

        await sweeper.sweep_once()
        assert len(expiry_schedule) == 0
        assert sweeper.seconds_until_next_sweep() == 3600

    @pytest.mark.asyncio
    async def test_run_sweeps_until_stopped(self, sweeper, holds, clock, uow_factory):
        sweeper.interval_seconds = 0.01
        clock.advance(minutes=15)

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                tg.start_soon(sweeper.run)
                while True:
                    async with uow_factory() as uow:
                        held = (await uow.inventory_repo.get(ticket_type_id='ga')).held_quantity
                    if held == 0:
                        break
                    await anyio.sleep(0.01)
                sweeper.stop()
