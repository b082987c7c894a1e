"""
Unit tests for InventoryLedger over the in-memory unit of work

Covers the compare-and-swap contract: version match required, invariant
checked before anything is written, and commit-time re-validation when two
units of work race on the same version.
"""

import pytest

from src.platform.exception.exceptions import (
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    VersionConflictError,
)
from src.service.inventory.app.service.inventory_ledger import InventoryLedger


@pytest.mark.unit
class TestInventoryLedger:
    @pytest.fixture
    async def inventory(self, create_inventory):
        return await create_inventory(ticket_type_id='ga', total_quantity=10)

    @pytest.mark.asyncio
    async def test_try_mutate_applies_deltas(self, uow_factory, clock, inventory):
        async with uow_factory() as uow:
            ledger = InventoryLedger(inventory_repo=uow.inventory_repo, clock=clock)
            after = await ledger.try_mutate(
                'ga', delta_sold=0, delta_held=3, expected_version=inventory.version
            )
            await uow.commit()

        assert after.held_quantity == 3
        assert after.version == inventory.version + 1

        async with uow_factory() as uow:
            stored = await InventoryLedger(inventory_repo=uow.inventory_repo).get_status('ga')
        assert stored == after

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, uow_factory, inventory):
        async with uow_factory() as uow:
            ledger = InventoryLedger(inventory_repo=uow.inventory_repo)
            with pytest.raises(VersionConflictError) as exc_info:
                await ledger.try_mutate(
                    'ga', delta_sold=0, delta_held=1, expected_version=inventory.version + 5
                )

        assert exc_info.value.expected_version == inventory.version + 5

    @pytest.mark.asyncio
    async def test_invariant_violation_leaves_ledger_untouched(self, uow_factory, inventory):
        async with uow_factory() as uow:
            ledger = InventoryLedger(inventory_repo=uow.inventory_repo)
            with pytest.raises(InvariantViolationError) as exc_info:
                await ledger.try_mutate(
                    'ga', delta_sold=0, delta_held=11, expected_version=inventory.version
                )
            await uow.commit()

        assert exc_info.value.available_quantity == 10
        async with uow_factory() as uow:
            stored = await InventoryLedger(inventory_repo=uow.inventory_repo).get_status('ga')
        assert stored.version == inventory.version
        assert stored.held_quantity == 0

    @pytest.mark.asyncio
    async def test_concurrent_units_on_same_version_exactly_one_wins(
        self, uow_factory, inventory
    ):
        first = uow_factory()
        second = uow_factory()
        async with first, second:
            await InventoryLedger(inventory_repo=first.inventory_repo).try_mutate(
                'ga', delta_sold=0, delta_held=6, expected_version=inventory.version
            )
            await InventoryLedger(inventory_repo=second.inventory_repo).try_mutate(
                'ga', delta_sold=0, delta_held=6, expected_version=inventory.version
            )

            await first.commit()
            with pytest.raises(VersionConflictError):
                await second.commit()

        async with uow_factory() as uow:
            stored = await InventoryLedger(inventory_repo=uow.inventory_repo).get_status('ga')
        assert stored.held_quantity == 6

    @pytest.mark.asyncio
    async def test_uncommitted_changes_are_discarded(self, uow_factory, inventory):
        async with uow_factory() as uow:
            await InventoryLedger(inventory_repo=uow.inventory_repo).try_mutate(
                'ga', delta_sold=0, delta_held=2, expected_version=inventory.version
            )

        async with uow_factory() as uow:
            stored = await InventoryLedger(inventory_repo=uow.inventory_repo).get_status('ga')
        assert stored.held_quantity == 0

    @pytest.mark.asyncio
    async def test_adjust_capacity_below_committed_is_rejected(self, uow_factory, inventory):
        async with uow_factory() as uow:
            ledger = InventoryLedger(inventory_repo=uow.inventory_repo)
            held = await ledger.try_mutate(
                'ga', delta_sold=2, delta_held=3, expected_version=inventory.version
            )
            with pytest.raises(InvariantViolationError):
                await ledger.adjust_capacity('ga', new_total=4)
            resized = await ledger.adjust_capacity('ga', new_total=5, expected_version=held.version)

        assert resized.available_quantity == 0

    @pytest.mark.asyncio
    async def test_unknown_ticket_type(self, uow_factory):
        async with uow_factory() as uow:
            with pytest.raises(NotFoundError):
                await InventoryLedger(inventory_repo=uow.inventory_repo).get_status('missing')

    @pytest.mark.asyncio
    async def test_duplicate_ticket_type_is_rejected(self, uow_factory, inventory):
        async with uow_factory() as uow:
            with pytest.raises(ConflictError):
                await InventoryLedger(inventory_repo=uow.inventory_repo).create(
                    ticket_type_id='ga', event_id='event-1', total_quantity=5
                )
