"""
Hold Manager

The only writer of holds. Every operation runs in one unit of work:
hold row change + ledger compare-and-swap + audit append, committed together.

Request flow:
1. Uncontended (stock to spare, no open arbitration batch): optimistic write,
   retried up to `max_retries` times on version conflict
2. Contended (not enough stock, no more than `scarcity_threshold` units
   would remain after the request, or a batch is already open): hand the
   request to the conflict resolver, which coalesces concurrent requests and
   grants them in strategy order
3. Granted holds are registered with the expiry scheduler and announced to
   the status notifier
"""

import time
from datetime import datetime, timedelta
from typing import Any, Optional

import attrs
from opentelemetry import trace

from src.platform.database.unit_of_work import AbstractUnitOfWork, UnitOfWorkFactory
from src.platform.exception.exceptions import (
    DomainError,
    ForbiddenError,
    HoldNotActiveError,
    NotFoundError,
    TransientError,
    VersionConflictError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.inventory_metrics import metrics
from src.platform.types.clock import Clock, utc_now
from src.service.inventory.app.dto.hold_dto import (
    HoldCreationResult,
    PurchaseResult,
    ReleaseResult,
)
from src.service.inventory.app.interface.i_expiry_scheduler import IExpiryScheduler
from src.service.inventory.app.interface.i_inventory_change_notifier import (
    IInventoryChangeNotifier,
)
from src.service.inventory.app.service.audit_log import AuditLog
from src.service.inventory.app.service.conflict_resolver import ConflictResolver, Contender
from src.service.inventory.app.service.inventory_ledger import InventoryLedger
from src.service.inventory.domain.entity.conflict_resolution_entity import ConflictingRequest
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.entity.inventory_transaction_entity import (
    InventoryTransaction,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import (
    HoldStatus,
    InventoryUpdateType,
    PurchaseChannel,
    TransactionType,
)
from src.service.inventory.domain.value_object.hold_timeout_policy import HoldTimeoutPolicy


@attrs.define(frozen=True)
class _HoldDraft:
    """Everything needed to create a hold once the resolver grants it"""

    ticket_type_id: str
    quantity: int
    session_id: str
    channel: PurchaseChannel
    timeout: timedelta
    user_id: Optional[str]
    metadata: dict[str, Any]


_TERMINATION = {
    HoldStatus.RELEASED: (TransactionType.HOLD_RELEASE, InventoryUpdateType.HOLD_RELEASED),
    HoldStatus.EXPIRED: (TransactionType.HOLD_EXPIRE, InventoryUpdateType.HOLD_EXPIRED),
}


class HoldManager:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        conflict_resolver: ConflictResolver,
        timeout_policy: HoldTimeoutPolicy,
        expiry_scheduler: Optional[IExpiryScheduler] = None,
        change_notifier: Optional[IInventoryChangeNotifier] = None,
        clock: Clock = utc_now,
        max_retries: int = 3,
        scarcity_threshold: int = 0,
    ) -> None:
        self.uow_factory = uow_factory
        self.conflict_resolver = conflict_resolver
        self.timeout_policy = timeout_policy
        self.expiry_scheduler = expiry_scheduler
        self.change_notifier = change_notifier
        self.clock = clock
        self.max_retries = max_retries
        self.scarcity_threshold = scarcity_threshold
        self.tracer = trace.get_tracer(__name__)

    def _ledger(self, uow: AbstractUnitOfWork) -> InventoryLedger:
        return InventoryLedger(inventory_repo=uow.inventory_repo, clock=self.clock)

    # ------------------------------------------------------------------
    # requestHold
    # ------------------------------------------------------------------

    @Logger.io
    async def request_hold(
        self,
        *,
        ticket_type_id: str,
        quantity: int,
        session_id: str,
        channel: PurchaseChannel | str = PurchaseChannel.ONLINE,
        user_id: Optional[str] = None,
        requested_at: Optional[datetime] = None,
        priority: int = 0,
        metadata: Optional[dict[str, Any]] = None,
    ) -> HoldCreationResult:
        if quantity <= 0:
            raise DomainError('quantity must be greater than 0')
        if not session_id:
            raise DomainError('session_id is required')
        timeout = self.timeout_policy.timeout_for(channel)
        channel = PurchaseChannel(channel)

        draft = _HoldDraft(
            ticket_type_id=ticket_type_id,
            quantity=quantity,
            session_id=session_id,
            channel=channel,
            timeout=timeout,
            user_id=user_id,
            metadata=dict(metadata or {}),
        )

        start = time.perf_counter()
        with self.tracer.start_as_current_span(
            'hold_manager.request_hold',
            attributes={
                'ticket_type.id': ticket_type_id,
                'hold.quantity': quantity,
                'hold.channel': str(channel),
            },
        ) as span:
            try:
                result = await self._request_hold(
                    draft=draft, requested_at=requested_at or self.clock(), priority=priority
                )
            except TransientError:
                metrics.hold_requests.labels(channel=str(channel), result='transient').inc()
                raise
            finally:
                metrics.hold_request_duration.labels(channel=str(channel)).observe(
                    time.perf_counter() - start
                )

            span.set_attribute('hold.granted', result.success)
            metrics.hold_requests.labels(
                channel=str(channel), result='granted' if result.success else 'insufficient'
            ).inc()

        if result.success and result.hold is not None:
            Logger.base.info(
                f'[HOLD] Granted {result.hold.id}: {quantity} x {ticket_type_id} '
                f'for session {session_id} until {result.hold.expires_at.isoformat()}'
            )
            if self.expiry_scheduler is not None:
                self.expiry_scheduler.register(result.hold)
        else:
            Logger.base.info(
                f'[HOLD] Rejected {quantity} x {ticket_type_id} for session {session_id}: '
                f'{result.available_quantity} available'
            )
        return result

    async def _request_hold(
        self, *, draft: _HoldDraft, requested_at: datetime, priority: int
    ) -> HoldCreationResult:
        ticket_type_id = draft.ticket_type_id

        for attempt in range(1, self.max_retries + 1):
            if self.conflict_resolver.is_contended(ticket_type_id):
                return await self._arbitrate(
                    draft=draft, requested_at=requested_at, priority=priority
                )

            async with self.uow_factory() as uow:
                ledger = self._ledger(uow)
                before = await ledger.get_status(ticket_type_id)
                if self._needs_arbitration(before, draft.quantity):
                    break

                now = self.clock()
                hold = self._create_hold(draft=draft, event_id=before.event_id, now=now)
                try:
                    after = await ledger.try_mutate(
                        ticket_type_id,
                        delta_sold=0,
                        delta_held=draft.quantity,
                        expected_version=before.version,
                    )
                    await uow.hold_repo.add(hold=hold)
                    await AuditLog(transaction_repo=uow.transaction_repo).append(
                        InventoryTransaction.for_hold(
                            type=TransactionType.HOLD_CREATE,
                            hold=hold,
                            before=before,
                            after=after,
                            now=now,
                        )
                    )
                    await uow.commit()
                except VersionConflictError:
                    metrics.version_conflicts.labels(operation='request_hold').inc()
                    Logger.base.info(
                        f'[HOLD] Version conflict on {ticket_type_id} '
                        f'(attempt {attempt}/{self.max_retries})'
                    )
                    continue

            await self._notify(after, InventoryUpdateType.HOLD_CREATED)
            return HoldCreationResult.granted(
                hold=hold, available_quantity=after.available_quantity
            )
        else:
            raise TransientError(
                f'Hold request for {ticket_type_id} lost {self.max_retries} version races, retry'
            )

        return await self._arbitrate(draft=draft, requested_at=requested_at, priority=priority)

    def _needs_arbitration(self, inventory: TicketInventory, quantity: int) -> bool:
        """
        Scarce stock goes through the resolver so concurrent requests for the
        last units are decided by timestamp, not by who commits first
        """
        if self.conflict_resolver.is_contended(inventory.ticket_type_id):
            return True
        return inventory.available_quantity - quantity <= self.scarcity_threshold

    async def _arbitrate(
        self, *, draft: _HoldDraft, requested_at: datetime, priority: int
    ) -> HoldCreationResult:
        ticket_type_id = draft.ticket_type_id
        outcome = await self.conflict_resolver.arbitrate(
            ticket_type_id,
            request=ConflictingRequest(
                session_id=draft.session_id,
                requested_quantity=draft.quantity,
                timestamp=requested_at,
                priority=priority,
                user_id=draft.user_id,
            ),
            payload=draft,
            read=lambda: self._read_inventory(ticket_type_id),
            reserve=self._reserve_batch,
        )
        if outcome.granted:
            return HoldCreationResult.granted(
                hold=outcome.reserved,
                available_quantity=outcome.available_quantity,
                conflict_resolution=outcome.resolution,
            )
        return HoldCreationResult.insufficient(
            requested_quantity=draft.quantity,
            available_quantity=outcome.available_quantity,
            conflict_resolution=outcome.resolution,
        )

    async def _read_inventory(self, ticket_type_id: str) -> TicketInventory:
        async with self.uow_factory() as uow:
            return await self._ledger(uow).get_status(ticket_type_id)

    async def _reserve_batch(
        self, grants: list[Contender], inventory: TicketInventory
    ) -> tuple[list[InventoryHold], TicketInventory]:
        """Persist every granted hold of one arbitration batch with a single ledger CAS"""
        async with self.uow_factory() as uow:
            now = self.clock()
            holds = [
                self._create_hold(draft=c.payload, event_id=inventory.event_id, now=now)
                for c in grants
            ]
            after = await self._ledger(uow).try_mutate(
                inventory.ticket_type_id,
                delta_sold=0,
                delta_held=sum(hold.quantity for hold in holds),
                expected_version=inventory.version,
            )

            audit_log = AuditLog(transaction_repo=uow.transaction_repo)
            running = inventory
            for hold in holds:
                step = running.apply(delta_sold=0, delta_held=hold.quantity, now=now)
                await uow.hold_repo.add(hold=hold)
                await audit_log.append(
                    InventoryTransaction.for_hold(
                        type=TransactionType.HOLD_CREATE,
                        hold=hold,
                        before=running,
                        after=step,
                        now=now,
                    )
                )
                running = step
            await uow.commit()

        await self._notify(after, InventoryUpdateType.HOLD_CREATED)
        return holds, after

    def _create_hold(self, *, draft: _HoldDraft, event_id: str, now: datetime) -> InventoryHold:
        return InventoryHold.create(
            ticket_type_id=draft.ticket_type_id,
            event_id=event_id,
            quantity=draft.quantity,
            session_id=draft.session_id,
            channel=draft.channel,
            timeout=draft.timeout,
            now=now,
            user_id=draft.user_id,
            metadata=draft.metadata,
        )

    # ------------------------------------------------------------------
    # releaseHold / expire
    # ------------------------------------------------------------------

    @Logger.io
    async def release_hold(
        self,
        *,
        hold_id: Optional[str] = None,
        session_id: Optional[str] = None,
        ticket_type_id: Optional[str] = None,
        admin_override: bool = False,
        actor_id: Optional[str] = None,
    ) -> ReleaseResult:
        """
        Release one hold, or every active hold of a session

        Idempotent: a hold that is already terminal is left alone and the
        call succeeds with nothing released.
        """
        if hold_id is None and session_id is None:
            raise DomainError('hold_id or session_id is required')

        with self.tracer.start_as_current_span(
            'hold_manager.release_hold',
            attributes={'hold.id': hold_id or '', 'session.id': session_id or ''},
        ):
            if hold_id is not None:
                return await self._terminate(
                    hold_id,
                    HoldStatus.RELEASED,
                    session_id=session_id,
                    admin_override=admin_override,
                    actor_id=actor_id,
                )

            async with self.uow_factory() as uow:
                holds = await uow.hold_repo.list_active_by_session(
                    session_id=session_id, ticket_type_id=ticket_type_id
                )

            result = ReleaseResult()
            for hold in holds:
                result = result.merge(
                    await self._terminate(hold.id, HoldStatus.RELEASED, actor_id=actor_id)
                )
            return result

    @Logger.io
    async def expire_hold(self, hold_id: str) -> ReleaseResult:
        """Reclaim an active hold whose expires_at has passed; no-op otherwise"""
        return await self._terminate(hold_id, HoldStatus.EXPIRED)

    @Logger.io
    async def release_all_holds(
        self, ticket_type_id: str, *, actor_id: Optional[str] = None
    ) -> ReleaseResult:
        async with self.uow_factory() as uow:
            holds = await uow.hold_repo.list_active(ticket_type_id=ticket_type_id)

        result = await self._release_each(holds, actor_id=actor_id)
        Logger.base.info(
            f'[HOLD] Force-released {len(result.released_hold_ids)} holds '
            f'({result.released_quantity} units) of {ticket_type_id}'
        )
        return result

    @Logger.io
    async def release_event_holds(
        self, event_id: str, *, actor_id: Optional[str] = None
    ) -> ReleaseResult:
        """Admin bulk release: every active hold on any ticket type of the event"""
        with self.tracer.start_as_current_span(
            'hold_manager.release_event_holds', attributes={'event.id': event_id}
        ):
            async with self.uow_factory() as uow:
                holds = await uow.hold_repo.list_active(event_id=event_id)

            result = await self._release_each(holds, actor_id=actor_id)
        Logger.base.info(
            f'[HOLD] Force-released {len(result.released_hold_ids)} holds '
            f'({result.released_quantity} units) of event {event_id}'
        )
        return result

    async def _release_each(
        self, holds: list[InventoryHold], *, actor_id: Optional[str]
    ) -> ReleaseResult:
        # One unit of work per hold; a hold finished meanwhile is a no-op
        result = ReleaseResult()
        for hold in holds:
            result = result.merge(
                await self._terminate(hold.id, HoldStatus.RELEASED, actor_id=actor_id)
            )
        return result

    async def _terminate(
        self,
        hold_id: str,
        new_status: HoldStatus,
        *,
        session_id: Optional[str] = None,
        admin_override: bool = False,
        actor_id: Optional[str] = None,
    ) -> ReleaseResult:
        transaction_type, update_type = _TERMINATION[new_status]

        for attempt in range(1, self.max_retries + 1):
            async with self.uow_factory() as uow:
                hold = await uow.hold_repo.get(hold_id=hold_id)
                if hold is None:
                    raise NotFoundError(f'Hold {hold_id} not found')
                if session_id is not None and hold.session_id != session_id and not admin_override:
                    raise ForbiddenError(f'Hold {hold_id} does not belong to session {session_id}')

                now = self.clock()
                if hold.status.is_terminal:
                    Logger.base.info(f'[HOLD] {hold_id} already {hold.status}, nothing to release')
                    return ReleaseResult()
                if new_status == HoldStatus.EXPIRED and hold.expires_at > now:
                    return ReleaseResult()

                ledger = self._ledger(uow)
                try:
                    before = await ledger.get_status(hold.ticket_type_id)
                    await uow.hold_repo.transition(hold=hold, new_status=new_status)
                    after = await ledger.try_mutate(
                        hold.ticket_type_id,
                        delta_sold=0,
                        delta_held=-hold.quantity,
                        expected_version=before.version,
                    )
                    await AuditLog(transaction_repo=uow.transaction_repo).append(
                        InventoryTransaction.for_hold(
                            type=transaction_type,
                            hold=hold,
                            before=before,
                            after=after,
                            now=now,
                            actor_id=actor_id,
                        )
                    )
                    await uow.commit()
                except VersionConflictError:
                    metrics.version_conflicts.labels(operation=str(transaction_type)).inc()
                    Logger.base.info(
                        f'[HOLD] Version conflict terminating {hold_id} '
                        f'(attempt {attempt}/{self.max_retries})'
                    )
                    continue
                except HoldNotActiveError:
                    # Another terminator (sweeper, completion) got there first
                    return ReleaseResult()

            metrics.holds_terminated.labels(status=str(new_status)).inc()
            Logger.base.info(
                f'[HOLD] {new_status.capitalize()} {hold_id}: {hold.quantity} x '
                f'{hold.ticket_type_id} back to stock ({after.available_quantity} available)'
            )
            await self._notify(after, update_type)
            return ReleaseResult(released_hold_ids=[hold_id], released_quantity=hold.quantity)

        raise TransientError(f'Could not release hold {hold_id} after {self.max_retries} attempts')

    # ------------------------------------------------------------------
    # completeHold
    # ------------------------------------------------------------------

    @Logger.io
    async def complete_hold(
        self,
        hold_id: str,
        *,
        session_id: Optional[str] = None,
        admin_override: bool = False,
    ) -> PurchaseResult:
        """
        Convert an active hold into a sale: held -= qty, sold += qty

        Status and expiry are re-checked here, at payment time. A hold past
        its expires_at is not completable even if the sweeper has not run yet.

        Raises:
            HoldNotActiveError: hold expired, released or already completed
        """
        with self.tracer.start_as_current_span(
            'hold_manager.complete_hold', attributes={'hold.id': hold_id}
        ):
            for attempt in range(1, self.max_retries + 1):
                async with self.uow_factory() as uow:
                    hold = await uow.hold_repo.get(hold_id=hold_id)
                    if hold is None:
                        raise NotFoundError(f'Hold {hold_id} not found')
                    if (
                        session_id is not None
                        and hold.session_id != session_id
                        and not admin_override
                    ):
                        raise ForbiddenError(
                            f'Hold {hold_id} does not belong to session {session_id}'
                        )

                    now = self.clock()
                    if not hold.is_active_at(now):
                        reason = hold.status if hold.status.is_terminal else 'expired'
                        raise HoldNotActiveError(f'Hold {hold_id} is {reason}')

                    ledger = self._ledger(uow)
                    before = await ledger.get_status(hold.ticket_type_id)
                    try:
                        completed = await uow.hold_repo.transition(
                            hold=hold, new_status=HoldStatus.COMPLETED
                        )
                        after = await ledger.try_mutate(
                            hold.ticket_type_id,
                            delta_sold=hold.quantity,
                            delta_held=-hold.quantity,
                            expected_version=before.version,
                        )
                        transaction = InventoryTransaction.for_hold(
                            type=TransactionType.PURCHASE_COMPLETE,
                            hold=hold,
                            before=before,
                            after=after,
                            now=now,
                        )
                        await AuditLog(transaction_repo=uow.transaction_repo).append(transaction)
                        await uow.commit()
                    except VersionConflictError:
                        metrics.version_conflicts.labels(operation='complete_hold').inc()
                        Logger.base.info(
                            f'[HOLD] Version conflict completing {hold_id} '
                            f'(attempt {attempt}/{self.max_retries})'
                        )
                        continue

                metrics.holds_terminated.labels(status=str(HoldStatus.COMPLETED)).inc()
                Logger.base.info(
                    f'[HOLD] Completed {hold_id}: {hold.quantity} x {hold.ticket_type_id} sold'
                )
                await self._notify(after, InventoryUpdateType.PURCHASE_COMPLETED)
                return PurchaseResult(
                    success=True,
                    hold=completed,
                    transaction=transaction,
                    remaining_available=after.available_quantity,
                )

        raise TransientError(f'Could not complete hold {hold_id} after {self.max_retries} attempts')

    async def _notify(self, inventory: TicketInventory, update_type: InventoryUpdateType) -> None:
        metrics.available_quantity.labels(ticket_type_id=inventory.ticket_type_id).set(
            inventory.available_quantity
        )
        if self.change_notifier is not None:
            await self.change_notifier.on_inventory_changed(
                inventory=inventory, update_type=update_type
            )
