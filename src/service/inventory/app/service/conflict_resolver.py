"""
Conflict Resolver

Arbitrates scarce stock between requests that contend for the same ticket
type. Requests arriving within the coalescing window join one batch; the
first arrival leads it, waits out the window, then settles the whole batch
with a single ledger compare-and-swap.

Flow:
1. Leader opens a batch and sleeps `coalescing_window` seconds
2. Leader closes the batch and reads the ledger
3. Contenders are ordered by the strategy, granted greedily while stock remains
4. `reserve()` persists every grant against the version read in step 2
5. Version conflict -> back to step 2 (bounded), then transient failure for all
6. Every contender is woken with its outcome
"""

import itertools
from typing import Any, Awaitable, Callable, Dict, Optional

import anyio
import attrs
import uuid_utils as uuid
from opentelemetry import trace

from src.platform.exception.exceptions import TransientError, VersionConflictError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.inventory_metrics import metrics
from src.platform.types.clock import Clock, utc_now
from src.service.inventory.app.service.conflict_resolution_strategy import (
    ConflictResolutionStrategy,
    FirstComeFirstServedStrategy,
)
from src.service.inventory.domain.entity.conflict_resolution_entity import (
    ConflictingRequest,
    ConflictResolution,
)
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory


@attrs.define
class Contender:
    request: ConflictingRequest
    payload: Any  # opaque to the resolver, handed back to reserve()
    done: anyio.Event = attrs.field(factory=anyio.Event)
    outcome: Optional['ArbitrationOutcome'] = None


@attrs.define
class ArbitrationOutcome:
    granted: bool
    available_quantity: int
    reserved: Any = None  # whatever reserve() produced for this contender
    resolution: Optional[ConflictResolution] = None
    error: Optional[Exception] = None


@attrs.define
class _Batch:
    contenders: list[Contender] = attrs.field(factory=list)
    closed: bool = False


ReadInventory = Callable[[], Awaitable[TicketInventory]]
# (granted contenders, inventory they were decided against) -> (reserved per contender, post-state)
ReserveBatch = Callable[
    [list[Contender], TicketInventory], Awaitable[tuple[list[Any], TicketInventory]]
]


class ConflictResolver:
    def __init__(
        self,
        *,
        strategy: ConflictResolutionStrategy | None = None,
        coalescing_window: float = 0.05,
        max_attempts: int = 3,
        clock: Clock = utc_now,
    ) -> None:
        self.strategy = strategy or FirstComeFirstServedStrategy()
        self.coalescing_window = coalescing_window
        self.max_attempts = max_attempts
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)
        self._batches: Dict[str, _Batch] = {}
        self._sequence = itertools.count()

    def is_contended(self, ticket_type_id: str) -> bool:
        batch = self._batches.get(ticket_type_id)
        return batch is not None and not batch.closed

    async def arbitrate(
        self,
        ticket_type_id: str,
        *,
        request: ConflictingRequest,
        payload: Any,
        read: ReadInventory,
        reserve: ReserveBatch,
    ) -> ArbitrationOutcome:
        contender = Contender(
            request=attrs.evolve(request, sequence=next(self._sequence)), payload=payload
        )

        batch = self._batches.get(ticket_type_id)
        if batch is not None and not batch.closed:
            batch.contenders.append(contender)
            await contender.done.wait()
            return self._outcome_of(contender)

        batch = _Batch(contenders=[contender])
        self._batches[ticket_type_id] = batch
        try:
            await anyio.sleep(self.coalescing_window)
        finally:
            batch.closed = True
            if self._batches.get(ticket_type_id) is batch:
                del self._batches[ticket_type_id]
            # Followers are waiting on us; settle even if the leader was cancelled
            with anyio.CancelScope(shield=True):
                await self._settle(ticket_type_id, batch, read=read, reserve=reserve)

        return self._outcome_of(contender)

    @staticmethod
    def _outcome_of(contender: Contender) -> ArbitrationOutcome:
        if contender.outcome is None:
            raise TransientError(
                f'Arbitration for session {contender.request.session_id} ended without a decision'
            )
        if contender.outcome.error is not None:
            raise contender.outcome.error
        return contender.outcome

    async def _settle(
        self, ticket_type_id: str, batch: _Batch, *, read: ReadInventory, reserve: ReserveBatch
    ) -> None:
        with self.tracer.start_as_current_span(
            'conflict_resolver.settle',
            attributes={
                'ticket_type.id': ticket_type_id,
                'contenders': len(batch.contenders),
                'strategy': str(self.strategy.name),
            },
        ):
            try:
                await self._decide(ticket_type_id, batch, read=read, reserve=reserve)
            except Exception as e:
                Logger.base.error(f'[CONFLICT] Settling {ticket_type_id} failed: {e}')
                for contender in batch.contenders:
                    if contender.outcome is None:
                        contender.outcome = ArbitrationOutcome(
                            granted=False, available_quantity=0, error=e
                        )
            finally:
                for contender in batch.contenders:
                    contender.done.set()

    async def _decide(
        self, ticket_type_id: str, batch: _Batch, *, read: ReadInventory, reserve: ReserveBatch
    ) -> None:
        by_sequence = {c.request.sequence: c for c in batch.contenders}

        for attempt in range(1, self.max_attempts + 1):
            inventory = await read()
            ordered = self.strategy.order([c.request for c in batch.contenders])

            remaining = inventory.available_quantity
            grants: list[Contender] = []
            for request in ordered:
                # Skip over requests that don't fit; a smaller later one may still fit
                if request.requested_quantity <= remaining:
                    grants.append(by_sequence[request.sequence])
                    remaining -= request.requested_quantity

            if grants:
                try:
                    reserved, after = await reserve(grants, inventory)
                except VersionConflictError:
                    metrics.version_conflicts.labels(operation='conflict_resolver').inc()
                    Logger.base.info(
                        f'[CONFLICT] Version conflict settling {ticket_type_id} '
                        f'(attempt {attempt}/{self.max_attempts})'
                    )
                    continue
            else:
                reserved, after = [], inventory

            resolution = self._record(ticket_type_id, batch, inventory, ordered)
            granted_ids = {id(c) for c in grants}
            reserved_by_contender = {id(c): item for c, item in zip(grants, reserved)}
            for contender in batch.contenders:
                contender.outcome = ArbitrationOutcome(
                    granted=id(contender) in granted_ids,
                    available_quantity=after.available_quantity,
                    reserved=reserved_by_contender.get(id(contender)),
                    resolution=resolution,
                )
            Logger.base.info(
                f'[CONFLICT] Settled {ticket_type_id}: {len(grants)}/{len(batch.contenders)} '
                f'granted, {after.available_quantity} left'
            )
            return

        error = TransientError(
            f'Could not settle contention on {ticket_type_id} after {self.max_attempts} attempts'
        )
        for contender in batch.contenders:
            contender.outcome = ArbitrationOutcome(granted=False, available_quantity=0, error=error)

    def _record(
        self,
        ticket_type_id: str,
        batch: _Batch,
        inventory: TicketInventory,
        ordered: list[ConflictingRequest],
    ) -> Optional[ConflictResolution]:
        if len(batch.contenders) < 2:
            return None

        resolution = ConflictResolution(
            conflict_id=str(uuid.uuid7()),
            ticket_type_id=ticket_type_id,
            attempted_quantity=sum(r.requested_quantity for r in ordered),
            available_quantity=inventory.available_quantity,
            conflicting_requests=ordered,
            resolution=self.strategy.name,
            resolved_at=self.clock(),
        )
        metrics.conflict_resolutions.labels(strategy=str(self.strategy.name)).inc()
        Logger.base.info(
            f'[CONFLICT] {resolution.conflict_id}: {len(ordered)} requests for '
            f'{resolution.attempted_quantity} units of {ticket_type_id}, '
            f'{resolution.available_quantity} available ({self.strategy.name})'
        )
        return resolution
