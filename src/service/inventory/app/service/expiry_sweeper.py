"""
Expiry Sweeper

Background reclamation of abandoned holds. Each cycle lists active holds
whose expires_at has passed and expires them one by one through the hold
manager; a failure on one hold is logged and the cycle moves on.

Safe to run on several instances at once: expiring a hold that is no longer
active is a no-op.
"""

from datetime import datetime
from typing import Optional

import anyio
from opentelemetry import trace

from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.inventory_metrics import metrics
from src.platform.types.clock import Clock, utc_now
from src.service.inventory.app.dto.sweep_dto import SweepReport
from src.service.inventory.app.service.expiry_schedule import ExpirySchedule
from src.service.inventory.app.service.hold_manager import HoldManager


class ExpirySweeper:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        hold_manager: HoldManager,
        schedule: Optional[ExpirySchedule] = None,
        interval_seconds: float = 300.0,
        batch_size: int = 500,
        clock: Clock = utc_now,
    ) -> None:
        self.uow_factory = uow_factory
        self.hold_manager = hold_manager
        self.schedule = schedule
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.clock = clock
        self.tracer = trace.get_tracer(__name__)
        self._stop_requested = False
        self._wakeup: Optional[anyio.Event] = None

    async def sweep_once(self) -> SweepReport:
        report = SweepReport()
        now = self.clock()

        with self.tracer.start_as_current_span('expiry_sweeper.sweep') as span:
            async with self.uow_factory() as uow:
                expired = await uow.hold_repo.list_expired(now=now, limit=self.batch_size)
            report.scanned = len(expired)

            for hold in expired:
                try:
                    result = await self.hold_manager.expire_hold(hold.id)
                except Exception as e:
                    report.failed += 1
                    Logger.base.warning(f'[SWEEPER] Failed to expire hold {hold.id}: {e}')
                    continue

                if result.released:
                    report.expired += 1
                else:
                    report.skipped += 1

            if self.schedule is not None:
                self.schedule.pop_due(now)

            span.set_attribute('sweep.scanned', report.scanned)
            span.set_attribute('sweep.expired', report.expired)
            span.set_attribute('sweep.failed', report.failed)

        metrics.sweep_cycles.labels(result='partial' if report.failed else 'ok').inc()
        metrics.sweep_expired_holds.inc(report.expired)
        if report.scanned:
            Logger.base.info(
                f'[SWEEPER] Cycle done: scanned={report.scanned}, expired={report.expired}, '
                f'skipped={report.skipped}, failed={report.failed}'
            )
        return report

    def seconds_until_next_sweep(self, now: Optional[datetime] = None) -> float:
        """Fixed interval, shortened when a registered hold expires sooner"""
        delay = self.interval_seconds
        if self.schedule is not None:
            next_expiry = self.schedule.next_expiry()
            if next_expiry is not None:
                until = (next_expiry - (now or self.clock())).total_seconds()
                delay = min(delay, max(until, 0.0))
        return delay

    async def run(self) -> None:
        Logger.base.info(f'[SWEEPER] Started (interval={self.interval_seconds}s)')
        self._stop_requested = False
        while not self._stop_requested:
            self._wakeup = anyio.Event()
            with anyio.move_on_after(self.seconds_until_next_sweep()):
                await self._wakeup.wait()
            if self._stop_requested:
                break
            try:
                await self.sweep_once()
            except Exception as e:
                # Listing itself failed (storage unreachable); next cycle retries
                Logger.base.exception(f'[SWEEPER] Cycle failed: {e}')
        Logger.base.info('[SWEEPER] Stopped')

    def stop(self) -> None:
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()
