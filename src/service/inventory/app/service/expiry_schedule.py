"""Min-heap of registered hold expiries; tells the sweeper when to wake up next"""

import heapq
import threading
from datetime import datetime
from typing import Optional

from src.service.inventory.app.interface.i_expiry_scheduler import IExpiryScheduler
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold


class ExpirySchedule(IExpiryScheduler):
    def __init__(self) -> None:
        self._heap: list[tuple[datetime, str]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._heap)

    def register(self, hold: InventoryHold) -> None:
        with self._lock:
            heapq.heappush(self._heap, (hold.expires_at, hold.id))

    def next_expiry(self) -> Optional[datetime]:
        with self._lock:
            return self._heap[0][0] if self._heap else None

    def pop_due(self, now: datetime) -> list[str]:
        """Forget every entry due at `now`; the sweep itself re-reads holds from storage"""
        due: list[str] = []
        with self._lock:
            while self._heap and self._heap[0][0] <= now:
                due.append(heapq.heappop(self._heap)[1])
        return due
