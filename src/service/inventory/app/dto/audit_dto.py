"""
Audit DTOs

Filters and derived views over the inventory transaction log.
"""

from datetime import datetime
from typing import Optional

import attrs

from src.service.inventory.domain.enum import TransactionType


@attrs.define
class AuditLogFilter:
    ticket_type_id: Optional[str] = None
    event_id: Optional[str] = None
    types: Optional[list[TransactionType]] = None
    related_hold_id: Optional[str] = None
    session_id: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: Optional[int] = None


@attrs.define
class LedgerTotals:
    """Counters recomputed by folding the transaction log"""

    total_quantity: int = 0
    sold_quantity: int = 0
    held_quantity: int = 0
    transaction_count: int = 0

    @property
    def available_quantity(self) -> int:
        return self.total_quantity - self.sold_quantity - self.held_quantity


@attrs.define
class ReconciliationReport:
    ticket_type_id: str
    ledger: LedgerTotals
    replayed: LedgerTotals
    active_hold_quantity: int

    @property
    def is_consistent(self) -> bool:
        return (
            self.ledger.total_quantity == self.replayed.total_quantity
            and self.ledger.sold_quantity == self.replayed.sold_quantity
            and self.ledger.held_quantity == self.replayed.held_quantity
            and self.ledger.held_quantity == self.active_hold_quantity
        )

    @property
    def discrepancies(self) -> dict[str, int]:
        """field -> ledger minus replayed; empty when consistent"""
        diffs = {
            'total_quantity': self.ledger.total_quantity - self.replayed.total_quantity,
            'sold_quantity': self.ledger.sold_quantity - self.replayed.sold_quantity,
            'held_quantity': self.ledger.held_quantity - self.replayed.held_quantity,
            'active_holds': self.ledger.held_quantity - self.active_hold_quantity,
        }
        return {key: value for key, value in diffs.items() if value}
