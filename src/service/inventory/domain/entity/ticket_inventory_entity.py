from datetime import datetime
from typing import Optional

import attrs

from src.platform.exception.exceptions import InvariantViolationError


@attrs.define(frozen=True)
class TicketInventory:
    """
    Authoritative counters for one ticket type.

    available = total - sold - held is derived, never stored.
    Every state (including evolved ones) is validated on construction, so an
    instance that exists always satisfies sold + held <= total.
    """

    ticket_type_id: str
    event_id: str
    total_quantity: int
    sold_quantity: int = 0
    held_quantity: int = 0
    version: int = 1
    updated_at: Optional[datetime] = None

    def __attrs_post_init__(self) -> None:
        if self.total_quantity < 0 or self.sold_quantity < 0 or self.held_quantity < 0:
            raise InvariantViolationError(
                f'Negative quantity for ticket type {self.ticket_type_id}: '
                f'total={self.total_quantity}, sold={self.sold_quantity}, held={self.held_quantity}',
                available_quantity=max(self.available_quantity, 0),
            )
        if self.sold_quantity + self.held_quantity > self.total_quantity:
            raise InvariantViolationError(
                f'Insufficient inventory for ticket type {self.ticket_type_id}: '
                f'sold({self.sold_quantity}) + held({self.held_quantity}) '
                f'> total({self.total_quantity})',
                available_quantity=max(self.available_quantity, 0),
            )

    @property
    def available_quantity(self) -> int:
        return self.total_quantity - self.sold_quantity - self.held_quantity

    @classmethod
    def create(
        cls, *, ticket_type_id: str, event_id: str, total_quantity: int, now: datetime
    ) -> 'TicketInventory':
        return cls(
            ticket_type_id=ticket_type_id,
            event_id=event_id,
            total_quantity=total_quantity,
            version=1,
            updated_at=now,
        )

    def apply(self, *, delta_sold: int, delta_held: int, now: datetime) -> 'TicketInventory':
        try:
            return attrs.evolve(
                self,
                sold_quantity=self.sold_quantity + delta_sold,
                held_quantity=self.held_quantity + delta_held,
                version=self.version + 1,
                updated_at=now,
            )
        except InvariantViolationError as e:
            # Report what the caller could still get from the pre-mutation state
            e.available_quantity = self.available_quantity
            raise

    def with_total(self, *, new_total: int, now: datetime) -> 'TicketInventory':
        if new_total < self.sold_quantity + self.held_quantity:
            raise InvariantViolationError(
                f'Cannot set capacity of {self.ticket_type_id} to {new_total}: '
                f'{self.sold_quantity} sold and {self.held_quantity} held',
                available_quantity=self.available_quantity,
            )
        return attrs.evolve(
            self, total_quantity=new_total, version=self.version + 1, updated_at=now
        )
