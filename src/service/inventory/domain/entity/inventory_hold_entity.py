from datetime import datetime, timedelta
from typing import Any, Optional

import attrs
import uuid_utils as uuid

from src.platform.exception.exceptions import DomainError, HoldNotActiveError
from src.service.inventory.domain.enum import HoldStatus, PurchaseChannel


@attrs.define(frozen=True)
class InventoryHold:
    """Time-boxed reservation of `quantity` units of a ticket type. Terminal states are final."""

    id: str
    ticket_type_id: str
    event_id: str
    quantity: int
    session_id: str
    channel: PurchaseChannel
    created_at: datetime
    expires_at: datetime
    status: HoldStatus = HoldStatus.ACTIVE
    user_id: Optional[str] = None
    metadata: dict[str, Any] = attrs.field(factory=dict)

    @classmethod
    def create(
        cls,
        *,
        ticket_type_id: str,
        event_id: str,
        quantity: int,
        session_id: str,
        channel: PurchaseChannel,
        timeout: timedelta,
        now: datetime,
        user_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> 'InventoryHold':
        if quantity <= 0:
            raise DomainError('quantity must be greater than 0')
        if not session_id:
            raise DomainError('session_id is required')
        return cls(
            id=str(uuid.uuid7()),
            ticket_type_id=ticket_type_id,
            event_id=event_id,
            quantity=quantity,
            session_id=session_id,
            channel=channel,
            created_at=now,
            expires_at=now + timeout,
            status=HoldStatus.ACTIVE,
            user_id=user_id,
            metadata=dict(metadata or {}),
        )

    def is_active_at(self, now: datetime) -> bool:
        return self.status == HoldStatus.ACTIVE and self.expires_at > now

    def is_expired_at(self, now: datetime) -> bool:
        return self.status == HoldStatus.ACTIVE and self.expires_at <= now

    def transition(self, new_status: HoldStatus) -> 'InventoryHold':
        if self.status.is_terminal:
            raise HoldNotActiveError(f'Hold {self.id} is already {self.status}')
        if new_status == HoldStatus.ACTIVE:
            raise DomainError(f'Hold {self.id} cannot transition back to active')
        return attrs.evolve(self, status=new_status)
