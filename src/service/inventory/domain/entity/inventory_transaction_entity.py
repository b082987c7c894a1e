from datetime import datetime
from typing import Any, Optional

import attrs
import uuid_utils as uuid

from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.entity.ticket_inventory_entity import TicketInventory
from src.service.inventory.domain.enum import PurchaseChannel, TransactionType


@attrs.define(frozen=True)
class InventoryTransaction:
    """
    One append-only row per inventory-affecting action.

    For ADMIN_ADJUSTMENT, `quantity` is the signed change of total capacity.
    """

    id: str
    type: TransactionType
    ticket_type_id: str
    event_id: str
    quantity: int
    channel: PurchaseChannel
    timestamp: datetime
    related_hold_id: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    actor_id: Optional[str] = None
    reason: Optional[str] = None
    available_before: Optional[int] = None
    available_after: Optional[int] = None
    metadata: dict[str, Any] = attrs.field(factory=dict)

    @classmethod
    def for_hold(
        cls,
        *,
        type: TransactionType,
        hold: InventoryHold,
        before: TicketInventory,
        after: TicketInventory,
        now: datetime,
        actor_id: Optional[str] = None,
    ) -> 'InventoryTransaction':
        return cls(
            id=str(uuid.uuid7()),
            type=type,
            ticket_type_id=hold.ticket_type_id,
            event_id=hold.event_id,
            quantity=hold.quantity,
            channel=hold.channel,
            timestamp=now,
            related_hold_id=hold.id,
            session_id=hold.session_id,
            user_id=hold.user_id,
            actor_id=actor_id,
            available_before=before.available_quantity,
            available_after=after.available_quantity,
        )

    @classmethod
    def for_inventory(
        cls,
        *,
        type: TransactionType,
        quantity: int,
        before: Optional[TicketInventory],
        after: TicketInventory,
        now: datetime,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        channel: PurchaseChannel = PurchaseChannel.ADMIN,
        session_id: Optional[str] = None,
    ) -> 'InventoryTransaction':
        return cls(
            id=str(uuid.uuid7()),
            type=type,
            ticket_type_id=after.ticket_type_id,
            event_id=after.event_id,
            quantity=quantity,
            channel=channel,
            timestamp=now,
            session_id=session_id,
            actor_id=actor_id,
            reason=reason,
            available_before=before.available_quantity if before else 0,
            available_after=after.available_quantity,
        )

    def ledger_delta(self) -> tuple[int, int, int]:
        """(delta_total, delta_sold, delta_held) this transaction applied to the ledger"""
        match self.type:
            case TransactionType.HOLD_CREATE:
                return 0, 0, self.quantity
            case TransactionType.HOLD_RELEASE | TransactionType.HOLD_EXPIRE:
                return 0, 0, -self.quantity
            case TransactionType.PURCHASE_COMPLETE:
                return 0, self.quantity, -self.quantity
            case TransactionType.REFUND:
                return 0, -self.quantity, 0
            case TransactionType.ADMIN_ADJUSTMENT:
                return self.quantity, 0, 0
        raise ValueError(f'Unknown transaction type: {self.type}')
