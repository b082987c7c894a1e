from datetime import datetime
from typing import Any, List, Optional, Self

from pydantic import BaseModel, Field, model_validator

from src.service.inventory.app.dto.hold_dto import HoldCreationResult, PurchaseResult
from src.service.inventory.domain.entity.inventory_hold_entity import InventoryHold
from src.service.inventory.domain.enum import HoldStatus, PurchaseChannel


class HoldCreateRequest(BaseModel):
    ticket_type_id: str
    quantity: int = Field(gt=0)
    session_id: str = Field(min_length=1)
    channel: PurchaseChannel = PurchaseChannel.ONLINE
    user_id: Optional[str] = None
    priority: int = 0
    metadata: dict[str, Any] = {}

    class Config:
        json_schema_extra = {
            'examples': [
                {
                    'ticket_type_id': 'ga-2025',
                    'quantity': 2,
                    'session_id': 'sess-8f2c',
                    'channel': 'online',
                },
            ]
        }


class HoldResponse(BaseModel):
    id: str  # UUID7
    ticket_type_id: str
    event_id: str
    quantity: int
    session_id: str
    user_id: Optional[str] = None
    channel: PurchaseChannel
    status: HoldStatus
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_entity(cls, hold: InventoryHold) -> Self:
        return cls(
            id=hold.id,
            ticket_type_id=hold.ticket_type_id,
            event_id=hold.event_id,
            quantity=hold.quantity,
            session_id=hold.session_id,
            user_id=hold.user_id,
            channel=hold.channel,
            status=hold.status,
            created_at=hold.created_at,
            expires_at=hold.expires_at,
        )


class HoldCreationResponse(BaseModel):
    success: bool
    requested_quantity: int
    available_quantity: int
    hold: Optional[HoldResponse] = None
    error: Optional[str] = None
    conflict_id: Optional[str] = None  # set when the request went through arbitration

    @classmethod
    def from_result(cls, result: HoldCreationResult) -> Self:
        return cls(
            success=result.success,
            requested_quantity=result.requested_quantity,
            available_quantity=result.available_quantity,
            hold=HoldResponse.from_entity(result.hold) if result.hold else None,
            error=result.error,
            conflict_id=(
                result.conflict_resolution.conflict_id if result.conflict_resolution else None
            ),
        )


class HoldReleaseRequest(BaseModel):
    hold_id: Optional[str] = None
    session_id: Optional[str] = None
    ticket_type_id: Optional[str] = None  # narrows a session-wide release

    @model_validator(mode='after')
    def require_hold_or_session(self) -> Self:
        if not self.hold_id and not self.session_id:
            raise ValueError('hold_id or session_id is required')
        return self


class ReleaseResponse(BaseModel):
    released_hold_ids: List[str]
    released_quantity: int


class HoldCompleteRequest(BaseModel):
    session_id: Optional[str] = None


class PurchaseResponse(BaseModel):
    success: bool
    hold: HoldResponse
    transaction_id: str
    remaining_available: int

    @classmethod
    def from_result(cls, result: PurchaseResult) -> Self:
        return cls(
            success=result.success,
            hold=HoldResponse.from_entity(result.hold),
            transaction_id=result.transaction.id,
            remaining_available=result.remaining_available,
        )
