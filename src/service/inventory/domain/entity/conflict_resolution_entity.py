from datetime import datetime
from typing import Optional

import attrs

from src.service.inventory.domain.enum import ResolutionStrategy


@attrs.define(frozen=True)
class ConflictingRequest:
    session_id: str
    requested_quantity: int
    timestamp: datetime
    priority: int = 0
    user_id: Optional[str] = None
    sequence: int = 0  # arrival order at the resolver, breaks timestamp ties


@attrs.define(frozen=True)
class ConflictResolution:
    """Record of one contention batch, kept for audit when more than one request contended"""

    conflict_id: str
    ticket_type_id: str
    attempted_quantity: int
    available_quantity: int
    conflicting_requests: list[ConflictingRequest]
    resolution: ResolutionStrategy
    resolved_at: datetime
