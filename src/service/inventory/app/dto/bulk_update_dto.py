"""
Bulk Update DTOs

Request/Result DTOs for admin bulk inventory operations.
"""

from typing import Optional

import attrs

from src.service.inventory.domain.enum import BulkOperation


@attrs.define
class BulkOperationRequest:
    ticket_type_id: str
    operation: BulkOperation
    quantity: Optional[int] = None  # unused for RELEASE_ALL_HOLDS
    reason: Optional[str] = None


@attrs.define
class BulkOperationOutcome:
    ticket_type_id: str
    operation: BulkOperation
    success: bool
    previous_quantity: Optional[int] = None  # total capacity before
    new_quantity: Optional[int] = None  # total capacity after
    holds_released: int = 0
    error: Optional[str] = None


@attrs.define
class BulkUpdateSummary:
    total_processed: int = 0
    successful_updates: int = 0
    failed_updates: int = 0
    inventory_adjustment: int = 0  # signed sum of total-capacity changes
    holds_released: int = 0


@attrs.define
class BulkUpdateResult:
    outcomes: list[BulkOperationOutcome]
    errors: list[str]
    summary: BulkUpdateSummary

    @property
    def success(self) -> bool:
        return not self.errors

    @classmethod
    def from_outcomes(cls, outcomes: list[BulkOperationOutcome]) -> 'BulkUpdateResult':
        summary = BulkUpdateSummary(total_processed=len(outcomes))
        errors: list[str] = []
        for outcome in outcomes:
            if outcome.success:
                summary.successful_updates += 1
                summary.holds_released += outcome.holds_released
                if (
                    outcome.operation != BulkOperation.RELEASE_ALL_HOLDS
                    and outcome.previous_quantity is not None
                    and outcome.new_quantity is not None
                ):
                    summary.inventory_adjustment += outcome.new_quantity - outcome.previous_quantity
            else:
                summary.failed_updates += 1
                errors.append(f'{outcome.ticket_type_id}: {outcome.error}')
        return cls(outcomes=outcomes, errors=errors, summary=summary)
