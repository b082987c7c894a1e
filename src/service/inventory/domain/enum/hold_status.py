"""Hold Status Enum"""

from enum import StrEnum


class HoldStatus(StrEnum):
    ACTIVE = 'active'
    EXPIRED = 'expired'
    RELEASED = 'released'
    COMPLETED = 'completed'

    @property
    def is_terminal(self) -> bool:
        return self is not HoldStatus.ACTIVE
