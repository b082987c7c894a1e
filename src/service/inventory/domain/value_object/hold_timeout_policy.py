"""Hold timeout per purchase channel"""

from datetime import timedelta
from typing import Mapping

import attrs

from src.platform.exception.exceptions import DomainError
from src.service.inventory.domain.enum import PurchaseChannel


DEFAULT_HOLD_TIMEOUT_MINUTES: dict[PurchaseChannel, int] = {
    PurchaseChannel.ONLINE: 15,
    PurchaseChannel.CASH: 4 * 60,
    PurchaseChannel.ADMIN: 60,
    PurchaseChannel.BULK: 30,
}


@attrs.define(frozen=True)
class HoldTimeoutPolicy:
    """Channel -> timeout table; adding a channel only needs a new entry."""

    timeouts: Mapping[PurchaseChannel, timedelta]

    @classmethod
    def from_minutes(cls, minutes: Mapping[str, int] | None = None) -> 'HoldTimeoutPolicy':
        table = {channel: value for channel, value in DEFAULT_HOLD_TIMEOUT_MINUTES.items()}
        for channel, value in (minutes or {}).items():
            if value <= 0:
                raise DomainError(f'Hold timeout for {channel} must be positive')
            table[PurchaseChannel(channel)] = value
        return cls(timeouts={channel: timedelta(minutes=value) for channel, value in table.items()})

    def timeout_for(self, channel: PurchaseChannel | str) -> timedelta:
        try:
            return self.timeouts[PurchaseChannel(channel)]
        except (KeyError, ValueError):
            raise DomainError(f'Unknown purchase channel: {channel}')
