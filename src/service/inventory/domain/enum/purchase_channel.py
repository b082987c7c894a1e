"""Purchase Channel Enum"""

from enum import StrEnum


class PurchaseChannel(StrEnum):
    """Purchase context of a hold; selects the hold timeout"""

    ONLINE = 'online'
    CASH = 'cash'
    ADMIN = 'admin'
    BULK = 'bulk'
