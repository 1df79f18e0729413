from enum import Enum


class AuctionStatus(str, Enum):
    active = "active"
    sold = "sold"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not AuctionStatus.active
