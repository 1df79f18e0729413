from enum import Enum


class RejectionReason(str, Enum):
    auction_not_active = "auction_not_active"
    auction_ended = "auction_ended"
    bid_too_low = "bid_too_low"
    below_minimum_increment = "below_minimum_increment"
    stale_bid = "stale_bid"
    not_found = "not_found"
    invalid_transition = "invalid_transition"

    @property
    def message(self) -> str:
        return REJECTION_MESSAGES[self]


# Default English texts; the presentation layer localizes by code.
REJECTION_MESSAGES = {
    RejectionReason.auction_not_active: "This auction is no longer accepting bids.",
    RejectionReason.auction_ended: "This auction has ended.",
    RejectionReason.bid_too_low: "Your bid must be higher than the current bid.",
    RejectionReason.below_minimum_increment: "Your bid does not meet the minimum increment.",
    RejectionReason.stale_bid: "Another bid was placed first. Please review the new price and try again.",
    RejectionReason.not_found: "Auction not found.",
    RejectionReason.invalid_transition: "This status change is not allowed.",
}
