from app.enums.rejection_reason import RejectionReason


class AuctionError(Exception):
    """Base class for recoverable ledger failures; carries a stable code"""
    reason: RejectionReason

    def __init__(self, auction_id: str, detail: str = ""):
        self.auction_id = auction_id
        super().__init__(detail or f"{self.reason.value}: auction {auction_id}")


class AuctionNotFound(AuctionError):
    reason = RejectionReason.not_found


class AuctionNotActive(AuctionError):
    reason = RejectionReason.auction_not_active


class StaleBid(AuctionError):
    """The bid lost a race: another bid was committed first"""
    reason = RejectionReason.stale_bid


class InvalidTransition(AuctionError):
    reason = RejectionReason.invalid_transition


class AuctionEnded(AuctionError):
    reason = RejectionReason.auction_ended
