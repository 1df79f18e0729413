from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.enums.increment_mode import IncrementMode
from app.enums.rejection_reason import RejectionReason
from app.schemas.auction import AuctionSnapshot
from app.schemas.bid import BidDecision

CENT = Decimal("0.01")
# Matches DecimalField(max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999.99")


def is_money_amount(amount: Decimal) -> bool:
    """Positive, whole cents and within the stored column range"""
    return amount.is_finite() and 0 < amount <= MAX_AMOUNT and amount == amount.quantize(CENT)


def evaluate_bid(auction: AuctionSnapshot, bidder_id: str, amount: Decimal, now: datetime) -> BidDecision:
    """
    Decide whether a bid is admissible against a snapshot.

    Pure: reads the snapshot and the supplied time, never mutates anything.
    The checks run in a fixed order, so the reported reason is deterministic.
    """
    if auction.status.is_terminal:
        return BidDecision.reject(RejectionReason.auction_not_active)

    if auction.is_expired(now):
        return BidDecision.reject(RejectionReason.auction_ended)

    if amount <= auction.current_bid:
        return BidDecision.reject(RejectionReason.bid_too_low)

    if auction.min_increment is not None and amount < auction.current_bid + auction.min_increment:
        return BidDecision.reject(RejectionReason.below_minimum_increment)

    return BidDecision.accept()


def minimum_next_bid(auction: AuctionSnapshot, fallback_step: Decimal = CENT) -> Decimal:
    """Smallest amount evaluate_bid would accept on price grounds"""
    return auction.current_bid + (auction.min_increment or fallback_step)


def resolve_min_increment(
    explicit: Optional[Decimal],
    reserve_price: Optional[Decimal],
    mode: IncrementMode,
    flat: Decimal,
    percent: Decimal,
) -> Optional[Decimal]:
    """
    Pick the minimum increment stored on a new auction.

    An explicit per-listing value always wins. `percent_of_reserve` falls back
    to the flat amount for listings without a reserve price.
    """
    if explicit is not None:
        return explicit

    if mode == IncrementMode.none:
        return None

    if mode == IncrementMode.percent_of_reserve and reserve_price:
        increment = (reserve_price * percent / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
        return increment if increment > 0 else flat

    return flat
