from decimal import Decimal
from typing import Optional

from loguru import logger

from app.core.config import settings
from app.enums.rejection_reason import RejectionReason
from app.schemas.auction import AuctionSnapshot
from app.schemas.bid import AutoBidRecord, BidRecord, BidResult
from app.services.bidding.clock import Clock, utc_now
from app.services.bidding.exceptions import AuctionError, AuctionNotFound, StaleBid
from app.services.bidding.ledger import AuctionLedger
from app.services.bidding.validator import evaluate_bid, is_money_amount, minimum_next_bid


class BiddingService:
    """
    Entry point for bid submissions.

    Validates against a fresh snapshot, commits through the ledger and turns
    every rejection into a BidResult. A StaleBid from the ledger means a race
    was lost; the bid is re-evaluated against the refreshed snapshot, which
    usually yields the precise rejection reason.
    """

    def __init__(
        self,
        ledger: AuctionLedger,
        clock: Clock = utc_now,
        stale_bid_retries: int = settings.stale_bid_retries,
        auto_bid_step: Decimal = settings.auto_bid_step,
        auto_bid_max_rounds: int = settings.auto_bid_max_rounds
    ):
        self.ledger = ledger
        self.clock = clock
        self.stale_bid_retries = stale_bid_retries
        self.auto_bid_step = auto_bid_step
        self.auto_bid_max_rounds = auto_bid_max_rounds

    async def place_bid(self, auction_id: str, bidder_id: str, amount: Decimal) -> BidResult:
        if not is_money_amount(amount):
            raise ValueError(f"Bid amount must be a positive amount in whole cents, got {amount}")

        result = await self._submit(auction_id, bidder_id, amount)
        if not result.accepted:
            return result

        # Standing auto-bids may answer straight away
        if await self._run_auto_bids(auction_id):
            result = result.model_copy(update={"auction": await self.ledger.get_auction_snapshot(auction_id)})
        return result

    async def set_auto_bid(self, auction_id: str, bidder_id: str, max_amount: Decimal) -> BidResult:
        """Register (or raise) a standing maximum and let the proxy bid up to it"""
        if not is_money_amount(max_amount):
            raise ValueError(f"Auto-bid maximum must be a positive amount in whole cents, got {max_amount}")

        try:
            auction = await self.ledger.get_auction_snapshot(auction_id)
        except AuctionNotFound as e:
            return BidResult(accepted=False, reason=e.reason)

        now = self.clock()
        decision = evaluate_bid(auction, bidder_id, max_amount, now)
        if not decision.accepted:
            logger.warning(f"Auto-bid of {bidder_id} on {auction_id} up to {max_amount} rejected: {decision.reason.value}")
            return BidResult(accepted=False, reason=decision.reason, auction=auction)

        record = await self.ledger.save_auto_bid(AutoBidRecord(
            auction_id=auction_id,
            bidder_id=bidder_id,
            max_amount=max_amount,
            is_active=True,
            created_at=now,
        ))
        logger.info(f"Auto-bid set for {bidder_id} on auction {auction_id} up to {max_amount}")

        await self._run_auto_bids(auction_id)
        return BidResult(
            accepted=True,
            auction=await self.ledger.get_auction_snapshot(auction_id),
            auto_bid=record,
        )

    async def cancel_auto_bid(self, auction_id: str, bidder_id: str) -> bool:
        registrations = await self.ledger.get_auto_bids(auction_id)
        record = next((r for r in registrations if r.bidder_id == bidder_id), None)
        if record is None:
            return False

        await self.ledger.save_auto_bid(record.model_copy(update={"is_active": False}))
        logger.info(f"Auto-bid of {bidder_id} on auction {auction_id} cancelled")
        return True

    async def _submit(self, auction_id: str, bidder_id: str, amount: Decimal, is_auto: bool = False) -> BidResult:
        attempts = self.stale_bid_retries + 1
        snapshot: Optional[AuctionSnapshot] = None

        for attempt in range(1, attempts + 1):
            try:
                snapshot = await self.ledger.get_auction_snapshot(auction_id)
            except AuctionNotFound as e:
                return BidResult(accepted=False, reason=e.reason)

            decision = evaluate_bid(snapshot, bidder_id, amount, self.clock())
            if not decision.accepted:
                logger.warning(f"Bid of {amount} by {bidder_id} on auction {auction_id} rejected: {decision.reason.value}")
                return BidResult(accepted=False, reason=decision.reason, auction=snapshot)

            try:
                bid = await self.ledger.append_bid(auction_id, bidder_id, amount, self.clock(), is_auto=is_auto)
            except StaleBid:
                logger.warning(f"Bid of {amount} by {bidder_id} on auction {auction_id} lost a race (attempt {attempt}/{attempts})")
                continue
            except AuctionError as e:
                logger.warning(f"Bid of {amount} by {bidder_id} on auction {auction_id} refused by ledger: {e.reason.value}")
                return BidResult(accepted=False, reason=e.reason, auction=await self._find_auction(auction_id))

            return BidResult(
                accepted=True,
                auction=await self.ledger.get_auction_snapshot(auction_id),
                bid=bid,
            )

        return BidResult(accepted=False, reason=RejectionReason.stale_bid, auction=snapshot)

    async def _find_auction(self, auction_id: str) -> Optional[AuctionSnapshot]:
        try:
            return await self.ledger.get_auction_snapshot(auction_id)
        except AuctionNotFound:
            return None

    def _step(self, auction: AuctionSnapshot) -> Decimal:
        return auction.min_increment or self.auto_bid_step

    async def _run_auto_bids(self, auction_id: str) -> list[BidRecord]:
        """
        Let standing auto-bids respond until nobody can outbid the leader.

        Each round places at most one bid: either the strongest challenger
        bids just above the leader's own ceiling (capped at its maximum), or,
        when the leader's ceiling is at least as high, the leader's proxy
        raises to the challenger's maximum plus one step. Equal maxima go to
        whoever already leads.
        """
        placed: list[BidRecord] = []

        for _ in range(self.auto_bid_max_rounds):
            auction = await self.ledger.get_auction_snapshot(auction_id)
            if auction.status.is_terminal or auction.is_expired(self.clock()):
                break

            registrations = await self.ledger.get_auto_bids(auction_id)
            if not registrations:
                break

            highest = await self.ledger.get_highest_bid(auction_id)
            leader_id = highest.bidder_id if highest else None
            step = self._step(auction)
            floor = minimum_next_bid(auction, fallback_step=self.auto_bid_step)

            challengers = [r for r in registrations if r.bidder_id != leader_id and r.max_amount >= floor]
            if not challengers:
                break

            challenger = min(challengers, key=lambda r: (-r.max_amount, r.created_at))
            leader_auto = next((r for r in registrations if r.bidder_id == leader_id), None)

            if leader_auto is not None and leader_auto.max_amount >= challenger.max_amount:
                bidder_id = leader_id
                amount = min(leader_auto.max_amount, challenger.max_amount + step)
            else:
                ceiling = leader_auto.max_amount + step if leader_auto is not None else floor
                bidder_id = challenger.bidder_id
                amount = min(challenger.max_amount, max(floor, ceiling))

            result = await self._submit(auction_id, bidder_id, amount, is_auto=True)
            if result.accepted:
                placed.append(result.bid)
            elif result.reason != RejectionReason.stale_bid:
                break
        else:
            logger.warning(f"Auto-bid resolution on auction {auction_id} stopped after {self.auto_bid_max_rounds} rounds")

        return placed
