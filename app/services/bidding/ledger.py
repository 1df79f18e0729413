import uuid
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Optional

from loguru import logger

from app.enums.auction_status import AuctionStatus
from app.schemas.auction import AuctionSnapshot
from app.schemas.bid import AutoBidRecord, BidRecord
from app.services.bidding.exceptions import (
    AuctionEnded,
    AuctionNotActive,
    AuctionNotFound,
    InvalidTransition,
    StaleBid,
)
from app.services.bidding.validator import is_money_amount
from app.services.store.base import AuctionStore, AuctionUpdate


class BidHistory:
    """
    Bid log of one auction, newest first.

    Lazy: bids are fetched from the store page by page while iterating,
    keyed on the last yielded sequence, so bids appended meanwhile never
    shift a page. Restartable: every `async for` starts again from the
    newest bid.
    """

    def __init__(self, store: AuctionStore, auction_id: str, page_size: int = 50):
        self._store = store
        self.auction_id = auction_id
        self.page_size = page_size

    async def __aiter__(self) -> AsyncIterator[BidRecord]:
        before_sequence = None
        while True:
            page = await self._store.load_bids_for(
                self.auction_id,
                limit=self.page_size,
                before_sequence=before_sequence,
            )
            for bid in page:
                yield bid
            if len(page) < self.page_size:
                return
            before_sequence = page[-1].sequence

    async def page(self, page: int = 1, page_size: Optional[int] = None) -> list[BidRecord]:
        size = page_size or self.page_size
        return await self._store.load_bids_for(self.auction_id, offset=(page - 1) * size, limit=size)

    async def to_list(self) -> list[BidRecord]:
        return [bid async for bid in self]


class AuctionLedger:
    """
    Single source of truth for auction prices, bid counts and bid logs.

    Every write goes through AuctionStore.transactionally_update, so the
    read-compare-write of the current price is one atomic step per auction.
    Auctions never share a lock.
    """

    def __init__(self, store: AuctionStore, history_page_size: int = 50):
        self.store = store
        self.history_page_size = history_page_size

    async def register_auction(self, auction: AuctionSnapshot) -> AuctionSnapshot:
        """Take a new listing from the seller workflow as the starting state"""
        if auction.bid_count or auction.current_bid != auction.starting_price:
            raise ValueError("A new auction must start without bids at its starting price")
        if auction.status != AuctionStatus.active:
            raise ValueError("A new auction must start active")

        snapshot = await self.store.insert_auction(auction)
        logger.info(f"Auction {snapshot.id} registered by seller {snapshot.seller_id}, starting at {snapshot.starting_price}")
        return snapshot

    async def get_auction_snapshot(self, auction_id: str) -> AuctionSnapshot:
        snapshot = await self.store.load_auction(auction_id)
        if snapshot is None:
            raise AuctionNotFound(auction_id)
        return snapshot

    async def get_highest_bid(self, auction_id: str) -> Optional[BidRecord]:
        await self.get_auction_snapshot(auction_id)
        return await self.store.load_highest_bid(auction_id)

    def get_bid_history(self, auction_id: str) -> BidHistory:
        return BidHistory(self.store, auction_id, page_size=self.history_page_size)

    async def append_bid(
        self,
        auction_id: str,
        bidder_id: str,
        amount: Decimal,
        timestamp: datetime,
        is_auto: bool = False
    ) -> BidRecord:
        """
        Record an accepted bid and move the current price in one atomic step.

        The caller is expected to have validated the bid already; the price and
        status are checked again against the committed state, and a bid that
        no longer beats the current price raises StaleBid.
        """
        if not is_money_amount(amount):
            raise ValueError(f"Bid amount must be a positive amount in whole cents, got {amount}")
        if not bidder_id:
            raise ValueError("Bidder id is required")

        def accept(current: AuctionSnapshot) -> AuctionUpdate:
            if current.status.is_terminal:
                raise AuctionNotActive(auction_id)
            if current.is_expired(timestamp):
                raise AuctionEnded(auction_id)
            if amount <= current.current_bid:
                raise StaleBid(auction_id, f"bid {amount} does not beat current bid {current.current_bid}")

            bid = BidRecord(
                id=uuid.uuid4().hex,
                auction_id=auction_id,
                bidder_id=bidder_id,
                amount=amount,
                created_at=timestamp,
                sequence=current.bid_count + 1,
                is_auto=is_auto,
            )
            auction = current.model_copy(update={
                "current_bid": amount,
                "bid_count": current.bid_count + 1,
                "version": current.version + 1,
            })
            return AuctionUpdate(auction=auction, bid=bid)

        update = await self.store.transactionally_update(auction_id, accept)
        logger.info(f"Bid {update.bid.id} of {amount} by {bidder_id} accepted on auction {auction_id}")
        return update.bid

    async def mark_status(self, auction_id: str, new_status: AuctionStatus) -> AuctionSnapshot:
        """Explicit transition: active -> sold (needs a bid) or active -> cancelled"""

        def transition(current: AuctionSnapshot) -> AuctionUpdate:
            if current.status != AuctionStatus.active or new_status == AuctionStatus.active:
                raise InvalidTransition(auction_id, f"cannot move auction {auction_id} from {current.status.value} to {new_status.value}")
            if new_status == AuctionStatus.sold and current.bid_count == 0:
                raise InvalidTransition(auction_id, f"auction {auction_id} has no bids and cannot be sold")
            return AuctionUpdate(auction=self._with_status(current, new_status))

        update = await self.store.transactionally_update(auction_id, transition)
        logger.info(f"Auction {auction_id} marked {new_status.value}")
        return update.auction

    async def settle(self, auction_id: str, now: datetime) -> AuctionSnapshot:
        """
        Timed transition of an auction whose end time has passed.

        Sold when at least one bid exists and the reserve (if any) is met,
        cancelled otherwise.
        """

        def close(current: AuctionSnapshot) -> AuctionUpdate:
            if current.status != AuctionStatus.active:
                raise InvalidTransition(auction_id, f"auction {auction_id} is already {current.status.value}")
            if not current.is_expired(now):
                raise InvalidTransition(auction_id, f"auction {auction_id} has not ended yet")

            outcome = AuctionStatus.sold if current.reserve_met else AuctionStatus.cancelled
            return AuctionUpdate(auction=self._with_status(current, outcome))

        update = await self.store.transactionally_update(auction_id, close)
        auction = update.auction
        logger.info(
            f"Auction {auction_id} settled as {auction.status.value} "
            f"(bids={auction.bid_count}, final={auction.current_bid}, reserve={auction.reserve_price})"
        )
        return auction

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        seller_id: Optional[str] = None,
        ending_before: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> tuple[list[AuctionSnapshot], int]:
        return await self.store.list_auctions(
            status=status,
            seller_id=seller_id,
            ending_before=ending_before,
            offset=offset,
            limit=limit,
        )

    async def get_bidder_bids(self, bidder_id: str) -> list[BidRecord]:
        return await self.store.load_bids_by_bidder(bidder_id)

    async def get_auto_bids(self, auction_id: str) -> list[AutoBidRecord]:
        return await self.store.load_auto_bids(auction_id)

    async def save_auto_bid(self, record: AutoBidRecord) -> AutoBidRecord:
        return await self.store.save_auto_bid(record)

    async def close(self):
        await self.store.close()

    @staticmethod
    def _with_status(current: AuctionSnapshot, status: AuctionStatus) -> AuctionSnapshot:
        return current.model_copy(update={"status": status, "version": current.version + 1})
