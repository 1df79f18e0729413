import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from app.enums.auction_status import AuctionStatus
from app.schemas.auction import AuctionSnapshot
from app.schemas.bid import AutoBidRecord, BidRecord
from app.services.bidding.exceptions import AuctionNotFound
from app.services.store.base import AuctionStore, AuctionUpdate, Mutation


class InMemoryAuctionStore(AuctionStore):
    """Process-local store; one asyncio.Lock per auction serializes updates"""

    def __init__(self):
        self._auctions: Dict[str, AuctionSnapshot] = {}
        # Oldest first; readers reverse
        self._bids: Dict[str, List[BidRecord]] = defaultdict(list)
        self._auto_bids: Dict[str, Dict[str, AutoBidRecord]] = defaultdict(dict)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, auction_id: str) -> asyncio.Lock:
        if auction_id not in self._locks:
            self._locks[auction_id] = asyncio.Lock()
        return self._locks[auction_id]

    async def insert_auction(self, auction: AuctionSnapshot) -> AuctionSnapshot:
        if auction.id in self._auctions:
            raise ValueError(f"Auction {auction.id} already exists")
        self._auctions[auction.id] = auction
        return auction

    async def load_auction(self, auction_id: str) -> Optional[AuctionSnapshot]:
        return self._auctions.get(auction_id)

    async def load_bids_for(
        self,
        auction_id: str,
        offset: int = 0,
        limit: Optional[int] = None,
        before_sequence: Optional[int] = None
    ) -> list[BidRecord]:
        newest_first = list(reversed(self._bids.get(auction_id, [])))
        if before_sequence is not None:
            newest_first = [bid for bid in newest_first if bid.sequence < before_sequence]
        end = None if limit is None else offset + limit
        return newest_first[offset:end]

    async def transactionally_update(self, auction_id: str, mutation: Mutation) -> AuctionUpdate:
        async with self._lock_for(auction_id):
            current = self._auctions.get(auction_id)
            if current is None:
                raise AuctionNotFound(auction_id)

            update = mutation(current)

            self._auctions[auction_id] = update.auction
            if update.bid is not None:
                self._bids[auction_id].append(update.bid)
            return update

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        seller_id: Optional[str] = None,
        ending_before: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> tuple[list[AuctionSnapshot], int]:
        auctions = list(self._auctions.values())
        if status:
            auctions = [a for a in auctions if a.status == status]
        if seller_id:
            auctions = [a for a in auctions if a.seller_id == seller_id]
        if ending_before:
            auctions = [a for a in auctions if a.end_time is not None and a.end_time <= ending_before]

        auctions.sort(key=lambda a: a.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return auctions[offset:end], len(auctions)

    async def load_bids_by_bidder(self, bidder_id: str) -> list[BidRecord]:
        bids = [bid for log in self._bids.values() for bid in log if bid.bidder_id == bidder_id]
        bids.sort(key=lambda bid: (bid.created_at, bid.sequence), reverse=True)
        return bids

    async def load_auto_bids(self, auction_id: str) -> list[AutoBidRecord]:
        return [record for record in self._auto_bids.get(auction_id, {}).values() if record.is_active]

    async def save_auto_bid(self, record: AutoBidRecord) -> AutoBidRecord:
        if record.auction_id not in self._auctions:
            raise AuctionNotFound(record.auction_id)
        registrations = self._auto_bids[record.auction_id]
        existing = registrations.get(record.bidder_id)
        if existing is not None:
            # Registration time decides ties between equal maxima
            record = record.model_copy(update={"created_at": existing.created_at})
        registrations[record.bidder_id] = record
        return record

    async def close(self):
        self._locks.clear()
