from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from app.enums.auction_status import AuctionStatus
from app.schemas.auction import AuctionSnapshot
from app.schemas.bid import AutoBidRecord, BidRecord


@dataclass(frozen=True)
class AuctionUpdate:
    """Result of a mutation: the new auction state plus the bid it appended, if any"""
    auction: AuctionSnapshot
    bid: Optional[BidRecord] = None


Mutation = Callable[[AuctionSnapshot], AuctionUpdate]


class AuctionStore(ABC):
    """
    Persistence adapter behind the AuctionLedger.

    Any store with per-key atomic read-modify-write can implement it.
    transactionally_update must run the mutation against the latest committed
    state and persist its result (snapshot and bid together) or nothing at all.
    A mutation aborts by raising an AuctionError.
    """

    @abstractmethod
    async def insert_auction(self, auction: AuctionSnapshot) -> AuctionSnapshot:
        ...

    @abstractmethod
    async def load_auction(self, auction_id: str) -> Optional[AuctionSnapshot]:
        ...

    @abstractmethod
    async def load_bids_for(
        self,
        auction_id: str,
        offset: int = 0,
        limit: Optional[int] = None,
        before_sequence: Optional[int] = None
    ) -> list[BidRecord]:
        """Bids of one auction, newest first; `before_sequence` keeps only older bids"""

    @abstractmethod
    async def transactionally_update(self, auction_id: str, mutation: Mutation) -> AuctionUpdate:
        ...

    @abstractmethod
    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        seller_id: Optional[str] = None,
        ending_before: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> tuple[list[AuctionSnapshot], int]:
        """Auctions matching the filters, newest first, and their total count"""

    @abstractmethod
    async def load_bids_by_bidder(self, bidder_id: str) -> list[BidRecord]:
        """Bids placed by one bidder across all auctions, newest first"""

    @abstractmethod
    async def load_auto_bids(self, auction_id: str) -> list[AutoBidRecord]:
        """Active auto-bid registrations, oldest first"""

    @abstractmethod
    async def save_auto_bid(self, record: AutoBidRecord) -> AutoBidRecord:
        """Insert or replace the registration of (auction_id, bidder_id)"""

    async def load_highest_bid(self, auction_id: str) -> Optional[BidRecord]:
        bids = await self.load_bids_for(auction_id)
        if not bids:
            return None
        return min(bids, key=lambda bid: (-bid.amount, bid.created_at, bid.sequence))

    async def close(self):
        pass
