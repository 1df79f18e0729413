import uuid
from decimal import Decimal
from typing import Optional

from loguru import logger

from app.core.config import settings
from app.enums.auction_status import AuctionStatus
from app.enums.increment_mode import IncrementMode
from app.schemas.auction import AuctionCreate, AuctionSnapshot
from app.schemas.bid import BidRecord
from app.services.bidding.clock import Clock, ensure_utc, utc_now
from app.services.bidding.exceptions import AuctionError, InvalidTransition
from app.services.bidding.ledger import AuctionLedger
from app.services.bidding.validator import resolve_min_increment


class AuctionService:
    def __init__(
        self,
        ledger: AuctionLedger,
        clock: Clock = utc_now,
        increment_mode: IncrementMode = settings.bid_increment_mode,
        increment_flat: Decimal = settings.bid_increment_flat,
        increment_percent: Decimal = settings.bid_increment_percent
    ):
        self.ledger = ledger
        self.clock = clock
        self.increment_mode = increment_mode
        self.increment_flat = increment_flat
        self.increment_percent = increment_percent

    async def create_auction(self, seller_id: str, listing: AuctionCreate) -> AuctionSnapshot:
        """Open an auction for a listing submitted by a seller"""
        now = self.clock()
        end_time = ensure_utc(listing.end_time)
        if end_time is not None and end_time <= now:
            raise ValueError("Auction end time must be in the future")

        min_increment = resolve_min_increment(
            explicit=listing.min_increment,
            reserve_price=listing.reserve_price,
            mode=self.increment_mode,
            flat=self.increment_flat,
            percent=self.increment_percent,
        )

        auction = AuctionSnapshot(
            id=uuid.uuid4().hex,
            seller_id=seller_id,
            brand=listing.brand,
            model=listing.model,
            year=listing.year,
            vehicle_type=listing.vehicle_type,
            color=listing.color,
            mileage=listing.mileage,
            description=listing.description,
            images=listing.images,
            location=listing.location,
            starting_price=listing.starting_price,
            reserve_price=listing.reserve_price,
            min_increment=min_increment,
            current_bid=listing.starting_price,
            created_at=now,
            end_time=end_time,
        )
        return await self.ledger.register_auction(auction)

    async def get_auction(self, auction_id: str) -> AuctionSnapshot:
        return await self.ledger.get_auction_snapshot(auction_id)

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> tuple[list[AuctionSnapshot], int]:
        """Get auctions with pagination"""
        return await self.ledger.list_auctions(status=status, offset=(page - 1) * page_size, limit=page_size)

    async def get_bid_history(
        self,
        auction_id: str,
        page: int = 1,
        page_size: int = 20
    ) -> tuple[list[BidRecord], int]:
        """Get auction bids, newest first, with pagination"""
        auction = await self.ledger.get_auction_snapshot(auction_id)
        bids = await self.ledger.get_bid_history(auction_id).page(page, page_size)
        return bids, auction.bid_count

    async def mark_status(self, auction_id: str, seller_id: str, status: AuctionStatus) -> AuctionSnapshot:
        auction = await self.ledger.get_auction_snapshot(auction_id)
        if auction.seller_id != seller_id:
            raise PermissionError(f"Only the seller can change the status of auction {auction_id}")
        return await self.ledger.mark_status(auction_id, status)

    async def close_expired_auctions(self) -> list[AuctionSnapshot]:
        """Settle every active auction whose end time has passed"""
        now = self.clock()
        expired, _ = await self.ledger.list_auctions(status=AuctionStatus.active, ending_before=now)

        settled = []
        for auction in expired:
            try:
                settled.append(await self.ledger.settle(auction.id, now))
            except InvalidTransition as e:
                # Settled or cancelled by someone else in the meantime
                logger.debug(f"Skip settling auction {auction.id}: {e}")
            except AuctionError as e:
                logger.warning(f"Failed to settle auction {auction.id}: {e}")

        if settled:
            logger.info(f"Settled {len(settled)} expired auction(s)")
        return settled

    async def get_bidder_bids(self, bidder_id: str) -> list[BidRecord]:
        return await self.ledger.get_bidder_bids(bidder_id)

    async def get_bidder_auctions(self, bidder_id: str) -> list[AuctionSnapshot]:
        """Auctions the bidder has bid on, most recently bid first"""
        auction_ids = list(dict.fromkeys(bid.auction_id for bid in await self.ledger.get_bidder_bids(bidder_id)))
        return [await self.ledger.get_auction_snapshot(auction_id) for auction_id in auction_ids]

    async def get_won_auctions(self, bidder_id: str) -> list[AuctionSnapshot]:
        won = []
        for auction in await self.get_bidder_auctions(bidder_id):
            if auction.status != AuctionStatus.sold:
                continue
            highest = await self.ledger.get_highest_bid(auction.id)
            if highest is not None and highest.bidder_id == bidder_id:
                won.append(auction)
        return won

    async def get_seller_auctions(self, seller_id: str) -> list[AuctionSnapshot]:
        auctions, _ = await self.ledger.list_auctions(seller_id=seller_id)
        return auctions
