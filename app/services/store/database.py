from datetime import datetime
from typing import Optional

from loguru import logger
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from app.enums.auction_status import AuctionStatus
from app.models.auction import Auction
from app.models.auto_bid import AutoBid
from app.models.bid import Bid
from app.schemas.auction import AuctionSnapshot
from app.schemas.bid import AutoBidRecord, BidRecord
from app.services.bidding.clock import ensure_utc
from app.services.bidding.exceptions import AuctionNotFound, StaleBid
from app.services.store.base import AuctionStore, AuctionUpdate, Mutation


def auction_to_snapshot(row: Auction) -> AuctionSnapshot:
    return AuctionSnapshot(
        id=row.id,
        seller_id=row.seller_id,
        brand=row.brand,
        model=row.vehicle_model,
        year=row.year,
        vehicle_type=row.vehicle_type,
        color=row.color,
        mileage=row.mileage,
        description=row.description,
        images=list(row.images or []),
        location=row.location,
        starting_price=row.starting_price,
        reserve_price=row.reserve_price,
        min_increment=row.min_increment,
        current_bid=row.current_bid,
        bid_count=row.bid_count,
        status=row.status,
        created_at=ensure_utc(row.created_at),
        end_time=ensure_utc(row.end_time),
        version=row.version,
    )


def bid_to_record(row: Bid) -> BidRecord:
    return BidRecord(
        id=row.id,
        auction_id=row.auction_id,
        bidder_id=row.bidder_id,
        amount=row.amount,
        created_at=ensure_utc(row.created_at),
        sequence=row.sequence,
        is_auto=row.is_auto,
    )


def auto_bid_to_record(row: AutoBid) -> AutoBidRecord:
    return AutoBidRecord(
        auction_id=row.auction_id,
        bidder_id=row.bidder_id,
        max_amount=row.max_amount,
        is_active=row.is_active,
        created_at=ensure_utc(row.created_at),
    )


class DatabaseAuctionStore(AuctionStore):
    """
    Tortoise ORM adapter.

    Atomicity of transactionally_update comes from two layers: the row is read
    with SELECT ... FOR UPDATE inside a transaction (ignored by backends that
    do not support it), and the write is a compare-and-set on `version`. A
    write that matches no row, or collides on (auction, sequence), means a
    concurrent writer won and is reported as StaleBid.
    """

    async def insert_auction(self, auction: AuctionSnapshot) -> AuctionSnapshot:
        row = await Auction.create(
            id=auction.id,
            seller_id=auction.seller_id,
            brand=auction.brand,
            vehicle_model=auction.model,
            year=auction.year,
            vehicle_type=auction.vehicle_type,
            color=auction.color,
            mileage=auction.mileage,
            description=auction.description,
            images=list(auction.images),
            location=auction.location,
            starting_price=auction.starting_price,
            reserve_price=auction.reserve_price,
            min_increment=auction.min_increment,
            current_bid=auction.current_bid,
            bid_count=auction.bid_count,
            status=auction.status,
            created_at=auction.created_at,
            end_time=auction.end_time,
            version=auction.version,
        )
        return auction_to_snapshot(row)

    async def load_auction(self, auction_id: str) -> Optional[AuctionSnapshot]:
        row = await Auction.get_or_none(id=auction_id)
        return auction_to_snapshot(row) if row else None

    async def load_bids_for(
        self,
        auction_id: str,
        offset: int = 0,
        limit: Optional[int] = None,
        before_sequence: Optional[int] = None
    ) -> list[BidRecord]:
        query = Bid.filter(auction_id=auction_id)
        if before_sequence is not None:
            query = query.filter(sequence__lt=before_sequence)
        query = query.order_by("-sequence").offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [bid_to_record(row) for row in await query]

    async def load_highest_bid(self, auction_id: str) -> Optional[BidRecord]:
        # Accepted amounts strictly increase with sequence
        row = await Bid.filter(auction_id=auction_id).order_by("-sequence").first()
        return bid_to_record(row) if row else None

    async def transactionally_update(self, auction_id: str, mutation: Mutation) -> AuctionUpdate:
        try:
            async with in_transaction() as conn:
                row = await Auction.filter(id=auction_id).select_for_update().using_db(conn).first()
                if row is None:
                    raise AuctionNotFound(auction_id)

                current = auction_to_snapshot(row)
                update = mutation(current)
                new = update.auction

                updated = await Auction.filter(id=auction_id, version=current.version).using_db(conn).update(
                    current_bid=new.current_bid,
                    bid_count=new.bid_count,
                    status=new.status,
                    version=new.version,
                )
                if not updated:
                    raise StaleBid(auction_id, f"auction {auction_id} changed since version {current.version}")

                if update.bid is not None:
                    bid = update.bid
                    await Bid.create(
                        id=bid.id,
                        auction_id=auction_id,
                        bidder_id=bid.bidder_id,
                        amount=bid.amount,
                        sequence=bid.sequence,
                        is_auto=bid.is_auto,
                        created_at=bid.created_at,
                        using_db=conn,
                    )
        except IntegrityError as e:
            logger.warning(f"Concurrent write on auction {auction_id}: {e}")
            raise StaleBid(auction_id, str(e)) from e

        return update

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        seller_id: Optional[str] = None,
        ending_before: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> tuple[list[AuctionSnapshot], int]:
        query = Auction.all()

        if status:
            query = query.filter(status=status)

        if seller_id:
            query = query.filter(seller_id=seller_id)

        if ending_before:
            query = query.filter(end_time__lte=ending_before)

        total = await query.count()
        query = query.order_by("-created_at").offset(offset)
        if limit is not None:
            query = query.limit(limit)

        return [auction_to_snapshot(row) for row in await query], total

    async def load_bids_by_bidder(self, bidder_id: str) -> list[BidRecord]:
        rows = await Bid.filter(bidder_id=bidder_id).order_by("-created_at", "-sequence")
        return [bid_to_record(row) for row in rows]

    async def load_auto_bids(self, auction_id: str) -> list[AutoBidRecord]:
        rows = await AutoBid.filter(auction_id=auction_id, is_active=True).order_by("created_at")
        return [auto_bid_to_record(row) for row in rows]

    async def save_auto_bid(self, record: AutoBidRecord) -> AutoBidRecord:
        if not await Auction.exists(id=record.auction_id):
            raise AuctionNotFound(record.auction_id)

        async with in_transaction() as conn:
            row = await AutoBid.filter(
                auction_id=record.auction_id,
                bidder_id=record.bidder_id,
            ).select_for_update().using_db(conn).first()

            if row is None:
                row = await AutoBid.create(
                    auction_id=record.auction_id,
                    bidder_id=record.bidder_id,
                    max_amount=record.max_amount,
                    is_active=record.is_active,
                    created_at=record.created_at,
                    using_db=conn,
                )
            else:
                # Re-registering keeps the original registration time
                row.max_amount = record.max_amount
                row.is_active = record.is_active
                await row.save(using_db=conn)

        return auto_bid_to_record(row)
