import asyncio
import pytest
from decimal import Decimal

from app.enums.auction_status import AuctionStatus
from app.enums.rejection_reason import RejectionReason
from app.schemas.auction import AuctionSnapshot
from app.services.bidding import AuctionLedger, BiddingService, StaleBid
from tests.conftest import START, build_auction


@pytest.mark.asyncio
async def test_bid_equal_to_starting_price_rejected(bidding_service: BiddingService, auction: AuctionSnapshot):
    result = await bidding_service.place_bid(auction.id, "u1", Decimal("25000"))

    assert result.accepted is False
    assert result.reason == RejectionReason.bid_too_low
    assert result.message == RejectionReason.bid_too_low.message
    assert result.auction.current_bid == Decimal("25000")


@pytest.mark.asyncio
async def test_place_bid_accepted(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot):
    result = await bidding_service.place_bid(auction.id, "u1", Decimal("25500"))

    assert result.accepted is True
    assert result.reason is None
    assert result.bid.amount == Decimal("25500")
    assert result.bid.is_auto is False
    assert result.auction.current_bid == Decimal("25500")
    assert result.auction.bid_count == 1

    snapshot = await ledger.get_auction_snapshot(auction.id)
    assert snapshot == result.auction


@pytest.mark.asyncio
async def test_rejected_bid_changes_nothing(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot):
    await bidding_service.place_bid(auction.id, "u1", Decimal("25500"))
    before = await ledger.get_auction_snapshot(auction.id)

    result = await bidding_service.place_bid(auction.id, "u2", Decimal("25700"))

    assert result.reason == RejectionReason.below_minimum_increment
    assert await ledger.get_auction_snapshot(auction.id) == before
    assert [bid.bidder_id for bid in await ledger.get_bid_history(auction.id).to_list()] == ["u1"]


@pytest.mark.asyncio
async def test_bid_after_end_time_rejected(bidding_service: BiddingService, clock, auction: AuctionSnapshot):
    clock.advance(hours=1)

    for amount in ("25500", "1000000"):
        result = await bidding_service.place_bid(auction.id, "u1", Decimal(amount))
        assert result.reason == RejectionReason.auction_ended


@pytest.mark.asyncio
async def test_bid_on_sold_auction_rejected(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot):
    await bidding_service.place_bid(auction.id, "u1", Decimal("25500"))
    await ledger.mark_status(auction.id, AuctionStatus.sold)

    result = await bidding_service.place_bid(auction.id, "u2", Decimal("40000"))

    assert result.reason == RejectionReason.auction_not_active
    assert result.auction.status == AuctionStatus.sold


@pytest.mark.asyncio
async def test_bid_on_unknown_auction(bidding_service: BiddingService):
    result = await bidding_service.place_bid("missing", "u1", Decimal("100"))

    assert result.accepted is False
    assert result.reason == RejectionReason.not_found
    assert result.auction is None


@pytest.mark.asyncio
async def test_concurrent_bids_one_accepted(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot):
    await bidding_service.place_bid(auction.id, "u0", Decimal("25500"))

    results = await asyncio.gather(
        bidding_service.place_bid(auction.id, "u1", Decimal("26000")),
        bidding_service.place_bid(auction.id, "u2", Decimal("26000")),
    )

    accepted = [r for r in results if r.accepted]
    rejected = [r for r in results if not r.accepted]
    assert len(accepted) == 1
    assert len(rejected) == 1
    assert rejected[0].reason in (RejectionReason.bid_too_low, RejectionReason.stale_bid)

    snapshot = await ledger.get_auction_snapshot(auction.id)
    assert snapshot.current_bid == Decimal("26000")
    assert snapshot.bid_count == 2


@pytest.mark.asyncio
async def test_lost_race_is_re_evaluated(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot, monkeypatch):
    """A rival commits between validation and append: the retry reports the real reason"""
    append_bid = ledger.append_bid
    calls = []

    async def racing_append(auction_id, bidder_id, amount, timestamp, is_auto=False):
        calls.append(bidder_id)
        if len(calls) == 1:
            await append_bid(auction_id, "rival", Decimal("27000"), timestamp)
        return await append_bid(auction_id, bidder_id, amount, timestamp, is_auto=is_auto)

    monkeypatch.setattr(ledger, "append_bid", racing_append)

    result = await bidding_service.place_bid(auction.id, "u1", Decimal("26000"))

    assert result.accepted is False
    assert result.reason == RejectionReason.bid_too_low
    assert result.auction.current_bid == Decimal("27000")
    assert calls == ["u1"]


@pytest.mark.asyncio
async def test_stale_bid_after_retries_exhausted(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot, monkeypatch):
    attempts = []

    async def always_stale(auction_id, bidder_id, amount, timestamp, is_auto=False):
        attempts.append(amount)
        raise StaleBid(auction_id)

    monkeypatch.setattr(ledger, "append_bid", always_stale)

    result = await bidding_service.place_bid(auction.id, "u1", Decimal("26000"))

    assert result.accepted is False
    assert result.reason == RejectionReason.stale_bid
    assert len(attempts) == bidding_service.stale_bid_retries + 1
    assert (await ledger.get_auction_snapshot(auction.id)).bid_count == 0


@pytest.mark.asyncio
async def test_auction_without_increment_accepts_any_higher_bid(bidding_service: BiddingService, ledger: AuctionLedger):
    auction = await ledger.register_auction(build_auction(id="auction-2"))

    result = await bidding_service.place_bid(auction.id, "u1", Decimal("25000.01"))

    assert result.accepted is True
    assert result.auction.current_bid == Decimal("25000.01")
    assert result.bid.created_at == START


@pytest.mark.asyncio
async def test_ledger_refusal_carries_fresh_snapshot(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot, monkeypatch):
    """The auction is cancelled between validation and append"""
    append_bid = ledger.append_bid

    async def cancelled_meanwhile(auction_id, bidder_id, amount, timestamp, is_auto=False):
        await ledger.mark_status(auction_id, AuctionStatus.cancelled)
        return await append_bid(auction_id, bidder_id, amount, timestamp, is_auto=is_auto)

    monkeypatch.setattr(ledger, "append_bid", cancelled_meanwhile)

    result = await bidding_service.place_bid(auction.id, "u1", Decimal("26000"))

    assert result.accepted is False
    assert result.reason == RejectionReason.auction_not_active
    assert result.auction.status == AuctionStatus.cancelled
    assert result.auction.bid_count == 0


@pytest.mark.asyncio
async def test_place_bid_requires_whole_cents(bidding_service: BiddingService, ledger: AuctionLedger, auction: AuctionSnapshot):
    with pytest.raises(ValueError):
        await bidding_service.place_bid(auction.id, "u1", Decimal("25500.005"))

    assert (await ledger.get_auction_snapshot(auction.id)).bid_count == 0
