from fastapi import APIRouter, Depends

from app.api.dependencies import get_auction_service, get_current_user_id
from app.api.routes.auctions import to_auction_response
from app.schemas.auction import AuctionResponse
from app.schemas.bid import BidResponse
from app.services.bidding import AuctionService

router = APIRouter()


@router.get("/bids", response_model=list[BidResponse])
async def get_my_bids(
    user_id: str = Depends(get_current_user_id),
    service: AuctionService = Depends(get_auction_service)
):
    """Get current user's bids, newest first"""
    bids = await service.get_bidder_bids(user_id)
    return [BidResponse.model_validate(bid) for bid in bids]


@router.get("/auctions", response_model=list[AuctionResponse])
async def get_my_auctions(
    user_id: str = Depends(get_current_user_id),
    service: AuctionService = Depends(get_auction_service)
):
    """Get auctions the current user has bid on"""
    return [to_auction_response(auction) for auction in await service.get_bidder_auctions(user_id)]


@router.get("/won", response_model=list[AuctionResponse])
async def get_won_auctions(
    user_id: str = Depends(get_current_user_id),
    service: AuctionService = Depends(get_auction_service)
):
    """Get auctions the current user has won"""
    return [to_auction_response(auction) for auction in await service.get_won_auctions(user_id)]


@router.get("/listings", response_model=list[AuctionResponse])
async def get_my_listings(
    user_id: str = Depends(get_current_user_id),
    service: AuctionService = Depends(get_auction_service)
):
    """Get auctions listed by the current user"""
    return [to_auction_response(auction) for auction in await service.get_seller_auctions(user_id)]
