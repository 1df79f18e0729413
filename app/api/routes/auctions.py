from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_auction_service, get_bidding_service, get_current_user_id
from app.enums.auction_status import AuctionStatus
from app.enums.rejection_reason import RejectionReason
from app.schemas.auction import (AuctionCreate, AuctionListResponse, AuctionResponse, AuctionSnapshot,
                                 AuctionStatusUpdate)
from app.schemas.bid import (AutoBidCreate, AutoBidResponse, BidCreate, BidHistoryResponse, BidResponse,
                             BidResult, PlaceBidResponse, RejectionDetail)
from app.services.bidding import (AuctionError, AuctionService, BiddingService, remaining_time,
                                  utc_now)

router = APIRouter()


def to_auction_response(auction: AuctionSnapshot) -> AuctionResponse:
    time_remaining = remaining_time(auction.end_time, utc_now()) if auction.end_time else None
    return AuctionResponse(
        **auction.model_dump(exclude={"version"}),
        reserve_met=auction.reserve_met,
        time_remaining=time_remaining,
    )


def rejection_to_http(reason: RejectionReason) -> HTTPException:
    status_code = (
        status.HTTP_404_NOT_FOUND if reason == RejectionReason.not_found
        else status.HTTP_409_CONFLICT
    )
    return HTTPException(
        status_code=status_code,
        detail=RejectionDetail.from_reason(reason).model_dump(mode="json")
    )


def raise_for_result(result: BidResult):
    if not result.accepted:
        raise rejection_to_http(result.reason)


@router.post("/", response_model=AuctionResponse, status_code=status.HTTP_201_CREATED)
async def create_auction(
    listing: AuctionCreate,
    seller_id: str = Depends(get_current_user_id),
    service: AuctionService = Depends(get_auction_service)
):
    """
    Выставляет автомобиль на аукцион.

    Текущая ставка аукциона равна стартовой цене, пока нет ни одной ставки.
    Минимальный шаг ставки фиксируется в момент создания лота.

    Args:
        listing (AuctionCreate): Данные автомобиля, стартовая и резервная цена, время окончания.
        seller_id: Идентификатор продавца из заголовка X-User-Id.

    Returns:
        AuctionResponse: Созданный аукцион.

    Raises:
        HTTPException:
            - 400: если время окончания уже прошло.
    """
    try:
        auction = await service.create_auction(seller_id, listing)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return to_auction_response(auction)


@router.get("/", response_model=AuctionListResponse)
async def list_auctions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[AuctionStatus] = Query(None, alias="status"),
    service: AuctionService = Depends(get_auction_service)
):
    """Get auctions, newest first"""
    auctions, total = await service.list_auctions(status=status_filter, page=page, page_size=page_size)

    return AuctionListResponse(
        total=total,
        page=page,
        page_size=page_size,
        auctions=[to_auction_response(auction) for auction in auctions]
    )


@router.get("/{auction_id}", response_model=AuctionResponse)
async def get_auction(
    auction_id: str,
    service: AuctionService = Depends(get_auction_service)
):
    """Get auction by ID"""
    try:
        auction = await service.get_auction(auction_id)
    except AuctionError as e:
        raise rejection_to_http(e.reason)
    return to_auction_response(auction)


@router.get("/{auction_id}/bids", response_model=BidHistoryResponse)
async def get_bid_history(
    auction_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service: AuctionService = Depends(get_auction_service)
):
    """Get auction bid history, newest first"""
    try:
        bids, total = await service.get_bid_history(auction_id, page=page, page_size=page_size)
    except AuctionError as e:
        raise rejection_to_http(e.reason)

    return BidHistoryResponse(
        total=total,
        page=page,
        page_size=page_size,
        bids=[BidResponse.model_validate(bid) for bid in bids]
    )


@router.post("/{auction_id}/bids", response_model=PlaceBidResponse, status_code=status.HTTP_201_CREATED)
async def place_bid(
    auction_id: str,
    bid_in: BidCreate,
    bidder_id: str = Depends(get_current_user_id),
    service: BiddingService = Depends(get_bidding_service)
):
    """
    Делает ставку на аукцион.

    Ставка должна быть строго выше текущей и не меньше текущей ставки
    плюс минимальный шаг. При отказе возвращается стабильный код причины.

    Args:
        auction_id (str): Идентификатор аукциона.
        bid_in (BidCreate): Сумма ставки.
        bidder_id: Идентификатор участника из заголовка X-User-Id.

    Returns:
        PlaceBidResponse: Принятая ставка и обновлённое состояние аукциона.

    Raises:
        HTTPException:
            - 404: если аукцион не найден.
            - 409: если ставка отклонена (code: auction_not_active, auction_ended,
              bid_too_low, below_minimum_increment, stale_bid).
    """
    result = await service.place_bid(auction_id, bidder_id, bid_in.amount)
    raise_for_result(result)

    return PlaceBidResponse(
        bid=BidResponse.model_validate(result.bid),
        auction=to_auction_response(result.auction)
    )


@router.put("/{auction_id}/status", response_model=AuctionResponse)
async def update_auction_status(
    auction_id: str,
    status_in: AuctionStatusUpdate,
    seller_id: str = Depends(get_current_user_id),
    service: AuctionService = Depends(get_auction_service)
):
    """
    Меняет статус аукциона: active -> sold (только при наличии ставок) или active -> cancelled.

    Raises:
        HTTPException:
            - 403: если пользователь не продавец этого аукциона.
            - 404: если аукцион не найден.
            - 409: если переход недопустим.
    """
    try:
        auction = await service.mark_status(auction_id, seller_id, status_in.status)
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )
    except AuctionError as e:
        raise rejection_to_http(e.reason)
    return to_auction_response(auction)


@router.post("/{auction_id}/auto-bid", response_model=AutoBidResponse, status_code=status.HTTP_201_CREATED)
async def set_auto_bid(
    auction_id: str,
    auto_bid_in: AutoBidCreate,
    bidder_id: str = Depends(get_current_user_id),
    service: BiddingService = Depends(get_bidding_service)
):
    """Set an auto-bid: the system bids on your behalf up to max_amount"""
    result = await service.set_auto_bid(auction_id, bidder_id, auto_bid_in.max_amount)
    raise_for_result(result)

    return AutoBidResponse(
        **result.auto_bid.model_dump(),
        auction=to_auction_response(result.auction)
    )


@router.delete("/{auction_id}/auto-bid", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_auto_bid(
    auction_id: str,
    bidder_id: str = Depends(get_current_user_id),
    service: BiddingService = Depends(get_bidding_service)
):
    """Cancel your auto-bid on an auction"""
    if not await service.cancel_auto_bid(auction_id, bidder_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Auto-bid not found"
        )
