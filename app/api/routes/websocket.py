from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from loguru import logger

from app.api.dependencies import get_ledger
from app.core.config import settings
from app.services.bidding import AuctionLedger, AuctionNotFound, countdown, format_time_remaining

router = APIRouter()


@router.websocket("/{auction_id}/countdown")
async def auction_countdown(
    websocket: WebSocket,
    auction_id: str,
    ledger: AuctionLedger = Depends(get_ledger)
):
    """
    WebSocket endpoint for a live auction countdown

    Message types from server:
    - countdown: {"type": "countdown", "auction_id", "remaining": {...}, "text"}
    - expired: sent once when the end time is reached, then the socket closes
    - error: the auction is unknown or has no end time
    """
    await websocket.accept()

    try:
        auction = await ledger.get_auction_snapshot(auction_id)
    except AuctionNotFound:
        await websocket.send_json({"type": "error", "message": f"Auction {auction_id} not found"})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if auction.end_time is None:
        await websocket.send_json({"type": "error", "message": f"Auction {auction_id} has no end time"})
        await websocket.close()
        return

    logger.info(f"Countdown started for auction {auction_id}")
    try:
        async for remaining in countdown(auction.end_time, interval=settings.countdown_interval_seconds):
            await websocket.send_json({
                "type": "expired" if remaining.expired else "countdown",
                "auction_id": auction_id,
                "remaining": remaining.model_dump(),
                "text": format_time_remaining(remaining)
            })
        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"Countdown client for auction {auction_id} disconnected")
