from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.requests import HTTPConnection
from loguru import logger

from app.services.bidding import AuctionLedger, AuctionService, BiddingService


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> str:
    """
    Идентификатор пользователя, проставленный внешним identity-провайдером.

    Сервис не выполняет аутентификацию сам и доверяет заголовку X-User-Id.
    """
    if not x_user_id or not x_user_id.strip():
        logger.warning("Request without X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity"
        )
    return x_user_id.strip()


def get_ledger(connection: HTTPConnection) -> AuctionLedger:
    """Ledger created in the application lifespan; shared by HTTP and WebSocket routes"""
    return connection.app.state.ledger


def get_auction_service(ledger: AuctionLedger = Depends(get_ledger)) -> AuctionService:
    return AuctionService(ledger)


def get_bidding_service(ledger: AuctionLedger = Depends(get_ledger)) -> BiddingService:
    return BiddingService(ledger)
