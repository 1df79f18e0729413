import asyncio

from loguru import logger

from app.core.config import settings
from app.core.config.celery import celery_app
from app.core.database import DatabaseManager
from app.services.bidding import AuctionLedger, AuctionService
from app.services.store import DatabaseAuctionStore


async def settle_expired_auctions() -> list[str]:
    """Open a database session, settle every expired auction, return the settled ids"""
    await DatabaseManager.init(generate_schemas=False)
    ledger = AuctionLedger(DatabaseAuctionStore(), history_page_size=settings.history_page_size)
    try:
        settled = await AuctionService(ledger).close_expired_auctions()
        return [auction.id for auction in settled]
    finally:
        await ledger.close()
        await DatabaseManager.close()


@celery_app.task(
    name="app.tasks.auctions.close_expired_auctions",
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    retry_kwargs={'max_retries': 3},
    soft_time_limit=25,
    time_limit=30
)
def close_expired_auctions():
    """Периодическая задача: завершает аукционы, у которых истекло время"""
    logger.debug("Closing expired auctions")
    try:
        settled = asyncio.run(settle_expired_auctions())
    except Exception as e:
        logger.error(f"Closing expired auctions failed: {e}")
        raise
    if settled:
        logger.info(f"Closed auctions: {', '.join(settled)}")
    return settled
