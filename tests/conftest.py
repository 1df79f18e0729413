import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from app.main import app
from app.schemas.auction import AuctionSnapshot
from app.services.bidding import AuctionLedger, AuctionService, BiddingService
from app.services.store import DatabaseAuctionStore, InMemoryAuctionStore
from app.enums.increment_mode import IncrementMode


START = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def build_auction(**overrides) -> AuctionSnapshot:
    data = {
        "id": "auction-1",
        "seller_id": "seller-1",
        "brand": "Toyota",
        "model": "Camry",
        "year": 2020,
        "vehicle_type": "sedan",
        "color": "white",
        "mileage": 42000,
        "starting_price": Decimal("25000"),
        "current_bid": Decimal("25000"),
        "created_at": START,
        "end_time": START + timedelta(hours=1),
    }
    data.update(overrides)
    return AuctionSnapshot(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryAuctionStore:
    return InMemoryAuctionStore()


@pytest.fixture
async def ledger(store: InMemoryAuctionStore) -> AsyncGenerator:
    """Isolated ledger per test"""
    ledger = AuctionLedger(store, history_page_size=2)
    yield ledger
    await ledger.close()


@pytest.fixture
def auction_service(ledger: AuctionLedger, clock: FakeClock) -> AuctionService:
    return AuctionService(
        ledger,
        clock=clock,
        increment_mode=IncrementMode.flat,
        increment_flat=Decimal("500"),
        increment_percent=Decimal("5"),
    )


@pytest.fixture
def bidding_service(ledger: AuctionLedger, clock: FakeClock) -> BiddingService:
    return BiddingService(
        ledger,
        clock=clock,
        stale_bid_retries=2,
        auto_bid_step=Decimal("100"),
        auto_bid_max_rounds=50,
    )


@pytest.fixture
async def auction(ledger: AuctionLedger) -> AuctionSnapshot:
    """Active auction starting at 25000 with a 500 minimum increment, ending in one hour"""
    return await ledger.register_auction(build_auction(min_increment=Decimal("500")))


@pytest.fixture
async def db() -> AsyncGenerator:
    """Initialize an in-memory test database"""
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["app.models"]},
        use_tz=True,
        timezone="UTC",
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
async def db_ledger(db) -> AsyncGenerator:
    ledger = AuctionLedger(DatabaseAuctionStore(), history_page_size=2)
    yield ledger
    await ledger.close()


@pytest.fixture
async def client(ledger: AuctionLedger) -> AsyncGenerator:
    """Create async HTTP client backed by an in-memory ledger"""
    app.state.ledger = ledger
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    del app.state.ledger


@pytest.fixture
def seller_headers() -> dict:
    return {"X-User-Id": "seller-1"}


@pytest.fixture
def bidder_headers() -> dict:
    return {"X-User-Id": "u1"}
