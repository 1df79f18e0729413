import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from httpx import AsyncClient

from app.main import app
from app.schemas.auction import AuctionSnapshot
from app.services.bidding import AuctionLedger


def listing_data(**overrides) -> dict:
    data = {
        "brand": "Toyota",
        "model": "Camry",
        "year": 2020,
        "vehicle_type": "sedan",
        "color": "white",
        "mileage": 42000,
        "starting_price": 25000,
        "min_increment": 500,
        "end_time": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
    }
    data.update(overrides)
    return data


async def create_auction(client: AsyncClient, headers: dict, **overrides) -> dict:
    response = await client.post("/auctions/", headers=headers, json=listing_data(**overrides))
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_create_auction(client: AsyncClient, seller_headers: dict):
    """Test listing a vehicle for auction"""
    data = await create_auction(client, seller_headers)

    assert data["seller_id"] == "seller-1"
    assert data["status"] == "active"
    assert data["current_bid"] == 25000.0
    assert data["bid_count"] == 0
    assert data["reserve_met"] is False
    assert data["time_remaining"]["expired"] is False
    assert "version" not in data


@pytest.mark.asyncio
async def test_create_auction_requires_identity(client: AsyncClient):
    response = await client.post("/auctions/", json=listing_data())

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_auction_invalid(client: AsyncClient, seller_headers: dict):
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()

    response = await client.post("/auctions/", headers=seller_headers, json=listing_data(end_time=past))
    assert response.status_code == 400

    response = await client.post("/auctions/", headers=seller_headers, json=listing_data(starting_price=-100))
    assert response.status_code == 422  # Validation error


@pytest.mark.asyncio
async def test_get_unknown_auction(client: AsyncClient):
    response = await client.get("/auctions/missing")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_list_auctions_by_status(client: AsyncClient, seller_headers: dict):
    first = await create_auction(client, seller_headers)
    second = await create_auction(client, seller_headers)
    await client.put(f"/auctions/{first['id']}/status", headers=seller_headers, json={"status": "cancelled"})

    response = await client.get("/auctions/", params={"status": "active"})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert [a["id"] for a in data["auctions"]] == [second["id"]]


@pytest.mark.asyncio
async def test_place_bid(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    """Test placing a bid and reading it back from the history"""
    auction = await create_auction(client, seller_headers)

    response = await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": 25500})

    assert response.status_code == 201
    data = response.json()
    assert data["bid"]["amount"] == 25500.0
    assert data["bid"]["bidder_id"] == "u1"
    assert data["bid"]["sequence"] == 1
    assert data["auction"]["current_bid"] == 25500.0
    assert data["auction"]["bid_count"] == 1

    response = await client.get(f"/auctions/{auction['id']}/bids")
    history = response.json()
    assert history["total"] == 1
    assert [bid["amount"] for bid in history["bids"]] == [25500.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount,code", [
    (25000, "bid_too_low"),
    (25200, "below_minimum_increment"),
])
async def test_place_bid_rejected(client: AsyncClient, seller_headers: dict, bidder_headers: dict, amount, code):
    auction = await create_auction(client, seller_headers)

    response = await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": amount})

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == code
    assert detail["message"]

    response = await client.get(f"/auctions/{auction['id']}")
    assert response.json()["bid_count"] == 0


@pytest.mark.asyncio
async def test_place_bid_invalid_amount(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    auction = await create_auction(client, seller_headers)

    response = await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": -5})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_amounts_must_be_whole_cents(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    """Amounts with fractions of a cent or beyond the stored range are refused at the boundary"""
    response = await client.post("/auctions/", headers=seller_headers, json=listing_data(starting_price=100.005))
    assert response.status_code == 422

    auction = await create_auction(client, seller_headers)
    url = f"/auctions/{auction['id']}"

    for amount in (25500.004, 10000000000):
        response = await client.post(f"{url}/bids", headers=bidder_headers, json={"amount": amount})
        assert response.status_code == 422

    response = await client.post(f"{url}/auto-bid", headers=bidder_headers, json={"max_amount": 27000.001})
    assert response.status_code == 422

    response = await client.get(url)
    assert response.json()["bid_count"] == 0


@pytest.mark.asyncio
async def test_place_bid_unknown_auction(client: AsyncClient, bidder_headers: dict):
    response = await client.post("/auctions/missing/bids", headers=bidder_headers, json={"amount": 100})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_transitions(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    auction = await create_auction(client, seller_headers)
    url = f"/auctions/{auction['id']}/status"

    response = await client.put(url, headers=bidder_headers, json={"status": "sold"})
    assert response.status_code == 403

    response = await client.put(url, headers=seller_headers, json={"status": "sold"})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "invalid_transition"

    await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": 25500})

    response = await client.put(url, headers=seller_headers, json={"status": "sold"})
    assert response.status_code == 200
    assert response.json()["status"] == "sold"

    response = await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": 30000})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "auction_not_active"


@pytest.mark.asyncio
async def test_auto_bid(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    auction = await create_auction(client, seller_headers)
    url = f"/auctions/{auction['id']}/auto-bid"

    response = await client.post(url, headers={"X-User-Id": "u2"}, json={"max_amount": 27000})
    assert response.status_code == 201
    data = response.json()
    assert data["max_amount"] == 27000.0
    assert data["is_active"] is True
    assert data["auction"]["current_bid"] == 25500.0

    response = await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": 26000})
    assert response.json()["auction"]["current_bid"] == 26500.0

    response = await client.delete(url, headers={"X-User-Id": "u2"})
    assert response.status_code == 204

    response = await client.delete(url, headers={"X-User-Id": "u2"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_auto_bid_rejected(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    auction = await create_auction(client, seller_headers)

    response = await client.post(f"/auctions/{auction['id']}/auto-bid", headers=bidder_headers, json={"max_amount": 25100})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "below_minimum_increment"


@pytest.mark.asyncio
async def test_dashboard(client: AsyncClient, seller_headers: dict, bidder_headers: dict):
    auction = await create_auction(client, seller_headers)
    await client.post(f"/auctions/{auction['id']}/bids", headers=bidder_headers, json={"amount": 25500})
    await client.put(f"/auctions/{auction['id']}/status", headers=seller_headers, json={"status": "sold"})

    bids = (await client.get("/dashboard/bids", headers=bidder_headers)).json()
    assert [bid["auction_id"] for bid in bids] == [auction["id"]]

    auctions = (await client.get("/dashboard/auctions", headers=bidder_headers)).json()
    assert [a["id"] for a in auctions] == [auction["id"]]

    won = (await client.get("/dashboard/won", headers=bidder_headers)).json()
    assert [a["id"] for a in won] == [auction["id"]]

    listings = (await client.get("/dashboard/listings", headers=seller_headers)).json()
    assert [a["id"] for a in listings] == [auction["id"]]

    response = await client.get("/dashboard/won")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_countdown_websocket_for_ended_auction(client: AsyncClient, ledger: AuctionLedger, auction: AuctionSnapshot):
    """An auction past its end time gets a single expired message"""
    with TestClient(app).websocket_connect(f"/auctions/{auction.id}/countdown") as websocket:
        message = websocket.receive_json()

    assert message["type"] == "expired"
    assert message["auction_id"] == auction.id
    assert message["remaining"]["expired"] is True
    assert message["text"] == "Auction ended"


@pytest.mark.asyncio
async def test_countdown_websocket_unknown_auction(client: AsyncClient):
    with TestClient(app).websocket_connect("/auctions/missing/countdown") as websocket:
        message = websocket.receive_json()

    assert message["type"] == "error"
