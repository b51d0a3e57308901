from decimal import Decimal

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from main import app
from models import User
from models.user import UserRole

@pytest_asyncio.fixture
async def client(container):
    app.state.container = container
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

async def _register(client, nickname="trader"):
    response = await client.post("/api/auth/register", json={
        "email": f"{nickname}@example.com",
        "password": "password123",
        "nickname": nickname,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return body, {"Authorization": f"Bearer {body['accessToken']}"}

async def test_root(client):
    response = await client.get("/")
    assert response.json() == {"message": "Coin Hub API"}

async def test_register_login_refresh(client):
    body, _ = await _register(client)
    assert set(body) == {"accessToken", "refreshToken", "userId", "email", "nickname"}

    duplicate = await client.post("/api/auth/register", json={
        "email": "trader@example.com", "password": "password123", "nickname": "someone",
    })
    assert duplicate.status_code == 409

    login = await client.post("/api/auth/login", json={"email": "trader@example.com", "password": "password123"})
    assert login.status_code == 200

    bad = await client.post("/api/auth/login", json={"email": "trader@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401

    refreshed = await client.post("/api/auth/refresh", json={"refresh_token": login.json()["refreshToken"]})
    assert refreshed.status_code == 200

async def test_protected_routes_require_token(client):
    assert (await client.get("/api/account/summary")).status_code == 401
    assert (await client.get("/api/account/summary", headers={"Authorization": "Bearer junk"})).status_code == 401

async def test_order_and_summary(client, create_coin):
    await create_coin("BTC")
    _, headers = await _register(client)

    response = await client.post("/api/trade/order", headers=headers, json={
        "coinSymbol": "BTC", "side": "BUY", "type": "LIMIT", "quantity": "1", "price": "100000",
    })
    assert response.status_code == 201, response.text
    order = response.json()
    assert order["status"] == "FILLED"
    assert Decimal(order["feeAmount"]) == Decimal("100")

    rejected = await client.post("/api/trade/order", headers=headers, json={
        "coinSymbol": "BTC", "side": "SELL", "type": "LIMIT", "quantity": "5", "price": "100000",
    })
    assert rejected.status_code == 409
    assert rejected.json()["detail"] == "Insufficient coin balance"

    missing = await client.post("/api/trade/order", headers=headers, json={
        "coinSymbol": "NOPE", "side": "BUY", "quantity": "1",
    })
    assert missing.status_code == 404

    summary = (await client.get("/api/account/summary", headers=headers)).json()
    assert Decimal(summary["baseCash"]) == Decimal("9899900")
    assert summary["coinCount"] == 1

    orders = (await client.get("/api/trade/orders", headers=headers)).json()
    assert len(orders) == 1
    assert orders[0]["orderId"] == order["orderId"]

async def test_market_and_watchlist(client, price_source, create_coin, add_snapshot):
    btc = await create_coin("BTC", gecko_id="bitcoin")
    price_source.set_price("bitcoin", "50000")
    await add_snapshot(btc.coin_id, "49000")
    _, headers = await _register(client)

    tickers = (await client.get("/api/market/tickers")).json()
    assert [(t["symbol"], Decimal(t["price"])) for t in tickers] == [("BTC", Decimal("50000"))]

    assert (await client.get("/api/market/coins/eth")).status_code == 404
    history = (await client.get("/api/market/coins/btc/history")).json()
    assert len(history) == 1

    added = await client.post("/api/market/watchlist", headers=headers, json={"coinSymbol": "BTC"})
    assert added.status_code == 201
    again = await client.post("/api/market/watchlist", headers=headers, json={"coinSymbol": "BTC"})
    assert again.status_code == 409

    items = (await client.get("/api/market/watchlist", headers=headers)).json()
    assert [i["coinSymbol"] for i in items] == ["BTC"]

    removed = await client.delete("/api/market/watchlist/BTC", headers=headers)
    assert removed.status_code == 204

async def test_nft_flow(client, session_factory, create_contract):
    contract = await create_contract()
    admin, admin_headers = await _register(client, "admin")
    _, user_headers = await _register(client, "collector")

    mint_body = {"contractId": contract.contract_id, "tokenId": "7", "name": "Genesis #7", "price": "5000"}
    assert (await client.post("/api/nft/mint", headers=user_headers, json=mint_body)).status_code == 403

    async with session_factory() as session:
        await session.execute(update(User).where(User.user_id == admin["userId"]).values(role=UserRole.ADMIN))
        await session.commit()

    minted = await client.post("/api/nft/mint", headers=admin_headers, json=mint_body)
    assert minted.status_code == 201, minted.text
    assert (await client.post("/api/nft/mint", headers=admin_headers, json=mint_body)).status_code == 409

    token_id = minted.json()["nftTokenId"]
    assert [t["nftTokenId"] for t in (await client.get("/api/nft/list")).json()] == [token_id]

    bought = await client.post("/api/nft/buy", headers=user_headers, json={"nftTokenId": token_id})
    assert bought.status_code == 201, bought.text
    assert bought.json()["status"] == "OWNED"

    bad_wallet = await client.post("/api/nft/withdraw", headers=user_headers, json={
        "nftTokenId": token_id, "targetWallet": "0x1234",
    })
    assert bad_wallet.status_code == 400

    withdraw = await client.post("/api/nft/withdraw", headers=user_headers, json={
        "nftTokenId": token_id, "targetWallet": "0x" + "d" * 40,
    })
    assert withdraw.status_code == 201, withdraw.text
    assert withdraw.json()["status"] == "PENDING"

    withdrawals = (await client.get("/api/nft/withdrawals", headers=user_headers)).json()
    assert [w["status"] for w in withdrawals] == ["PENDING"]

async def test_chain_metrics_route(client, container):
    assert (await client.get("/api/onchain/chains/ethereum-sepolia")).status_code == 404

    await container.onchain.record_metric("ethereum-sepolia", 123, Decimal("1.5"))
    body = (await client.get("/api/onchain/chains/ethereum-sepolia")).json()
    assert body["latestBlockNumber"] == 123
