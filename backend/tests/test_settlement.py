import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select, func

from models import Order, Trade, CoinBalance, VirtualAccount
from models.order import OrderSide, OrderStatus
from services.common.errors import ValidationError, NotFoundError, ConflictError, ExternalUnavailable

async def _account(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(select(VirtualAccount).where(VirtualAccount.user_id == user_id))
        return result.scalars().one()

async def _balance(session_factory, user_id, coin_id):
    async with session_factory() as session:
        result = await session.execute(
            select(CoinBalance)
            .join(VirtualAccount, VirtualAccount.account_id == CoinBalance.account_id)
            .where(VirtualAccount.user_id == user_id, CoinBalance.coin_id == coin_id)
        )
        return result.scalars().first()

async def _count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()

@pytest_asyncio.fixture
async def trader(create_user, set_cash):
    user_id = await create_user()
    await set_cash(user_id, "1000000")
    return user_id

async def test_market_buy_then_sell_settles_cash_and_balance(container, session_factory, price_source, create_coin, trader):
    coin = await create_coin("BTC", gecko_id="bitcoin")
    price_source.set_price("bitcoin", "100000")

    buy = await container.settlement.execute_order(trader, "BTC", "BUY", "MARKET", "1.0")
    assert buy.ok
    assert buy.value.status == OrderStatus.FILLED
    assert buy.value.fee_amount == Decimal("100")
    assert buy.value.base_cash == Decimal("899900")

    balance = await _balance(session_factory, trader, coin.coin_id)
    assert balance.amount == Decimal("1")
    assert balance.avg_buy_price == Decimal("100000")

    container.pricing.cache.clear()
    price_source.set_price("bitcoin", "120000")
    sell = await container.settlement.execute_order(trader, "BTC", "SELL", "MARKET", "0.5")
    assert sell.ok
    assert sell.value.fee_amount == Decimal("60")
    assert sell.value.total == Decimal("59940")

    account = await _account(session_factory, trader)
    assert account.base_cash == Decimal("959840")
    assert account.total_profit == Decimal("9940")

    balance = await _balance(session_factory, trader, coin.coin_id)
    assert balance.amount == Decimal("0.5")
    assert balance.avg_buy_price == Decimal("100000")

async def test_second_buy_updates_weighted_average(container, session_factory, create_coin, trader):
    coin = await create_coin("ETH")

    assert (await container.settlement.execute_order(trader, "ETH", "BUY", "LIMIT", "1", "1000")).ok
    assert (await container.settlement.execute_order(trader, "ETH", "BUY", "LIMIT", "3", "2000")).ok

    balance = await _balance(session_factory, trader, coin.coin_id)
    assert balance.amount == Decimal("4")
    assert balance.avg_buy_price == Decimal("1750")

async def test_fill_writes_filled_order_and_trade(container, session_factory, create_coin, trader):
    await create_coin("ETH")

    result = await container.settlement.execute_order(trader, "eth", "buy", "limit", "2", "1000")
    assert result.ok

    async with session_factory() as session:
        order = await session.get(Order, result.value.order_id)
        trade = await session.get(Trade, result.value.trade_id)
    assert order.status == OrderStatus.FILLED
    assert order.executed_price == Decimal("1000")
    assert order.limit_price == Decimal("1000")
    assert trade.order_id == order.order_id
    assert trade.side == OrderSide.BUY
    assert trade.fee == Decimal("2")
    assert trade.total == Decimal("2002")

async def test_buy_with_insufficient_cash_is_rejected_without_rows(container, session_factory, create_coin, trader):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "10", "100000")
    assert not result.ok
    assert isinstance(result.error, ConflictError)
    assert result.reason == "Insufficient balance"

    assert (await _account(session_factory, trader)).base_cash == Decimal("1000000")
    assert await _count(session_factory, Order) == 0
    assert await _count(session_factory, Trade) == 0

async def test_oversell_is_rejected_and_changes_nothing(container, session_factory, create_coin, trader):
    coin = await create_coin("BTC")
    assert (await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "1", "1000")).ok
    cash_before = (await _account(session_factory, trader)).base_cash

    result = await container.settlement.execute_order(trader, "BTC", "SELL", "LIMIT", "1.5", "1000")
    assert not result.ok
    assert result.reason == "Insufficient coin balance"

    assert (await _account(session_factory, trader)).base_cash == cash_before
    assert (await _balance(session_factory, trader, coin.coin_id)).amount == Decimal("1")
    assert await _count(session_factory, Trade) == 1

async def test_sell_without_balance(container, create_coin, trader):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "SELL", "LIMIT", "1", "1000")
    assert not result.ok
    assert result.reason == "No balance to sell"

async def test_limit_order_requires_price(container, create_coin, trader):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "1")
    assert isinstance(result.error, ValidationError)
    assert result.reason == "Price required for LIMIT order"

async def test_unknown_and_disabled_coins_are_rejected(container, create_coin, trader):
    await create_coin("DOGE", enabled=False)

    missing = await container.settlement.execute_order(trader, "NOPE", "BUY", "LIMIT", "1", "1")
    assert isinstance(missing.error, NotFoundError)
    assert missing.reason == "Coin not found"

    disabled = await container.settlement.execute_order(trader, "DOGE", "BUY", "LIMIT", "1", "1")
    assert isinstance(disabled.error, ValidationError)
    assert disabled.reason == "Coin trading is disabled"

async def test_coin_is_checked_before_account(container):
    result = await container.settlement.execute_order(999, "NOPE", "BUY", "MARKET", "1")
    assert result.reason == "Coin not found"

async def test_missing_account(container, create_coin):
    await create_coin("BTC")

    result = await container.settlement.execute_order(999, "BTC", "BUY", "LIMIT", "1", "1")
    assert isinstance(result.error, NotFoundError)
    assert result.reason == "Account not found"

async def test_market_order_without_any_price(container, create_coin, trader):
    await create_coin("BTC", gecko_id="bitcoin")

    result = await container.settlement.execute_order(trader, "BTC", "BUY", "MARKET", "1")
    assert isinstance(result.error, ExternalUnavailable)
    assert result.reason == "Price not available"

@pytest.mark.parametrize("quantity", ["0", "-1", "abc", None, 1.5])
async def test_invalid_quantity(container, create_coin, trader, quantity):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", quantity, "1")
    assert isinstance(result.error, ValidationError)

async def test_invalid_side(container, create_coin, trader):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "HOLD", "LIMIT", "1", "1")
    assert isinstance(result.error, ValidationError)

async def test_concurrent_buys_never_overdraw(container, session_factory, create_coin, trader):
    await create_coin("BTC")

    # 현금 1,000,000 으로는 600,600 짜리 주문 1건만 가능
    results = await asyncio.gather(*[
        container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "1", "600000")
        for _ in range(2)
    ])

    assert sum(1 for r in results if r.ok) == 1
    account = await _account(session_factory, trader)
    assert account.base_cash == Decimal("399400")
    assert account.base_cash >= 0
    assert await _count(session_factory, Trade) == 1

async def test_list_orders_newest_first(container, create_coin, trader):
    await create_coin("BTC")
    first = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "1", "10")
    second = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "1", "20")

    orders = await container.settlement.list_orders(trader)
    assert [o.order_id for o in orders] == [second.value.order_id, first.value.order_id]

@pytest.mark.parametrize("quantity, price", [("0.000000001", "100"), ("1", "100.000000001")])
async def test_values_finer_than_eight_decimals_are_rejected(container, session_factory, create_coin, trader, quantity, price):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", quantity, price)

    assert isinstance(result.error, ValidationError)
    assert "8 decimal places" in result.reason
    assert await _count(session_factory, Order) == 0

async def test_sub_unit_sell_cannot_drain_dust_position(container, session_factory, create_coin, trader):
    coin = await create_coin("BTC")
    assert (await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "0.00000001", "100000000")).ok
    cash_before = (await _account(session_factory, trader)).base_cash

    for _ in range(3):
        result = await container.settlement.execute_order(trader, "BTC", "SELL", "LIMIT", "0.000000004", "100000000")
        assert isinstance(result.error, ValidationError)

    assert (await _account(session_factory, trader)).base_cash == cash_before
    assert (await _balance(session_factory, trader, coin.coin_id)).amount == Decimal("0.00000001")

async def test_oversized_quantity_is_rejected(container, create_coin, trader):
    await create_coin("BTC")

    result = await container.settlement.execute_order(trader, "BTC", "BUY", "LIMIT", "1" + "0" * 25, "1")
    assert isinstance(result.error, ValidationError)

async def test_weighted_average_rounds_half_up_to_eight_places(container, session_factory, create_coin, trader):
    coin = await create_coin("ETH")

    assert (await container.settlement.execute_order(trader, "ETH", "BUY", "LIMIT", "1", "100")).ok
    assert (await container.settlement.execute_order(trader, "ETH", "BUY", "LIMIT", "2", "200")).ok

    balance = await _balance(session_factory, trader, coin.coin_id)
    assert balance.amount == Decimal("3")
    assert balance.avg_buy_price == Decimal("166.66666667")

async def test_buy_sell_buy_sequence_tracks_cash_and_cost_basis(container, session_factory, create_coin, trader):
    coin = await create_coin("ETH")
    cash = Decimal("1000000")

    steps = [
        ("BUY", "2", "100", -Decimal("200.2"), Decimal("2"), Decimal("100")),
        # 매도는 평단가를 바꾸지 않는다
        ("SELL", "1", "150", Decimal("149.85"), Decimal("1"), Decimal("100")),
        # 남은 1개만 가중 평균에 반영
        ("BUY", "1", "200", -Decimal("200.2"), Decimal("2"), Decimal("150")),
    ]
    for side, quantity, price, cash_flow, amount, avg in steps:
        result = await container.settlement.execute_order(trader, "ETH", side, "LIMIT", quantity, price)
        assert result.ok, result
        cash += cash_flow
        assert (await _account(session_factory, trader)).base_cash == cash
        balance = await _balance(session_factory, trader, coin.coin_id)
        assert balance.amount == amount
        assert balance.avg_buy_price == avg

    assert cash == Decimal("999749.45")
