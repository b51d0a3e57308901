from decimal import Decimal

from services.market.price_cache import PriceCache
from services.market.pricing import PricingGateway
from services.market.quote import Quote

class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

def test_price_cache_expires_after_ttl():
    clock = FakeClock()
    cache = PriceCache(ttl_seconds=60, clock=clock)
    cache.put("bitcoin", Quote(price=Decimal("1")))

    clock.now = 59.9
    assert cache.get("bitcoin").price == Decimal("1")

    clock.now = 60.0
    assert cache.get("bitcoin") is None

def test_price_cache_replaces_whole_entry():
    cache = PriceCache()
    cache.put("bitcoin", Quote(price=Decimal("1"), volume_24h=Decimal("5")))
    cache.put("bitcoin", Quote(price=Decimal("2")))

    quote = cache.get("bitcoin")
    assert quote.price == Decimal("2")
    assert quote.volume_24h is None

    cache.invalidate("bitcoin")
    assert cache.get("bitcoin") is None

async def test_live_price_is_cached(session_factory, price_source, create_coin):
    coin = await create_coin("BTC", gecko_id="bitcoin")
    price_source.set_price("bitcoin", "50000")
    pricing = PricingGateway(session_factory, price_source, PriceCache())

    assert await pricing.current_price(coin.coin_id) == Decimal("50000")
    price_source.set_price("bitcoin", "51000")
    assert await pricing.current_price(coin.coin_id) == Decimal("50000")
    assert price_source.calls == 1

async def test_expired_entry_triggers_refetch(session_factory, price_source, create_coin):
    clock = FakeClock()
    coin = await create_coin("BTC", gecko_id="bitcoin")
    price_source.set_price("bitcoin", "50000")
    pricing = PricingGateway(session_factory, price_source, PriceCache(ttl_seconds=60, clock=clock))

    await pricing.current_price(coin.coin_id)
    price_source.set_price("bitcoin", "51000")
    clock.now = 61

    assert await pricing.current_price(coin.coin_id) == Decimal("51000")
    assert price_source.calls == 2

async def test_source_failure_falls_back_to_latest_snapshot(session_factory, price_source, create_coin, add_snapshot):
    coin = await create_coin("BTC", gecko_id="bitcoin")
    await add_snapshot(coin.coin_id, "40000")
    await add_snapshot(coin.coin_id, "41000")
    price_source.failing.add("bitcoin")
    pricing = PricingGateway(session_factory, price_source, PriceCache())

    assert await pricing.current_price(coin.coin_id) == Decimal("41000")

async def test_coin_without_source_id_uses_snapshot(session_factory, price_source, create_coin, add_snapshot):
    coin = await create_coin("XRP")
    await add_snapshot(coin.coin_id, "0.5")
    pricing = PricingGateway(session_factory, price_source, PriceCache())

    assert await pricing.current_price(coin.coin_id) == Decimal("0.5")
    assert price_source.calls == 0

async def test_no_price_anywhere_returns_none(session_factory, price_source, create_coin):
    coin = await create_coin("BTC", gecko_id="bitcoin")
    price_source.failing.add("bitcoin")
    pricing = PricingGateway(session_factory, price_source, PriceCache())

    assert await pricing.current_price(coin.coin_id) is None
    assert await pricing.current_price(9999) is None
