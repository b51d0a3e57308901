import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.coin import Coin, PriceSnapshot
from .price_cache import PriceCache
from .quote import PriceSource, Quote

logger = logging.getLogger(__name__)

class PricingGateway:
    """
    코인 현재가 조회

    1. 메모리 캐시 (외부 시세 소스 ID 기준, TTL)
    2. 외부 시세 소스 실시간 조회 -> 캐시에 저장
    3. 실패하거나 소스 ID 가 없으면 가장 최근 PriceSnapshot
    4. 그것도 없으면 None

    실시간 조회 결과는 캐시에만 저장한다. 스냅샷 저장은 수집 워커의 몫이다.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        price_source: PriceSource,
        cache: PriceCache,
    ):
        self.session_factory = session_factory
        self.price_source = price_source
        self.cache = cache

    async def current_price(self, coin_id: int) -> Optional[Decimal]:
        async with self.session_factory() as session:
            coin = await session.get(Coin, coin_id)
        if coin is None:
            return None
        quote = await self.current_quote(coin)
        return quote.price if quote else None

    async def current_quote(self, coin: Coin) -> Optional[Quote]:
        source_id = coin.gecko_id
        if source_id:
            cached = self.cache.get(source_id)
            if cached is not None:
                return cached

            try:
                quote = await self.price_source.fetch_quote(source_id)
            except Exception as e:
                # 외부 장애는 호출자에게 전파하지 않고 스냅샷으로 대체
                logger.warning(f"⚠️ {coin.symbol} 실시간 시세 조회 실패, 스냅샷으로 대체합니다: {e}")
            else:
                self.cache.put(source_id, quote)
                return quote

        snapshot = await self.latest_snapshot(coin.coin_id)
        if snapshot is None:
            logger.info(f"💾 {coin.symbol} 시세 정보가 없습니다.")
            return None
        return Quote(
            price=snapshot.price,
            volume_24h=snapshot.volume_24h,
            high_24h=snapshot.high_24h,
            low_24h=snapshot.low_24h,
            change_pct_24h=snapshot.change_24h_pct,
            market_cap=snapshot.market_cap,
        )

    async def latest_snapshot(self, coin_id: int) -> Optional[PriceSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PriceSnapshot)
                .where(PriceSnapshot.coin_id == coin_id)
                .order_by(PriceSnapshot.timestamp.desc(), PriceSnapshot.snapshot_id.desc())
                .limit(1)
            )
            return result.scalars().first()
