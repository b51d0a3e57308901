import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.coin import Coin, PriceSnapshot
from models.watchlist import Watchlist
from services.common.errors import NotFoundError, ConflictError
from services.common.result import Ok, Err, Result
from services.common.transaction import run_atomic
from .pricing import PricingGateway
from .quote import Quote

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CoinTicker:
    symbol: str
    name: str
    price: Decimal
    volume_24h: Optional[Decimal]
    high_24h: Optional[Decimal]
    low_24h: Optional[Decimal]
    change_24h_pct: Optional[Decimal]

    @classmethod
    def from_quote(cls, coin: Coin, quote: Quote) -> "CoinTicker":
        return cls(
            symbol=coin.symbol,
            name=coin.name,
            price=quote.price,
            volume_24h=quote.volume_24h,
            high_24h=quote.high_24h,
            low_24h=quote.low_24h,
            change_24h_pct=quote.change_pct_24h,
        )

class MarketService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], pricing: PricingGateway):
        self.session_factory = session_factory
        self.pricing = pricing

    async def enabled_coins(self) -> List[Coin]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Coin).where(Coin.is_enabled == True).order_by(Coin.coin_id)
            )
            return list(result.scalars().all())

    async def get_coin(self, symbol: str) -> Optional[Coin]:
        async with self.session_factory() as session:
            result = await session.execute(select(Coin).where(Coin.symbol == symbol.upper()))
            return result.scalars().first()

    async def list_tickers(self) -> List[CoinTicker]:
        """전체 시세 (시세 정보가 전혀 없는 코인은 제외)"""
        tickers = []
        for coin in await self.enabled_coins():
            quote = await self.pricing.current_quote(coin)
            if quote is not None:
                tickers.append(CoinTicker.from_quote(coin, quote))
        return tickers

    async def coin_detail(self, symbol: str) -> Result[CoinTicker]:
        coin = await self.get_coin(symbol)
        if coin is None:
            return Err(NotFoundError("Coin not found"))
        quote = await self.pricing.current_quote(coin)
        if quote is None:
            return Err(NotFoundError("Price not available"))
        return Ok(CoinTicker.from_quote(coin, quote))

    async def price_history(self, symbol: str, limit: int = 100) -> Result[List[PriceSnapshot]]:
        coin = await self.get_coin(symbol)
        if coin is None:
            return Err(NotFoundError("Coin not found"))
        async with self.session_factory() as session:
            result = await session.execute(
                select(PriceSnapshot)
                .where(PriceSnapshot.coin_id == coin.coin_id)
                .order_by(PriceSnapshot.timestamp.desc(), PriceSnapshot.snapshot_id.desc())
                .limit(limit)
            )
            return Ok(list(result.scalars().all()))

    async def record_snapshot(self, coin_id: int, quote: Quote) -> PriceSnapshot:
        """수집 워커가 호출하는 스냅샷 저장 (append-only)"""
        async with self.session_factory() as session:
            snapshot = PriceSnapshot(
                coin_id=coin_id,
                price=quote.price,
                volume_24h=quote.volume_24h,
                high_24h=quote.high_24h,
                low_24h=quote.low_24h,
                change_24h_pct=quote.change_pct_24h,
                market_cap=quote.market_cap,
            )
            session.add(snapshot)
            await session.commit()
            await session.refresh(snapshot)
            return snapshot

    # ------------------------------------------------------------------
    # 관심 코인
    # ------------------------------------------------------------------
    async def get_watchlist(self, user_id: int) -> List[Watchlist]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Watchlist).where(Watchlist.user_id == user_id).order_by(Watchlist.id)
            )
            return list(result.scalars().all())

    async def add_to_watchlist(self, user_id: int, symbol: str) -> Result[Watchlist]:
        async def work(session: AsyncSession) -> Watchlist:
            result = await session.execute(select(Coin).where(Coin.symbol == symbol.upper()))
            coin = result.scalars().first()
            if coin is None:
                raise NotFoundError("Coin not found")

            result = await session.execute(
                select(Watchlist).where(Watchlist.user_id == user_id, Watchlist.coin_id == coin.coin_id)
            )
            if result.scalars().first() is not None:
                raise ConflictError("Coin already in watchlist")

            item = Watchlist(user_id=user_id, coin_id=coin.coin_id)
            session.add(item)
            await session.flush()
            await session.refresh(item)
            return item

        return await run_atomic(self.session_factory, work, conflict_reason="Coin already in watchlist")

    async def remove_from_watchlist(self, user_id: int, symbol: str) -> Result[None]:
        async def work(session: AsyncSession) -> None:
            result = await session.execute(
                select(Watchlist)
                .join(Coin, Coin.coin_id == Watchlist.coin_id)
                .where(Watchlist.user_id == user_id, Coin.symbol == symbol.upper())
            )
            item = result.scalars().first()
            if item is None:
                raise NotFoundError("Coin not in watchlist")
            await session.delete(item)

        return await run_atomic(self.session_factory, work)
