import logging
from typing import List

from services.chain.metrics import OnchainService
from services.chain.rpc import ChainMetricsSource
from services.market.quote import PriceSource
from services.market.service import MarketService
from .base import PeriodicWorker

logger = logging.getLogger(__name__)

class PriceCollectorWorker(PeriodicWorker):
    """활성 코인 시세를 주기적으로 조회해 PriceSnapshot 으로 저장"""
    name = "PriceCollectorWorker"

    def __init__(self, market: MarketService, price_source: PriceSource, interval_seconds: float = 60.0):
        super().__init__(interval_seconds)
        self.market = market
        self.price_source = price_source

    async def run_once(self) -> int:
        coins = await self.market.enabled_coins()
        logger.info(f"📊 {len(coins)}개 코인 시세 수집")

        saved = 0
        for coin in coins:
            source_id = coin.gecko_id or coin.symbol.lower()
            try:
                quote = await self.price_source.fetch_quote(source_id)
                await self.market.record_snapshot(coin.coin_id, quote)
                saved += 1
                logger.debug(f"✅ {coin.symbol} 시세 저장: {quote.price}")
            except Exception as e:
                # 한 코인의 실패가 전체 수집을 멈추지 않는다
                logger.error(f"⛔ {coin.symbol} 시세 수집 실패: {e}")
        return saved

class OnchainMetricsWorker(PeriodicWorker):
    """체인 최신 블록/가스 가격 수집"""
    name = "OnchainMetricsWorker"

    def __init__(
        self,
        onchain: OnchainService,
        metrics_source: ChainMetricsSource,
        chains: List[str],
        interval_seconds: float = 300.0,
    ):
        super().__init__(interval_seconds)
        self.onchain = onchain
        self.metrics_source = metrics_source
        self.chains = chains

    async def run_once(self) -> int:
        saved = 0
        for chain_name in self.chains:
            try:
                block_number = await self.metrics_source.latest_block()
                gas_price = await self.metrics_source.gas_price()
                await self.onchain.record_metric(chain_name, block_number, gas_price)
                saved += 1
                logger.debug(f"✅ {chain_name} 지표 저장: block={block_number}, gas={gas_price}")
            except Exception as e:
                logger.error(f"⛔ {chain_name} 지표 수집 실패: {e}")
        return saved
