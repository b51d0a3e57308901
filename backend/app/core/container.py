from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings
from services.chain.metrics import OnchainService
from services.chain.rpc import ChainMetricsSource, EthereumRPCClient, NFTTransferClient
from services.invest.settlement import TradeSettlementEngine
from services.invest.valuation import AccountValuation
from services.market.coingecko import CoinGeckoClient
from services.market.price_cache import PriceCache
from services.market.pricing import PricingGateway
from services.market.quote import PriceSource
from services.market.service import MarketService
from services.nft.custody import NFTCustodyEngine
from services.user.general import UserGeneralService
from services.workers import PriceCollectorWorker, OnchainMetricsWorker, NFTWithdrawalWorker, WorkerManager

@dataclass
class Container:
    settings: Settings
    pricing: PricingGateway
    settlement: TradeSettlementEngine
    custody: NFTCustodyEngine
    valuation: AccountValuation
    market: MarketService
    onchain: OnchainService
    users: UserGeneralService
    workers: WorkerManager

def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    price_source: Optional[PriceSource] = None,
    chain_client: Optional[EthereumRPCClient] = None,
    metrics_source: Optional[ChainMetricsSource] = None,
    transfer_client: Optional[NFTTransferClient] = None,
) -> Container:
    """
    의존 순서대로 서비스 조립
    외부 클라이언트를 넘기면 그대로 사용한다 (테스트용 대체 구현)
    """
    if price_source is None:
        price_source = CoinGeckoClient(settings.COINGECKO_BASE_URL, settings.COINGECKO_VS_CURRENCY)
    if chain_client is None:
        chain_client = EthereumRPCClient(settings.WEB3_RPC_URL, settings.VAULT_ADDRESS)
    metrics_source = metrics_source or chain_client
    transfer_client = transfer_client or chain_client

    cache = PriceCache(ttl_seconds=settings.PRICE_CACHE_TTL_SECONDS)
    pricing = PricingGateway(session_factory, price_source, cache)

    settlement = TradeSettlementEngine(session_factory, pricing, fee_rate=settings.TRADE_FEE_RATE)
    custody = NFTCustodyEngine(
        session_factory,
        transfer_client,
        fee_rate=settings.TRADE_FEE_RATE,
        min_confirmations=settings.WITHDRAWAL_MIN_CONFIRMATIONS,
        confirm_timeout_seconds=settings.WITHDRAWAL_CONFIRM_TIMEOUT_SECONDS,
        confirm_poll_seconds=settings.WITHDRAWAL_CONFIRM_POLL_SECONDS,
    )
    valuation = AccountValuation(session_factory, pricing)
    market = MarketService(session_factory, pricing)
    onchain = OnchainService(session_factory)
    users = UserGeneralService(
        session_factory,
        starting_cash=settings.STARTING_CASH,
        refresh_token_expire_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
    )

    workers = WorkerManager([
        PriceCollectorWorker(market, price_source, interval_seconds=settings.PRICE_COLLECT_INTERVAL_SECONDS),
        OnchainMetricsWorker(
            onchain, metrics_source, [settings.CHAIN_NAME],
            interval_seconds=settings.ONCHAIN_COLLECT_INTERVAL_SECONDS,
        ),
        NFTWithdrawalWorker(custody, interval_seconds=settings.WITHDRAWAL_POLL_INTERVAL_SECONDS),
    ])

    return Container(
        settings=settings,
        pricing=pricing,
        settlement=settlement,
        custody=custody,
        valuation=valuation,
        market=market,
        onchain=onchain,
        users=users,
        workers=workers,
    )
