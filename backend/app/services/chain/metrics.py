from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.onchain import OnchainMetric

class OnchainService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def chain_metrics(self, chain_name: str) -> Optional[OnchainMetric]:
        """체인별 가장 최근 지표"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(OnchainMetric)
                .where(OnchainMetric.chain_name == chain_name)
                .order_by(OnchainMetric.timestamp.desc(), OnchainMetric.metric_id.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def record_metric(self, chain_name: str, block_number: int, gas_price: Decimal, tx_count_24h: int = 0) -> OnchainMetric:
        async with self.session_factory() as session:
            metric = OnchainMetric(
                chain_name=chain_name,
                latest_block_number=block_number,
                tx_count_24h=tx_count_24h,
                avg_gas_price=gas_price,
            )
            session.add(metric)
            await session.commit()
            await session.refresh(metric)
            return metric
