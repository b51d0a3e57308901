from sqlalchemy import Column, String, Integer, BigInteger, DateTime, Numeric, func

from core.database import Base

class OnchainMetric(Base):
    __tablename__ = "onchain_metrics"

    metric_id = Column(Integer, primary_key=True, index=True)
    chain_name = Column(String(50), nullable=False, index=True)
    latest_block_number = Column(BigInteger, nullable=False)
    tx_count_24h = Column(BigInteger, default=0, nullable=False)
    avg_gas_price = Column(Numeric(30, 10), nullable=True) # Gwei
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
