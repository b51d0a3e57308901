from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, Numeric, Index, func
from sqlalchemy.orm import relationship

from core.database import Base

class Coin(Base):
    __tablename__ = "coins"

    coin_id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    gecko_id = Column(String(100), nullable=True) # 외부 시세 소스 ID
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    snapshots = relationship("PriceSnapshot", back_populates="coin", cascade="all, delete-orphan")

class PriceSnapshot(Base):
    """
    코인별 시세 스냅샷 (append-only)
    """
    __tablename__ = "price_snapshots"

    snapshot_id = Column(Integer, primary_key=True, index=True)
    coin_id = Column(Integer, ForeignKey("coins.coin_id", ondelete="CASCADE"), nullable=False)
    price = Column(Numeric(30, 8), nullable=False)
    volume_24h = Column(Numeric(30, 8), nullable=True)
    high_24h = Column(Numeric(30, 8), nullable=True)
    low_24h = Column(Numeric(30, 8), nullable=True)
    change_24h_pct = Column(Numeric(12, 4), nullable=True)
    market_cap = Column(Numeric(30, 2), nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    coin = relationship("Coin", back_populates="snapshots")

    __table_args__ = (
        Index("ix_price_snapshots_coin_time", "coin_id", "timestamp"),
    )
