from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric, UniqueConstraint, func
from sqlalchemy.orm import relationship
from core.database import Base

# 금액/수량 컬럼 공통 정밀도 (소수점 8자리)
MONEY = Numeric(30, 8)

class VirtualAccount(Base):
    __tablename__ = "virtual_accounts"

    account_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False)
    base_cash = Column(MONEY, nullable=False)
    total_profit = Column(MONEY, default=0, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    user = relationship("User", back_populates="virtual_account")
    balances = relationship("CoinBalance", back_populates="account", cascade="all, delete-orphan")

    # UPDATE ... WHERE version = ? 로 동시 수정 감지
    __mapper_args__ = {"version_id_col": version}

class CoinBalance(Base):
    __tablename__ = "coin_balances"

    balance_id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("virtual_accounts.account_id", ondelete="CASCADE"), nullable=False)
    coin_id = Column(Integer, ForeignKey("coins.coin_id"), nullable=False)
    amount = Column(MONEY, default=0, nullable=False)
    avg_buy_price = Column(MONEY, default=0, nullable=False) # 평단가
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    account = relationship("VirtualAccount", back_populates="balances")
    coin = relationship("Coin", lazy="joined", innerjoin=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint('account_id', 'coin_id', name='uq_account_coin_balance'),
    )
