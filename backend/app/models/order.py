import enum
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric, Enum as SAEnum, func
from sqlalchemy.orm import relationship

from core.database import Base

class OrderSide(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"

class OrderType(str, enum.Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"

class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    FILLED = "FILLED"
    FAILED = "FAILED"

class Order(Base):
    __tablename__ = "orders"

    order_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("virtual_accounts.account_id"), nullable=False)
    coin_id = Column(Integer, ForeignKey("coins.coin_id"), nullable=False)
    side = Column(SAEnum(OrderSide, name="order_side_enum"), nullable=False)
    order_type = Column(SAEnum(OrderType, name="order_type_enum"), default=OrderType.MARKET, nullable=False)
    quantity = Column(Numeric(30, 8), nullable=False)
    limit_price = Column(Numeric(30, 8), nullable=True)
    executed_price = Column(Numeric(30, 8), nullable=True)
    status = Column(SAEnum(OrderStatus, name="order_status_enum"), default=OrderStatus.PENDING, nullable=False)
    executed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    trade = relationship("Trade", back_populates="order", uselist=False)

class Trade(Base):
    """
    체결 기록 (주문 1건당 체결 1건, 부분 체결 없음)
    """
    __tablename__ = "trades"

    trade_id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.order_id"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    coin_id = Column(Integer, ForeignKey("coins.coin_id"), nullable=False)
    side = Column(SAEnum(OrderSide, name="order_side_enum"), nullable=False)
    quantity = Column(Numeric(30, 8), nullable=False)
    price = Column(Numeric(30, 8), nullable=False)
    fee = Column(Numeric(30, 8), nullable=False)
    total = Column(Numeric(30, 8), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="trade")
