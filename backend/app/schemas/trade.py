from datetime import datetime
from decimal import Decimal
from typing import Optional

from .base import CamelModel

class OrderRequest(CamelModel):
    coin_symbol: str
    side: str  # BUY, SELL
    type: str = "MARKET"  # MARKET, LIMIT
    quantity: Decimal
    price: Optional[Decimal] = None # 지정가 주문일 때만 사용

class OrderResponse(CamelModel):
    order_id: int
    status: str
    fill_price: Decimal
    quantity: Decimal
    fee_amount: Decimal

class OrderHistoryItem(CamelModel):
    order_id: int
    side: str
    order_type: str
    quantity: Decimal
    limit_price: Optional[Decimal] = None
    executed_price: Optional[Decimal] = None
    status: str
    executed_at: Optional[datetime] = None
    created_at: datetime
