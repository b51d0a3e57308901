from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from .base import CamelModel

class CoinTickerResponse(CamelModel):
    symbol: str
    name: str
    price: Decimal
    volume_24h: Optional[Decimal] = None
    high_24h: Optional[Decimal] = None
    low_24h: Optional[Decimal] = None
    change_24h_pct: Optional[Decimal] = None

class PriceSnapshotResponse(CamelModel):
    price: Decimal
    volume_24h: Optional[Decimal] = None
    high_24h: Optional[Decimal] = None
    low_24h: Optional[Decimal] = None
    change_24h_pct: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    timestamp: datetime

class WatchlistRequest(CamelModel):
    coin_symbol: str = Field(min_length=1, max_length=20)

class WatchlistItem(CamelModel):
    id: int
    coin_symbol: str
    coin_name: str
    created_at: Optional[datetime] = None

class ChainMetricResponse(CamelModel):
    chain_name: str
    latest_block_number: int
    tx_count_24h: int
    avg_gas_price: Optional[Decimal] = None
    timestamp: datetime
