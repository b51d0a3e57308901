from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

@dataclass(frozen=True)
class Quote:
    price: Decimal
    volume_24h: Optional[Decimal] = None
    high_24h: Optional[Decimal] = None
    low_24h: Optional[Decimal] = None
    change_pct_24h: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None

class PriceSource(Protocol):
    async def fetch_quote(self, source_id: str) -> Quote:
        """실패 시 ExternalUnavailable 을 던진다"""
        ...
