import httpx
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from services.common.errors import ExternalUnavailable
from .quote import Quote

logger = logging.getLogger(__name__)

def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None

class CoinGeckoClient:
    def __init__(self, base_url: str, vs_currency: str = "krw", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.vs_currency = vs_currency
        self.timeout = timeout

    async def fetch_quote(self, source_id: str) -> Quote:
        """
        CoinGecko /coins/markets 로 단일 코인 시세 조회
        :param source_id: CoinGecko 코인 ID (예: bitcoin)
        """
        url = f"{self.base_url}/coins/markets"
        params = {
            "vs_currency": self.vs_currency,
            "ids": source_id,
            "order": "market_cap_desc",
            "per_page": "1",
            "page": "1",
            "sparkline": "false",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                res_json = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalUnavailable(f"Price source unavailable for {source_id}: {e}") from e

        if not res_json:
            raise ExternalUnavailable(f"Coin not found on price source: {source_id}")

        data = res_json[0]
        price = _to_decimal(data.get("current_price"))
        if price is None or price <= 0:
            raise ExternalUnavailable(f"Invalid price from price source: {source_id}")

        return Quote(
            price=price,
            volume_24h=_to_decimal(data.get("total_volume")), # 24시간 거래량
            high_24h=_to_decimal(data.get("high_24h")),
            low_24h=_to_decimal(data.get("low_24h")),
            change_pct_24h=_to_decimal(data.get("price_change_percentage_24h")), # 24시간 등락률
            market_cap=_to_decimal(data.get("market_cap")),
        )
