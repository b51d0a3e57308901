from decimal import Decimal
from typing import List

from .base import CamelModel

class BalanceWithPrice(CamelModel):
    coin_symbol: str
    coin_name: str
    amount: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal

class AccountSummaryResponse(CamelModel):
    base_cash: Decimal
    total_asset_value: Decimal
    total_profit: Decimal
    coin_count: int
    balances: List[BalanceWithPrice]
