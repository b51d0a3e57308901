import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.user_virtual import VirtualAccount, CoinBalance
from services.common.errors import NotFoundError
from services.common.result import Ok, Err, Result
from services.market.pricing import PricingGateway

logger = logging.getLogger(__name__)

PERCENT = Decimal("0.01")

@dataclass(frozen=True)
class HoldingValuation:
    coin_symbol: str
    coin_name: str
    amount: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    value: Decimal
    cost: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal

@dataclass(frozen=True)
class AccountSummary:
    base_cash: Decimal
    total_asset_value: Decimal
    total_profit: Decimal
    coin_count: int
    balances: List[HoldingValuation] = field(default_factory=list)

class AccountValuation:
    """
    현금 + 보유 코인 평가금액 요약 (읽기 전용)

    현재가를 구할 수 없는 코인은 오류 없이 요약에서 제외한다.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], pricing: PricingGateway):
        self.session_factory = session_factory
        self.pricing = pricing

    async def summarize(self, user_id: int) -> Result[AccountSummary]:
        async with self.session_factory() as session:
            result = await session.execute(select(VirtualAccount).where(VirtualAccount.user_id == user_id))
            account = result.scalars().first()
            if account is None:
                return Err(NotFoundError("Account not found"))

            result = await session.execute(
                select(CoinBalance)
                .where(CoinBalance.account_id == account.account_id, CoinBalance.amount > 0)
                .order_by(CoinBalance.balance_id)
            )
            balances = list(result.scalars().all())

        holdings = []
        for balance in balances:
            quote = await self.pricing.current_quote(balance.coin)
            if quote is None:
                logger.info(f"💾 {balance.coin.symbol} 현재가가 없어 평가에서 제외합니다.")
                continue
            holdings.append(self._value_holding(balance, quote.price))

        total_coin_value = sum((h.value for h in holdings), Decimal("0"))
        return Ok(AccountSummary(
            base_cash=account.base_cash,
            total_asset_value=account.base_cash + total_coin_value,
            total_profit=account.total_profit or Decimal("0"),
            coin_count=len(balances),
            balances=holdings,
        ))

    @staticmethod
    def _value_holding(balance: CoinBalance, current_price: Decimal) -> HoldingValuation:
        value = balance.amount * current_price
        cost = balance.amount * balance.avg_buy_price
        profit_loss = value - cost
        if cost > 0:
            profit_loss_percent = (profit_loss / cost * 100).quantize(PERCENT, rounding=ROUND_HALF_UP)
        else:
            profit_loss_percent = Decimal("0")

        return HoldingValuation(
            coin_symbol=balance.coin.symbol,
            coin_name=balance.coin.name,
            amount=balance.amount,
            avg_buy_price=balance.avg_buy_price,
            current_price=current_price,
            value=value,
            cost=cost,
            profit_loss=profit_loss,
            profit_loss_percent=profit_loss_percent,
        )
