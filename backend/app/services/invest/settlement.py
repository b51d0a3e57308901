import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.coin import Coin
from models.order import Order, Trade, OrderSide, OrderType, OrderStatus
from models.user_virtual import VirtualAccount, CoinBalance
from services.common.errors import ValidationError, NotFoundError, ConflictError, ExternalUnavailable
from services.common.result import Ok, Err, Result
from services.common.transaction import run_atomic
from services.invest.accounts import lock_account
from services.market.pricing import PricingGateway

logger = logging.getLogger(__name__)

# 금액/수량 정밀도: 소수점 8자리, 반올림(HALF_UP)
SCALE = Decimal("0.00000001")
DEFAULT_FEE_RATE = Decimal("0.001") # 0.1%
# quantize 가 28자리 decimal 컨텍스트를 넘지 않는 정수부 자릿수
MAX_INTEGER_DIGITS = 20

def quantize(value: Decimal) -> Decimal:
    return value.quantize(SCALE, rounding=ROUND_HALF_UP)

def parse_positive_decimal(value: Union[str, int, Decimal, None], field: str) -> Decimal:
    if value is None or isinstance(value, float):
        # float 는 정밀도 손실이 있으므로 받지 않는다
        raise ValidationError(f"{field} must be a decimal string")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal number")
    if not parsed.is_finite() or parsed <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if parsed.adjusted() > MAX_INTEGER_DIGITS - 1:
        raise ValidationError(f"{field} is too large")
    # Numeric(30, 8) 저장 정밀도
    if parsed != quantize(parsed):
        raise ValidationError(f"{field} must have at most 8 decimal places")
    return quantize(parsed)

def weighted_average(old_amount: Decimal, old_avg: Decimal, quantity: Decimal, price: Decimal) -> Decimal:
    """가중 평균 매수 단가 = (기존수량*기존평단 + 매수수량*체결가) / (기존수량+매수수량)"""
    total_quantity = old_amount + quantity
    if old_amount <= 0:
        return quantize(price)
    return quantize((old_amount * old_avg + quantity * price) / total_quantity)

@dataclass(frozen=True)
class OrderFill:
    order_id: int
    trade_id: int
    coin_symbol: str
    side: OrderSide
    order_type: OrderType
    status: OrderStatus
    fill_price: Decimal
    quantity: Decimal
    fee_amount: Decimal
    total: Decimal
    base_cash: Decimal

class TradeSettlementEngine:
    """
    매수/매도 주문 즉시 체결 (전량 체결 또는 거절)

    - 시장가: PricingGateway 현재가로 체결
    - 지정가: 요청 가격 그대로 체결 (시장가와 비교하지 않음, 미체결 대기 없음)

    가격 조회는 트랜잭션을 열기 전에 끝내고, 현금/잔고/주문/체결 기록은
    하나의 트랜잭션에서 수정한다. 거절된 주문은 행을 남기지 않는다.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pricing: PricingGateway,
        fee_rate: Decimal = DEFAULT_FEE_RATE,
    ):
        self.session_factory = session_factory
        self.pricing = pricing
        self.fee_rate = Decimal(fee_rate)

    async def execute_order(
        self,
        user_id: int,
        coin_symbol: str,
        side: Union[str, OrderSide],
        order_type: Union[str, OrderType],
        quantity: Union[str, Decimal],
        limit_price: Union[str, Decimal, None] = None,
    ) -> Result[OrderFill]:
        try:
            side = self._parse_enum(OrderSide, side, "side")
            order_type = self._parse_enum(OrderType, order_type, "type")
            quantity = parse_positive_decimal(quantity, "quantity")
            if order_type == OrderType.LIMIT and limit_price is not None:
                limit_price = parse_positive_decimal(limit_price, "price")

            coin = await self._load_tradable_coin(coin_symbol)
            await self._ensure_account(user_id)
            price = await self._resolve_price(coin, order_type, limit_price)
        except (ValidationError, NotFoundError, ExternalUnavailable) as e:
            logger.info(f"⛔ 주문 거절 (user={user_id}, {coin_symbol}): {e.reason}")
            return Err(e)

        async def settle(session: AsyncSession) -> OrderFill:
            account = await lock_account(session, user_id)
            balance = await self._lock_balance(session, account.account_id, coin.coin_id)
            try:
                if side == OrderSide.BUY:
                    return await self._settle_buy(session, account, balance, coin, order_type, quantity, price, limit_price)
                return await self._settle_sell(session, account, balance, coin, order_type, quantity, price, limit_price)
            except InvalidOperation:
                raise ValidationError("Order amount is too large")

        result = await run_atomic(self.session_factory, settle)
        if result.ok:
            fill = result.value
            logger.info(
                f"✅ {fill.side.value} 체결: user={user_id} {fill.coin_symbol} "
                f"qty={fill.quantity} price={fill.fill_price} fee={fill.fee_amount}"
            )
        else:
            logger.info(f"⛔ 주문 거절 (user={user_id}, {coin_symbol}): {result.reason}")
        return result

    async def list_orders(self, user_id: int, limit: int = 50) -> List[Order]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.order_id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # 사전 검증 (트랜잭션 밖)
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_enum(enum_cls, value, field: str):
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(str(value).upper())
        except ValueError:
            raise ValidationError(f"Invalid {field}: {value}")

    async def _load_tradable_coin(self, coin_symbol: str) -> Coin:
        async with self.session_factory() as session:
            result = await session.execute(select(Coin).where(Coin.symbol == coin_symbol.upper()))
            coin = result.scalars().first()
        if coin is None:
            raise NotFoundError("Coin not found")
        if not coin.is_enabled:
            raise ValidationError("Coin trading is disabled")
        return coin

    async def _ensure_account(self, user_id: int) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(VirtualAccount.account_id).where(VirtualAccount.user_id == user_id)
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundError("Account not found")

    async def _resolve_price(self, coin: Coin, order_type: OrderType, limit_price: Optional[Decimal]) -> Decimal:
        if order_type == OrderType.LIMIT:
            if limit_price is None:
                raise ValidationError("Price required for LIMIT order")
            return limit_price

        quote = await self.pricing.current_quote(coin)
        if quote is None:
            raise ExternalUnavailable("Price not available")
        price = quantize(quote.price)
        if price <= 0:
            raise ExternalUnavailable("Price not available")
        return price

    # ------------------------------------------------------------------
    # 체결 (트랜잭션 안)
    # ------------------------------------------------------------------
    async def _lock_balance(self, session: AsyncSession, account_id: int, coin_id: int) -> Optional[CoinBalance]:
        result = await session.execute(
            select(CoinBalance)
            .where(CoinBalance.account_id == account_id, CoinBalance.coin_id == coin_id)
            .with_for_update()
        )
        return result.scalars().first()

    async def _settle_buy(
        self,
        session: AsyncSession,
        account: VirtualAccount,
        balance: Optional[CoinBalance],
        coin: Coin,
        order_type: OrderType,
        quantity: Decimal,
        price: Decimal,
        limit_price: Optional[Decimal],
    ) -> OrderFill:
        gross = quantize(quantity * price)
        fee = quantize(gross * self.fee_rate)
        required_cash = gross + fee

        if account.base_cash < required_cash:
            raise ConflictError("Insufficient balance")

        account.base_cash = account.base_cash - required_cash

        if balance is None:
            balance = CoinBalance(
                account_id=account.account_id,
                coin_id=coin.coin_id,
                amount=quantity,
                avg_buy_price=quantize(price),
            )
            session.add(balance)
        else:
            balance.avg_buy_price = weighted_average(balance.amount, balance.avg_buy_price, quantity, price)
            balance.amount = balance.amount + quantity

        return await self._record_fill(
            session, account, coin, OrderSide.BUY, order_type, quantity, price, limit_price, fee, required_cash
        )

    async def _settle_sell(
        self,
        session: AsyncSession,
        account: VirtualAccount,
        balance: Optional[CoinBalance],
        coin: Coin,
        order_type: OrderType,
        quantity: Decimal,
        price: Decimal,
        limit_price: Optional[Decimal],
    ) -> OrderFill:
        if balance is None:
            raise ConflictError("No balance to sell")
        if balance.amount < quantity:
            raise ConflictError("Insufficient coin balance")

        revenue = quantize(quantity * price)
        fee = quantize(revenue * self.fee_rate)
        net_revenue = revenue - fee

        account.base_cash = account.base_cash + net_revenue
        # 실현 손익 = 순매도금액 - 매도수량*평단가
        account.total_profit = (account.total_profit or Decimal("0")) + net_revenue - quantize(quantity * balance.avg_buy_price)

        # 평단가는 매도 시 변하지 않는다
        balance.amount = balance.amount - quantity

        return await self._record_fill(
            session, account, coin, OrderSide.SELL, order_type, quantity, price, limit_price, fee, net_revenue
        )

    async def _record_fill(
        self,
        session: AsyncSession,
        account: VirtualAccount,
        coin: Coin,
        side: OrderSide,
        order_type: OrderType,
        quantity: Decimal,
        price: Decimal,
        limit_price: Optional[Decimal],
        fee: Decimal,
        total: Decimal,
    ) -> OrderFill:
        order = Order(
            user_id=account.user_id,
            account_id=account.account_id,
            coin_id=coin.coin_id,
            side=side,
            order_type=order_type,
            quantity=quantity,
            limit_price=limit_price if order_type == OrderType.LIMIT else None,
            status=OrderStatus.PENDING,
        )
        session.add(order)
        await session.flush()

        trade = Trade(
            order_id=order.order_id,
            user_id=account.user_id,
            coin_id=coin.coin_id,
            side=side,
            quantity=quantity,
            price=price,
            fee=fee,
            total=total,
        )
        session.add(trade)

        order.executed_price = price
        order.executed_at = datetime.now(timezone.utc)
        order.status = OrderStatus.FILLED
        await session.flush()

        return OrderFill(
            order_id=order.order_id,
            trade_id=trade.trade_id,
            coin_symbol=coin.symbol,
            side=side,
            order_type=order_type,
            status=order.status,
            fill_price=price,
            quantity=quantity,
            fee_amount=fee,
            total=total,
            base_cash=account.base_cash,
        )
