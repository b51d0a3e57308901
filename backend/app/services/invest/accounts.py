from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user_virtual import VirtualAccount
from services.common.errors import NotFoundError

async def lock_account(session: AsyncSession, user_id: int) -> VirtualAccount:
    """계좌 행 잠금 조회 (PostgreSQL: SELECT ... FOR UPDATE, 수정 시 version 비교)"""
    result = await session.execute(
        select(VirtualAccount).where(VirtualAccount.user_id == user_id).with_for_update()
    )
    account = result.scalars().first()
    if account is None:
        raise NotFoundError("Account not found")
    return account

def open_account(user_id: int, starting_cash: Decimal) -> VirtualAccount:
    return VirtualAccount(user_id=user_id, base_cash=starting_cash, total_profit=Decimal("0"))
