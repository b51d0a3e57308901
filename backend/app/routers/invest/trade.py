from typing import List

from fastapi import APIRouter, Depends, Query, status

from core.container import Container
from core.security.dependencies import get_container, get_current_user
from models.user import User
from routers.common import unwrap
from schemas.trade import OrderRequest, OrderResponse, OrderHistoryItem

router = APIRouter(prefix="/api/trade", tags=["Trade"])

@router.post("/order", status_code=status.HTTP_201_CREATED, response_model=OrderResponse)
async def create_order(
    req: OrderRequest,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    """
    시장가/지정가 주문 즉시 체결 (전량 체결 또는 거절)
    """
    fill = unwrap(await container.settlement.execute_order(
        user.user_id, req.coin_symbol, req.side, req.type, req.quantity, req.price
    ))
    return OrderResponse(
        order_id=fill.order_id,
        status=fill.status.value,
        fill_price=fill.fill_price,
        quantity=fill.quantity,
        fee_amount=fill.fee_amount,
    )

@router.get("/orders", response_model=List[OrderHistoryItem])
async def get_my_orders(
    limit: int = Query(50, ge=1, le=200),
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    orders = await container.settlement.list_orders(user.user_id, limit=limit)
    return [OrderHistoryItem.model_validate(o) for o in orders]
