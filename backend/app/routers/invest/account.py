from fastapi import APIRouter, Depends

from core.container import Container
from core.security.dependencies import get_container, get_current_user
from models.user import User
from routers.common import unwrap
from schemas.account import AccountSummaryResponse

router = APIRouter(prefix="/api/account", tags=["Account"])

@router.get("/summary", response_model=AccountSummaryResponse)
async def get_account_summary(
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    """
    현금 + 보유 코인 평가금액 요약
    """
    summary = unwrap(await container.valuation.summarize(user.user_id))
    return AccountSummaryResponse.model_validate(summary)
