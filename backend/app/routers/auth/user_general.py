import logging
from fastapi import APIRouter, status, HTTPException, Depends

from core.container import Container
from core.security.dependencies import get_container
from schemas.token import RefreshRequest
from schemas.user import RegisterRequest, LoginRequest, AuthResponse
from routers.common import unwrap

logger = logging.getLogger(__name__)
router = APIRouter(prefix='/api/auth', tags=['Auth'])

@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
async def register_user(
    req: RegisterRequest,
    container: Container = Depends(get_container)
):
    """
    회원가입 (가상 계좌 1,000만원 자동 지급)
    """
    result = await container.users.register(req.email, req.password, req.nickname)
    return AuthResponse.model_validate(unwrap(result))

@router.post("/login", response_model=AuthResponse)
async def login(
    req: LoginRequest,
    container: Container = Depends(get_container)
):
    result = await container.users.login(req.email, req.password)
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.reason,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthResponse.model_validate(result.value)

@router.post("/refresh", response_model=AuthResponse)
async def refresh_token(
    req: RefreshRequest,
    container: Container = Depends(get_container)
):
    """
    Refresh Token 으로 Access Token 재발급 (Refresh Token 도 교체)
    """
    result = await container.users.refresh(req.refresh_token)
    if not result.ok:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.reason)
    return AuthResponse.model_validate(result.value)
