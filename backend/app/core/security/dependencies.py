from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from core.container import Container
from core.security.token import verify_access_token
from models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

def get_container(request: Request) -> Container:
    return request.app.state.container

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    container: Container = Depends(get_container)
) -> User:
    """
    Access Token을 검증하고 현재 사용자를 반환하는 의존성
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = verify_access_token(token)
    if token_data is None or token_data.user_id is None:
        raise credentials_exception

    user = await container.users.get_user_by_id(token_data.user_id)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    return user
