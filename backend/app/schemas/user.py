from pydantic import EmailStr, Field

from .base import CamelModel

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    nickname: str = Field(min_length=2, max_length=50)

class LoginRequest(CamelModel):
    email: EmailStr
    password: str

class AuthResponse(CamelModel):
    access_token: str
    refresh_token: str
    user_id: int
    email: str
    nickname: str

class MessageResponse(CamelModel):
    """
    간단한 성공/오류 메시지 반환용
    """
    message: str
