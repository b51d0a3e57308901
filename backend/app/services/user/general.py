import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.security.hashing import hash_password, verify_password
from core.security.token import create_access_token, create_refresh_token
from models.user import User
from models.refresh_token import RefreshToken
from services.common.errors import ValidationError, NotFoundError, ConflictError
from services.common.result import Ok, Err, Result
from services.common.transaction import run_atomic
from services.invest.accounts import open_account

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class AuthResponse:
    access_token: str
    refresh_token: str
    user_id: int
    email: str
    nickname: str

class UserGeneralService:
    """
    회원가입/로그인/토큰 재발급

    회원가입 시 사용자와 모의투자 계좌를 같은 트랜잭션에서 생성한다.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        starting_cash: Decimal,
        refresh_token_expire_days: int = 7,
    ):
        self.session_factory = session_factory
        self.starting_cash = Decimal(starting_cash)
        self.refresh_token_expire_days = refresh_token_expire_days

    async def register(self, email: str, password: str, nickname: str) -> Result[AuthResponse]:
        if not password:
            return Err(ValidationError("Password is required"))

        async def work(session: AsyncSession) -> AuthResponse:
            if await self._find_by(session, User.email, email) is not None:
                raise ConflictError("Email already exists")
            if await self._find_by(session, User.nickname, nickname) is not None:
                raise ConflictError("Nickname already exists")

            user = User(email=email, hashed_password=hash_password(password), nickname=nickname)
            session.add(user)
            await session.flush()

            session.add(open_account(user.user_id, self.starting_cash))
            return await self._issue_tokens(session, user)

        result = await run_atomic(self.session_factory, work, conflict_reason="Email or nickname already exists")
        if result.ok:
            logger.info(f"✅ 회원가입 완료: user={result.value.user_id}")
        return result

    async def login(self, email: str, password: str) -> Result[AuthResponse]:
        async def work(session: AsyncSession) -> AuthResponse:
            user = await self._find_by(session, User.email, email)
            if user is None or not verify_password(password, user.hashed_password):
                raise ValidationError("Invalid credentials")
            if not user.is_active:
                raise ValidationError("Account is deactivated")
            return await self._issue_tokens(session, user)

        return await run_atomic(self.session_factory, work)

    async def refresh(self, refresh_token: str) -> Result[AuthResponse]:
        """
        유효한 Refresh Token 으로 토큰 재발급 (기존 토큰은 폐기)
        """
        async def work(session: AsyncSession) -> AuthResponse:
            result = await session.execute(
                select(RefreshToken)
                .where(
                    RefreshToken.token == refresh_token,
                    RefreshToken.is_revoked == False, # 폐기되지 않았고
                    RefreshToken.expires_at > datetime.now(timezone.utc) # 만료되지 않은
                )
                .with_for_update()
            )
            stored = result.scalars().first()
            if stored is None:
                raise ValidationError("Invalid refresh token")

            stored.revoke()
            user = await session.get(User, stored.user_id)
            if user is None or not user.is_active:
                raise ValidationError("Invalid refresh token")
            return await self._issue_tokens(session, user)

        return await run_atomic(self.session_factory, work)

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        async with self.session_factory() as session:
            return await session.get(User, user_id)

    async def deactivate_user(self, user_id: int) -> Result[User]:
        """회원 비활성화 (Soft Delete)"""
        async def work(session: AsyncSession) -> User:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            user.is_active = False

            result = await session.execute(select(RefreshToken).where(RefreshToken.user_id == user_id))
            for token in result.scalars().all():
                token.revoke()
            await session.flush()
            await session.refresh(user)
            return user

        return await run_atomic(self.session_factory, work)

    @staticmethod
    async def _find_by(session: AsyncSession, column, value) -> Optional[User]:
        result = await session.execute(select(User).where(column == value))
        return result.scalars().first()

    async def _issue_tokens(self, session: AsyncSession, user: User) -> AuthResponse:
        refresh_token = create_refresh_token()
        session.add(RefreshToken(
            user_id=user.user_id,
            token=refresh_token,
            expires_at=datetime.now(timezone.utc) + timedelta(days=self.refresh_token_expire_days),
        ))

        return AuthResponse(
            access_token=create_access_token(user.user_id, user.email),
            refresh_token=refresh_token,
            user_id=user.user_id,
            email=user.email,
            nickname=user.nickname,
        )
