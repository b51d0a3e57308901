from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, func, Boolean, ForeignKey, Integer
from sqlalchemy.orm import relationship

from core.database import Base

class RefreshToken(Base):
    """
    Refresh Token 저장소

    재발급(rotation) 시 기존 토큰은 삭제하지 않고 폐기 표시만 남긴다.
    """
    __tablename__ = "refresh_tokens"

    refresh_token_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False) # secrets.token_hex(32)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def revoke(self) -> None:
        self.is_revoked = True
        self.revoked_at = datetime.now(timezone.utc)
