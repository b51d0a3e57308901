import enum
from sqlalchemy import (
    Column, String, Integer, Boolean, Text, ForeignKey, DateTime, Numeric,
    Enum as SAEnum, UniqueConstraint, Index, text, func,
)
from sqlalchemy.orm import relationship

from core.database import Base

class NFTTokenStatus(str, enum.Enum):
    VAULT = "VAULT"
    OWNED = "OWNED"
    LISTED = "LISTED"
    WITHDRAW_REQUESTED = "WITHDRAW_REQUESTED"
    WITHDRAWN = "WITHDRAWN"

class InventoryStatus(str, enum.Enum):
    OWNED = "OWNED"
    LISTED = "LISTED"
    WITHDRAW_REQUESTED = "WITHDRAW_REQUESTED"
    SOLD = "SOLD"
    WITHDRAWN = "WITHDRAWN"

# 토큰 1개당 최대 1개만 존재할 수 있는 "활성" 보유 상태
ACTIVE_INVENTORY_STATUSES = (
    InventoryStatus.OWNED,
    InventoryStatus.LISTED,
    InventoryStatus.WITHDRAW_REQUESTED,
)
_ACTIVE_INVENTORY_CLAUSE = text("status IN ('OWNED', 'LISTED', 'WITHDRAW_REQUESTED')")

class WithdrawalStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING" # 워커가 전송을 시작함
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

class NFTOrderStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"

class NFTContract(Base):
    __tablename__ = "nft_contracts"

    contract_id = Column(Integer, primary_key=True, index=True)
    contract_address = Column(String(42), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    symbol = Column(String(20), nullable=False)
    chain_name = Column(String(50), default="ethereum-sepolia", nullable=False)
    is_official = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tokens = relationship("NFTToken", back_populates="contract")

class NFTToken(Base):
    __tablename__ = "nft_tokens"

    nft_token_id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("nft_contracts.contract_id"), nullable=False)
    token_id = Column(String(100), nullable=False) # 온체인 tokenId
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(512), nullable=True)
    metadata_url = Column(String(512), nullable=True)
    rarity = Column(String(50), default="COMMON", nullable=False)
    price = Column(Numeric(30, 8), nullable=False)
    status = Column(SAEnum(NFTTokenStatus, name="nft_token_status_enum"), default=NFTTokenStatus.VAULT, nullable=False)
    current_owner = Column(String(42), nullable=True) # 플랫폼 보관 중에는 NULL
    minted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    contract = relationship("NFTContract", back_populates="tokens", lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint('contract_id', 'token_id', name='uq_contract_token_id'),
    )

class UserNFTInventory(Base):
    __tablename__ = "user_nft_inventories"

    inventory_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    nft_token_id = Column(Integer, ForeignKey("nft_tokens.nft_token_id"), nullable=False)
    purchase_price = Column(Numeric(30, 8), nullable=False)
    status = Column(SAEnum(InventoryStatus, name="inventory_status_enum"), default=InventoryStatus.OWNED, nullable=False)
    acquired_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    token = relationship("NFTToken", lazy="joined", innerjoin=True)

    __table_args__ = (
        # 동시 구매 시 패자는 IntegrityError -> "NFT already owned"
        Index(
            "uq_active_inventory_token",
            "nft_token_id",
            unique=True,
            postgresql_where=_ACTIVE_INVENTORY_CLAUSE,
            sqlite_where=_ACTIVE_INVENTORY_CLAUSE,
        ),
    )

class NFTWithdrawalRequest(Base):
    __tablename__ = "nft_withdrawal_requests"

    request_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    nft_token_id = Column(Integer, ForeignKey("nft_tokens.nft_token_id"), nullable=False)
    inventory_id = Column(Integer, ForeignKey("user_nft_inventories.inventory_id"), nullable=False)
    target_wallet = Column(String(42), nullable=False)
    status = Column(SAEnum(WithdrawalStatus, name="withdrawal_status_enum"), default=WithdrawalStatus.PENDING, nullable=False, index=True)
    tx_hash = Column(String(66), nullable=True)
    failure_reason = Column(Text, nullable=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

class NFTOrder(Base):
    """
    2차 마켓 판매 등록
    """
    __tablename__ = "nft_orders"

    nft_order_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    nft_token_id = Column(Integer, ForeignKey("nft_tokens.nft_token_id"), nullable=False)
    inventory_id = Column(Integer, ForeignKey("user_nft_inventories.inventory_id"), nullable=False)
    price = Column(Numeric(30, 8), nullable=False)
    status = Column(SAEnum(NFTOrderStatus, name="nft_order_status_enum"), default=NFTOrderStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    token = relationship("NFTToken", lazy="joined", innerjoin=True)

class NFTTrade(Base):
    __tablename__ = "nft_trades"

    nft_trade_id = Column(Integer, primary_key=True, index=True)
    nft_order_id = Column(Integer, ForeignKey("nft_orders.nft_order_id"), unique=True, nullable=False)
    buyer_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    seller_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    nft_token_id = Column(Integer, ForeignKey("nft_tokens.nft_token_id"), nullable=False)
    price = Column(Numeric(30, 8), nullable=False)
    fee = Column(Numeric(30, 8), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
