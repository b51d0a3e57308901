from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from .base import CamelModel

class MintNFTRequest(CamelModel):
    contract_id: int
    token_id: str = Field(min_length=1, max_length=100)
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    metadata_url: Optional[str] = None
    rarity: str = "COMMON"
    price: Decimal

class BuyNFTRequest(CamelModel):
    nft_token_id: int
    price: Optional[Decimal] = None

class SellNFTRequest(CamelModel):
    inventory_id: int
    price: Decimal

class WithdrawNFTRequest(CamelModel):
    nft_token_id: int
    target_wallet: str

class NFTTokenResponse(CamelModel):
    nft_token_id: int
    contract_id: int
    token_id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    metadata_url: Optional[str] = None
    rarity: str
    price: Decimal
    status: str
    current_owner: Optional[str] = None

class InventoryResponse(CamelModel):
    inventory_id: int
    user_id: int
    nft_token_id: int
    purchase_price: Decimal
    status: str
    acquired_at: datetime
    token: NFTTokenResponse

class NFTOrderResponse(CamelModel):
    nft_order_id: int
    user_id: int
    nft_token_id: int
    inventory_id: int
    price: Decimal
    status: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    token: Optional[NFTTokenResponse] = None

class NFTTradeResponse(CamelModel):
    nft_trade_id: int
    nft_order_id: int
    buyer_id: int
    seller_id: int
    nft_token_id: int
    price: Decimal
    fee: Decimal
    created_at: datetime

class ListingPurchaseResponse(CamelModel):
    inventory: InventoryResponse
    trade: NFTTradeResponse

class WithdrawalResponse(CamelModel):
    request_id: int
    user_id: int
    nft_token_id: int
    target_wallet: str
    status: str
    tx_hash: Optional[str] = None
    failure_reason: Optional[str] = None
    requested_at: datetime
    completed_at: Optional[datetime] = None
