import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from core.container import Container
from core.security.dependencies import get_container, get_current_user
from models.user import User, UserRole
from routers.common import unwrap
from schemas.nft import (
    MintNFTRequest, BuyNFTRequest, SellNFTRequest, WithdrawNFTRequest,
    NFTTokenResponse, InventoryResponse, NFTOrderResponse, ListingPurchaseResponse, WithdrawalResponse,
)
from services.nft.custody import MintRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/nft", tags=["NFT"])

@router.get("/list", response_model=List[NFTTokenResponse])
async def get_available_nfts(container: Container = Depends(get_container)):
    """
    보관소(VAULT)에 있는 구매 가능 NFT 목록
    """
    tokens = await container.custody.list_available()
    return [NFTTokenResponse.model_validate(t) for t in tokens]

@router.get("/listings", response_model=List[NFTOrderResponse])
async def get_active_listings(container: Container = Depends(get_container)):
    orders = await container.custody.list_active_listings()
    return [NFTOrderResponse.model_validate(o) for o in orders]

@router.post("/mint", status_code=status.HTTP_201_CREATED, response_model=NFTTokenResponse)
async def mint_nft(
    req: MintNFTRequest,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")

    token = unwrap(await container.custody.mint(MintRequest(
        contract_id=req.contract_id,
        token_id=req.token_id,
        name=req.name,
        price=req.price,
        description=req.description,
        image_url=req.image_url,
        metadata_url=req.metadata_url,
        rarity=req.rarity,
    )))
    return NFTTokenResponse.model_validate(token)

@router.get("/my", response_model=List[InventoryResponse])
async def get_my_nfts(
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    inventories = await container.custody.my_nfts(user.user_id)
    return [InventoryResponse.model_validate(i) for i in inventories]

@router.post("/buy", status_code=status.HTTP_201_CREATED, response_model=InventoryResponse)
async def buy_nft(
    req: BuyNFTRequest,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    inventory = unwrap(await container.custody.buy(user.user_id, req.nft_token_id, req.price))
    return InventoryResponse.model_validate(inventory)

@router.post("/sell", status_code=status.HTTP_201_CREATED, response_model=NFTOrderResponse)
async def sell_nft(
    req: SellNFTRequest,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    order = unwrap(await container.custody.sell(user.user_id, req.inventory_id, req.price))
    return NFTOrderResponse.model_validate(order)

@router.post("/listings/{nft_order_id}/purchase", status_code=status.HTTP_201_CREATED, response_model=ListingPurchaseResponse)
async def purchase_listing(
    nft_order_id: int,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    purchase = unwrap(await container.custody.purchase_listing(user.user_id, nft_order_id))
    return ListingPurchaseResponse.model_validate(purchase)

@router.post("/listings/{nft_order_id}/cancel", response_model=NFTOrderResponse)
async def cancel_listing(
    nft_order_id: int,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    order = unwrap(await container.custody.cancel_listing(user.user_id, nft_order_id))
    return NFTOrderResponse.model_validate(order)

@router.get("/orders", response_model=List[NFTOrderResponse])
async def get_my_order_history(
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    orders = await container.custody.my_orders(user.user_id)
    return [NFTOrderResponse.model_validate(o) for o in orders]

@router.post("/withdraw", status_code=status.HTTP_201_CREATED, response_model=WithdrawalResponse)
async def request_withdrawal(
    req: WithdrawNFTRequest,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    """
    외부 지갑으로 출금 요청 (실제 전송은 출금 워커가 처리)
    """
    request = unwrap(await container.custody.request_withdrawal(user.user_id, req.nft_token_id, req.target_wallet))
    return WithdrawalResponse.model_validate(request)

@router.get("/withdrawals", response_model=List[WithdrawalResponse])
async def get_my_withdrawals(
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    requests = await container.custody.my_withdrawals(user.user_id)
    return [WithdrawalResponse.model_validate(r) for r in requests]
