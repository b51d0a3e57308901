from typing import List

from fastapi import APIRouter, Depends, Query, status

from core.container import Container
from core.security.dependencies import get_container, get_current_user
from models.user import User
from routers.common import unwrap
from schemas.market import (
    CoinTickerResponse, PriceSnapshotResponse, WatchlistRequest, WatchlistItem,
)

router = APIRouter(prefix="/api/market", tags=["Market"])

@router.get("/tickers", response_model=List[CoinTickerResponse])
async def get_tickers(container: Container = Depends(get_container)):
    tickers = await container.market.list_tickers()
    return [CoinTickerResponse.model_validate(t) for t in tickers]

@router.get("/coins/{symbol}", response_model=CoinTickerResponse)
async def get_coin_detail(symbol: str, container: Container = Depends(get_container)):
    ticker = unwrap(await container.market.coin_detail(symbol))
    return CoinTickerResponse.model_validate(ticker)

@router.get("/coins/{symbol}/history", response_model=List[PriceSnapshotResponse])
async def get_price_history(
    symbol: str,
    limit: int = Query(100, ge=1, le=1000),
    container: Container = Depends(get_container)
):
    snapshots = unwrap(await container.market.price_history(symbol, limit=limit))
    return [PriceSnapshotResponse.model_validate(s) for s in snapshots]

@router.get("/watchlist", response_model=List[WatchlistItem])
async def get_watchlist(
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    items = await container.market.get_watchlist(user.user_id)
    return [_to_watchlist_item(item) for item in items]

@router.post("/watchlist", status_code=status.HTTP_201_CREATED, response_model=WatchlistItem)
async def add_watchlist(
    req: WatchlistRequest,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    item = unwrap(await container.market.add_to_watchlist(user.user_id, req.coin_symbol))
    return _to_watchlist_item(item)

@router.delete("/watchlist/{symbol}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_watchlist(
    symbol: str,
    container: Container = Depends(get_container),
    user: User = Depends(get_current_user)
):
    unwrap(await container.market.remove_from_watchlist(user.user_id, symbol))

def _to_watchlist_item(item) -> WatchlistItem:
    return WatchlistItem(
        id=item.id,
        coin_symbol=item.coin.symbol,
        coin_name=item.coin.name,
        created_at=item.created_at,
    )
