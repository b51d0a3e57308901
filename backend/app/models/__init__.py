from .user import User, UserRole
from .refresh_token import RefreshToken
from .user_virtual import VirtualAccount, CoinBalance
from .coin import Coin, PriceSnapshot
from .order import Order, Trade, OrderSide, OrderType, OrderStatus
from .nft import (
    NFTContract, NFTToken, UserNFTInventory, NFTWithdrawalRequest, NFTOrder, NFTTrade,
    NFTTokenStatus, InventoryStatus, WithdrawalStatus, NFTOrderStatus, ACTIVE_INVENTORY_STATUSES,
)
from .onchain import OnchainMetric
from .watchlist import Watchlist
