import os
from decimal import Decimal
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # URL & URI
    DATABASE_URL: str = "sqlite+aiosqlite:///./coinhub.db"
    FRONTEND_URL: str = "http://localhost:3000"
    COINGECKO_BASE_URL: str = "https://api.coingecko.com/api/v3"
    COINGECKO_VS_CURRENCY: str = "krw"
    WEB3_RPC_URL: str = "http://localhost:8545"

    # Chain
    CHAIN_NAME: str = "ethereum-sepolia"
    VAULT_ADDRESS: str = "0x0000000000000000000000000000000000000000"

    # JWT
    JWT_SECRET_KEY: str = "coinhub-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Trading
    STARTING_CASH: Decimal = Decimal("10000000")
    TRADE_FEE_RATE: Decimal = Decimal("0.001")
    PRICE_CACHE_TTL_SECONDS: float = 60.0

    # Workers
    ENABLE_WORKERS: bool = True
    PRICE_COLLECT_INTERVAL_SECONDS: float = 60.0
    ONCHAIN_COLLECT_INTERVAL_SECONDS: float = 300.0
    WITHDRAWAL_POLL_INTERVAL_SECONDS: float = 30.0
    WITHDRAWAL_MIN_CONFIRMATIONS: int = 3
    WITHDRAWAL_CONFIRM_TIMEOUT_SECONDS: float = 120.0
    WITHDRAWAL_CONFIRM_POLL_SECONDS: float = 5.0

    class Config:
        current_file_dir = os.path.dirname(os.path.abspath(__file__))
        app_dir = os.path.dirname(current_file_dir)
        backend_dir = os.path.dirname(app_dir)

        env_file = os.path.join(backend_dir, ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
