"""
공통 테스트 픽스처

- 테스트마다 새 sqlite(aiosqlite) 파일 DB
- 외부 시세/체인 클라이언트는 가짜 구현으로 대체
"""
import logging
from decimal import Decimal
from typing import Dict, Optional, Set

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from core.config import Settings
from core.container import build_container
from core.database import init_db
from models import Coin, PriceSnapshot, NFTContract, VirtualAccount
from services.common.errors import ExternalUnavailable
from services.market.quote import Quote

logging.basicConfig(level=logging.INFO)

class FakePriceSource:
    def __init__(self):
        self.quotes: Dict[str, Quote] = {}
        self.failing: Set[str] = set()
        self.calls = 0

    def set_price(self, source_id: str, price) -> None:
        self.quotes[source_id] = Quote(price=Decimal(str(price)), volume_24h=Decimal("1000"))

    async def fetch_quote(self, source_id: str) -> Quote:
        self.calls += 1
        if source_id in self.failing or source_id not in self.quotes:
            raise ExternalUnavailable(f"no quote for {source_id}")
        return self.quotes[source_id]

class FakeChain:
    def __init__(self):
        self.confirmed = True
        self.transfer_error: Optional[Exception] = None
        self.transfers = []
        self.block = 1_000_000
        self.gas = Decimal("20.5")

    async def latest_block(self) -> int:
        return self.block

    async def gas_price(self) -> Decimal:
        return self.gas

    async def transfer(self, contract_address: str, token_id: str, to_address: str) -> str:
        if self.transfer_error is not None:
            raise self.transfer_error
        self.transfers.append((contract_address, token_id, to_address))
        return "0x" + format(len(self.transfers), "x").rjust(64, "0")

    async def is_confirmed(self, tx_hash: str, min_confirmations: int = 3) -> bool:
        return self.confirmed

@pytest.fixture
def settings():
    return Settings(
        ENABLE_WORKERS=False,
        WITHDRAWAL_CONFIRM_TIMEOUT_SECONDS=0,
        WITHDRAWAL_CONFIRM_POLL_SECONDS=0,
    )

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'coinhub_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
def price_source():
    return FakePriceSource()

@pytest.fixture
def chain():
    return FakeChain()

@pytest.fixture
def container(settings, session_factory, price_source, chain):
    return build_container(
        settings,
        session_factory,
        price_source=price_source,
        metrics_source=chain,
        transfer_client=chain,
    )

@pytest.fixture
def create_user(container):
    counter = {"n": 0}

    async def _create(nickname: Optional[str] = None) -> int:
        counter["n"] += 1
        nickname = nickname or f"trader{counter['n']}"
        result = await container.users.register(f"{nickname}@example.com", "password123", nickname)
        assert result.ok, result
        return result.value.user_id

    return _create

@pytest.fixture
def set_cash(session_factory):
    async def _set(user_id: int, amount) -> None:
        async with session_factory() as session:
            await session.execute(
                update(VirtualAccount)
                .where(VirtualAccount.user_id == user_id)
                .values(base_cash=Decimal(str(amount)), version=VirtualAccount.version + 1)
            )
            await session.commit()

    return _set

@pytest.fixture
def create_coin(session_factory):
    async def _create(symbol: str = "BTC", gecko_id: Optional[str] = None, enabled: bool = True) -> Coin:
        async with session_factory() as session:
            coin = Coin(symbol=symbol, name=f"{symbol} coin", gecko_id=gecko_id, is_enabled=enabled)
            session.add(coin)
            await session.commit()
            await session.refresh(coin)
            return coin

    return _create

@pytest.fixture
def add_snapshot(session_factory):
    async def _add(coin_id: int, price) -> None:
        async with session_factory() as session:
            session.add(PriceSnapshot(coin_id=coin_id, price=Decimal(str(price))))
            await session.commit()

    return _add

@pytest.fixture
def create_contract(session_factory):
    async def _create(address: str = "0x" + "1" * 40) -> NFTContract:
        async with session_factory() as session:
            contract = NFTContract(contract_address=address, name="Coin Hub Genesis", symbol="CHG")
            session.add(contract)
            await session.commit()
            await session.refresh(contract)
            return contract

    return _create
