import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.nft import (
    NFTContract, NFTToken, UserNFTInventory, NFTWithdrawalRequest, NFTOrder, NFTTrade,
    NFTTokenStatus, InventoryStatus, WithdrawalStatus, NFTOrderStatus, ACTIVE_INVENTORY_STATUSES,
)
from models.user_virtual import VirtualAccount
from services.chain.rpc import NFTTransferClient, is_valid_wallet_address
from services.common.errors import ValidationError, NotFoundError, ConflictError
from services.common.result import Ok, Err, Result
from services.common.transaction import run_atomic
from services.invest.accounts import lock_account
from services.invest.settlement import DEFAULT_FEE_RATE, parse_positive_decimal, quantize

logger = logging.getLogger(__name__)

NFT_ALREADY_OWNED = "NFT already owned"

@dataclass(frozen=True)
class MintRequest:
    contract_id: int
    token_id: str
    name: str
    price: Union[str, Decimal]
    description: Optional[str] = None
    image_url: Optional[str] = None
    metadata_url: Optional[str] = None
    rarity: str = "COMMON"

@dataclass(frozen=True)
class ListingPurchase:
    inventory: UserNFTInventory
    trade: NFTTrade

class NFTCustodyEngine:
    """
    NFT 보관/소유/판매/출금 상태 관리

    VAULT --구매--> OWNED --판매등록--> LISTED --타 사용자 구매--> OWNED(새 소유자)
    OWNED --출금요청--> WITHDRAW_REQUESTED --온체인 확정--> WITHDRAWN
    WITHDRAW_REQUESTED --전송 실패--> OWNED (요청은 FAILED)

    상태 전이는 ``UPDATE ... WHERE status = <이전 상태>`` 로 수행하고
    영향받은 행 수로 동시 요청 충돌을 판별한다.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transfer_client: NFTTransferClient,
        fee_rate: Decimal = DEFAULT_FEE_RATE,
        min_confirmations: int = 3,
        confirm_timeout_seconds: float = 120.0,
        confirm_poll_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.transfer_client = transfer_client
        self.fee_rate = Decimal(fee_rate)
        self.min_confirmations = min_confirmations
        self.confirm_timeout_seconds = confirm_timeout_seconds
        self.confirm_poll_seconds = confirm_poll_seconds
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # 발행
    # ------------------------------------------------------------------
    async def mint(self, request: MintRequest) -> Result[NFTToken]:
        async def work(session: AsyncSession) -> NFTToken:
            contract = await session.get(NFTContract, request.contract_id)
            if contract is None:
                raise NotFoundError("Contract not found")

            result = await session.execute(
                select(NFTToken.nft_token_id).where(
                    NFTToken.contract_id == request.contract_id,
                    NFTToken.token_id == request.token_id,
                )
            )
            if result.scalar_one_or_none() is not None:
                raise ConflictError("Token ID already exists for this contract")

            price = parse_positive_decimal(request.price, "price")

            token = NFTToken(
                contract_id=request.contract_id,
                token_id=request.token_id,
                name=request.name,
                description=request.description,
                image_url=request.image_url,
                metadata_url=request.metadata_url,
                rarity=request.rarity,
                price=price,
                status=NFTTokenStatus.VAULT,
                current_owner=None,
            )
            session.add(token)
            await session.flush()
            await session.refresh(token)
            return token

        result = await run_atomic(
            self.session_factory, work, conflict_reason="Token ID already exists for this contract"
        )
        if result.ok:
            logger.info(f"✅ NFT 발행: contract={request.contract_id} tokenId={request.token_id}")
        return result

    # ------------------------------------------------------------------
    # 보관소(VAULT) 구매
    # ------------------------------------------------------------------
    async def buy(self, user_id: int, nft_token_id: int, price: Union[str, Decimal, None] = None) -> Result[UserNFTInventory]:
        async def work(session: AsyncSession) -> UserNFTInventory:
            token = await session.get(NFTToken, nft_token_id)
            if token is None:
                raise NotFoundError("NFT not found")
            if token.status != NFTTokenStatus.VAULT:
                raise ConflictError("NFT not available for purchase")
            if await self._active_inventory(session, nft_token_id) is not None:
                raise ConflictError(NFT_ALREADY_OWNED)

            if price is not None and parse_positive_decimal(price, "price") != token.price:
                raise ValidationError("Price does not match the NFT price")

            account = await lock_account(session, user_id)
            if account.base_cash < token.price:
                raise ConflictError("Insufficient balance")

            claimed = await session.execute(
                update(NFTToken)
                .where(NFTToken.nft_token_id == nft_token_id, NFTToken.status == NFTTokenStatus.VAULT)
                .values(status=NFTTokenStatus.OWNED)
            )
            if claimed.rowcount != 1:
                raise ConflictError(NFT_ALREADY_OWNED)

            account.base_cash = account.base_cash - token.price
            inventory = UserNFTInventory(
                user_id=user_id,
                nft_token_id=nft_token_id,
                purchase_price=token.price,
                status=InventoryStatus.OWNED,
            )
            session.add(inventory)
            await session.flush()
            await session.refresh(inventory)
            return inventory

        result = await run_atomic(self.session_factory, work, conflict_reason=NFT_ALREADY_OWNED)
        self._log_outcome("NFT 구매", user_id, nft_token_id, result)
        return result

    # ------------------------------------------------------------------
    # 2차 마켓
    # ------------------------------------------------------------------
    async def sell(self, user_id: int, inventory_id: int, price: Union[str, Decimal]) -> Result[NFTOrder]:
        async def work(session: AsyncSession) -> NFTOrder:
            inventory = await self._owned_inventory(session, user_id, inventory_id)
            if inventory.status != InventoryStatus.OWNED:
                raise ConflictError("NFT is not in OWNED status")
            listing_price = parse_positive_decimal(price, "price")

            await self._transition_inventory(session, inventory_id, InventoryStatus.OWNED, InventoryStatus.LISTED)
            await self._set_token_status(session, inventory.nft_token_id, NFTTokenStatus.LISTED)

            order = NFTOrder(
                user_id=user_id,
                nft_token_id=inventory.nft_token_id,
                inventory_id=inventory_id,
                price=listing_price,
                status=NFTOrderStatus.ACTIVE,
            )
            session.add(order)
            await session.flush()
            await session.refresh(order)
            return order

        result = await run_atomic(self.session_factory, work)
        self._log_outcome("NFT 판매 등록", user_id, inventory_id, result)
        return result

    async def cancel_listing(self, user_id: int, nft_order_id: int) -> Result[NFTOrder]:
        async def work(session: AsyncSession) -> NFTOrder:
            order = await self._lock_listing(session, nft_order_id)
            if order.user_id != user_id:
                raise NotFoundError("Listing not found")

            order.status = NFTOrderStatus.CANCELLED
            order.completed_at = datetime.now(timezone.utc)
            await self._transition_inventory(session, order.inventory_id, InventoryStatus.LISTED, InventoryStatus.OWNED)
            await self._set_token_status(session, order.nft_token_id, NFTTokenStatus.OWNED)
            await session.flush()
            return order

        result = await run_atomic(self.session_factory, work)
        self._log_outcome("NFT 판매 취소", user_id, nft_order_id, result)
        return result

    async def purchase_listing(self, buyer_id: int, nft_order_id: int) -> Result[ListingPurchase]:
        async def work(session: AsyncSession) -> ListingPurchase:
            order = await self._lock_listing(session, nft_order_id)
            if order.user_id == buyer_id:
                raise ValidationError("Cannot buy your own listing")

            # 교착 방지를 위해 항상 user_id 오름차순으로 계좌를 잠근다
            accounts = {}
            for uid in sorted((buyer_id, order.user_id)):
                accounts[uid] = await lock_account(session, uid)
            buyer_account, seller_account = accounts[buyer_id], accounts[order.user_id]

            if buyer_account.base_cash < order.price:
                raise ConflictError("Insufficient balance")

            filled = await session.execute(
                update(NFTOrder)
                .where(NFTOrder.nft_order_id == nft_order_id, NFTOrder.status == NFTOrderStatus.ACTIVE)
                .values(status=NFTOrderStatus.FILLED, completed_at=datetime.now(timezone.utc))
            )
            if filled.rowcount != 1:
                raise ConflictError("Listing is no longer active")

            await self._transition_inventory(session, order.inventory_id, InventoryStatus.LISTED, InventoryStatus.SOLD)
            await self._set_token_status(session, order.nft_token_id, NFTTokenStatus.OWNED)

            fee = quantize(order.price * self.fee_rate)
            buyer_account.base_cash = buyer_account.base_cash - order.price
            seller_account.base_cash = seller_account.base_cash + (order.price - fee)

            inventory = UserNFTInventory(
                user_id=buyer_id,
                nft_token_id=order.nft_token_id,
                purchase_price=order.price,
                status=InventoryStatus.OWNED,
            )
            trade = NFTTrade(
                nft_order_id=nft_order_id,
                buyer_id=buyer_id,
                seller_id=order.user_id,
                nft_token_id=order.nft_token_id,
                price=order.price,
                fee=fee,
            )
            session.add_all([inventory, trade])
            await session.flush()
            await session.refresh(inventory)
            await session.refresh(trade)
            return ListingPurchase(inventory=inventory, trade=trade)

        result = await run_atomic(self.session_factory, work, conflict_reason=NFT_ALREADY_OWNED)
        self._log_outcome("NFT 2차 구매", buyer_id, nft_order_id, result)
        return result

    # ------------------------------------------------------------------
    # 출금
    # ------------------------------------------------------------------
    async def request_withdrawal(self, user_id: int, nft_token_id: int, target_wallet: str) -> Result[NFTWithdrawalRequest]:
        async def work(session: AsyncSession) -> NFTWithdrawalRequest:
            result = await session.execute(
                select(UserNFTInventory)
                .where(
                    UserNFTInventory.user_id == user_id,
                    UserNFTInventory.nft_token_id == nft_token_id,
                    UserNFTInventory.status.in_(ACTIVE_INVENTORY_STATUSES),
                )
                .with_for_update()
            )
            inventory = result.scalars().first()
            if inventory is None:
                raise NotFoundError("You don't own this NFT")
            if inventory.status != InventoryStatus.OWNED:
                raise ConflictError("NFT is not in OWNED status")
            if not is_valid_wallet_address(target_wallet):
                raise ValidationError("Invalid wallet address")

            # 예약: 출금 대기 중에는 판매/재출금 불가
            await self._transition_inventory(
                session, inventory.inventory_id, InventoryStatus.OWNED, InventoryStatus.WITHDRAW_REQUESTED
            )
            await self._set_token_status(session, nft_token_id, NFTTokenStatus.WITHDRAW_REQUESTED)

            request = NFTWithdrawalRequest(
                user_id=user_id,
                nft_token_id=nft_token_id,
                inventory_id=inventory.inventory_id,
                target_wallet=target_wallet,
                status=WithdrawalStatus.PENDING,
            )
            session.add(request)
            await session.flush()
            await session.refresh(request)
            return request

        result = await run_atomic(self.session_factory, work)
        self._log_outcome("NFT 출금 요청", user_id, nft_token_id, result)
        return result

    async def process_pending_withdrawal(self, request_id: int) -> Result[NFTWithdrawalRequest]:
        """
        대기 중인 출금 요청 1건 처리 (워커 전용)

        PENDING -> PROCESSING 선점에 성공한 호출만 온체인 전송을 진행한다.
        온체인 전송과 확정 대기는 트랜잭션 밖에서 수행한다.
        실패하면 요청은 FAILED, 인벤토리는 OWNED 로 되돌려 재시도할 수 있게 한다.
        """
        claimed = await run_atomic(self.session_factory, lambda s: self._claim_pending(s, request_id))
        if not claimed.ok:
            return claimed
        request, token = claimed.value

        tx_hash = None
        if token is None:
            failure = f"NFT token not found: {request.nft_token_id}"
        else:
            failure = None
            logger.info(f"🚀 출금 처리: NFT={request.nft_token_id} -> Wallet={request.target_wallet}")
            try:
                tx_hash = await self.transfer_client.transfer(
                    token.contract.contract_address, token.token_id, request.target_wallet
                )
                logger.info(f"📤 트랜잭션 전송: {tx_hash}")
                if not await self._wait_for_confirmation(tx_hash):
                    failure = f"Transaction not confirmed: {tx_hash}"
            except Exception as e:
                failure = f"Transfer failed: {e}"

        if failure is None:
            result = await run_atomic(self.session_factory, lambda s: self._complete_withdrawal(s, request_id, tx_hash))
            if result.ok:
                logger.info(f"✅ 출금 완료: request={request_id} tx={tx_hash}")
        else:
            logger.error(f"⛔ 출금 실패: request={request_id} reason={failure}")
            result = await run_atomic(self.session_factory, lambda s: self._fail_withdrawal(s, request_id, failure, tx_hash))
        return result

    async def _wait_for_confirmation(self, tx_hash: str) -> bool:
        deadline = self._clock() + self.confirm_timeout_seconds
        while True:
            if await self.transfer_client.is_confirmed(tx_hash, self.min_confirmations):
                return True
            if self._clock() >= deadline:
                return False
            await self._sleep(self.confirm_poll_seconds)

    async def _claim_pending(self, session: AsyncSession, request_id: int) -> Tuple[NFTWithdrawalRequest, Optional[NFTToken]]:
        request = await session.get(NFTWithdrawalRequest, request_id)
        if request is None:
            raise NotFoundError("Withdrawal request not found")

        claimed = await session.execute(
            update(NFTWithdrawalRequest)
            .where(
                NFTWithdrawalRequest.request_id == request_id,
                NFTWithdrawalRequest.status == WithdrawalStatus.PENDING,
            )
            .values(status=WithdrawalStatus.PROCESSING)
        )
        if claimed.rowcount != 1:
            raise ConflictError("Withdrawal request already processed")

        token = await session.get(NFTToken, request.nft_token_id)
        return request, token

    async def _finish_processing(self, session: AsyncSession, request_id: int, **values) -> NFTWithdrawalRequest:
        finished = await session.execute(
            update(NFTWithdrawalRequest)
            .where(
                NFTWithdrawalRequest.request_id == request_id,
                NFTWithdrawalRequest.status == WithdrawalStatus.PROCESSING,
            )
            .values(completed_at=datetime.now(timezone.utc), **values)
        )
        if finished.rowcount != 1:
            raise ConflictError("Withdrawal request is not being processed")
        return await session.get(NFTWithdrawalRequest, request_id, populate_existing=True)

    async def _complete_withdrawal(self, session: AsyncSession, request_id: int, tx_hash: str) -> NFTWithdrawalRequest:
        request = await self._finish_processing(session, request_id, status=WithdrawalStatus.COMPLETED, tx_hash=tx_hash)
        await self._transition_inventory(
            session, request.inventory_id, InventoryStatus.WITHDRAW_REQUESTED, InventoryStatus.WITHDRAWN
        )
        await session.execute(
            update(NFTToken)
            .where(NFTToken.nft_token_id == request.nft_token_id)
            .values(status=NFTTokenStatus.WITHDRAWN, current_owner=request.target_wallet)
        )
        return request

    async def _fail_withdrawal(self, session: AsyncSession, request_id: int, reason: str, tx_hash: Optional[str]) -> NFTWithdrawalRequest:
        request = await self._finish_processing(
            session, request_id, status=WithdrawalStatus.FAILED, failure_reason=reason, tx_hash=tx_hash
        )
        # 되돌리지 않으면 토큰이 WITHDRAW_REQUESTED 에 영구히 묶인다
        await self._transition_inventory(
            session, request.inventory_id, InventoryStatus.WITHDRAW_REQUESTED, InventoryStatus.OWNED
        )
        await self._set_token_status(session, request.nft_token_id, NFTTokenStatus.OWNED)
        return request

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------
    async def list_available(self) -> List[NFTToken]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NFTToken).where(NFTToken.status == NFTTokenStatus.VAULT).order_by(NFTToken.nft_token_id)
            )
            return list(result.scalars().all())

    async def list_active_listings(self) -> List[NFTOrder]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NFTOrder).where(NFTOrder.status == NFTOrderStatus.ACTIVE).order_by(NFTOrder.nft_order_id)
            )
            return list(result.scalars().all())

    async def my_nfts(self, user_id: int) -> List[UserNFTInventory]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserNFTInventory)
                .where(UserNFTInventory.user_id == user_id, UserNFTInventory.status.in_(ACTIVE_INVENTORY_STATUSES))
                .order_by(UserNFTInventory.inventory_id)
            )
            return list(result.scalars().all())

    async def my_orders(self, user_id: int) -> List[NFTOrder]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NFTOrder)
                .where(NFTOrder.user_id == user_id)
                .order_by(NFTOrder.created_at.desc(), NFTOrder.nft_order_id.desc())
            )
            return list(result.scalars().all())

    async def my_withdrawals(self, user_id: int) -> List[NFTWithdrawalRequest]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NFTWithdrawalRequest)
                .where(NFTWithdrawalRequest.user_id == user_id)
                .order_by(NFTWithdrawalRequest.request_id.desc())
            )
            return list(result.scalars().all())

    async def pending_withdrawal_ids(self, limit: int = 50) -> List[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NFTWithdrawalRequest.request_id)
                .where(NFTWithdrawalRequest.status == WithdrawalStatus.PENDING)
                .order_by(NFTWithdrawalRequest.requested_at, NFTWithdrawalRequest.request_id)
                .limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # 내부 헬퍼
    # ------------------------------------------------------------------
    async def _active_inventory(self, session: AsyncSession, nft_token_id: int) -> Optional[UserNFTInventory]:
        result = await session.execute(
            select(UserNFTInventory).where(
                UserNFTInventory.nft_token_id == nft_token_id,
                UserNFTInventory.status.in_(ACTIVE_INVENTORY_STATUSES),
            )
        )
        return result.scalars().first()

    async def _owned_inventory(self, session: AsyncSession, user_id: int, inventory_id: int) -> UserNFTInventory:
        result = await session.execute(
            select(UserNFTInventory).where(UserNFTInventory.inventory_id == inventory_id).with_for_update()
        )
        inventory = result.scalars().first()
        if inventory is None:
            raise NotFoundError("Inventory not found")
        if inventory.user_id != user_id:
            raise NotFoundError("You don't own this NFT")
        return inventory

    async def _lock_listing(self, session: AsyncSession, nft_order_id: int) -> NFTOrder:
        result = await session.execute(
            select(NFTOrder).where(NFTOrder.nft_order_id == nft_order_id).with_for_update()
        )
        order = result.scalars().first()
        if order is None:
            raise NotFoundError("Listing not found")
        if order.status != NFTOrderStatus.ACTIVE:
            raise ConflictError("Listing is no longer active")
        return order

    async def _transition_inventory(
        self,
        session: AsyncSession,
        inventory_id: int,
        from_status: InventoryStatus,
        to_status: InventoryStatus,
    ) -> None:
        moved = await session.execute(
            update(UserNFTInventory)
            .where(UserNFTInventory.inventory_id == inventory_id, UserNFTInventory.status == from_status)
            .values(status=to_status)
        )
        if moved.rowcount != 1:
            raise ConflictError(f"NFT is not in {from_status.value} status")

    async def _set_token_status(self, session: AsyncSession, nft_token_id: int, status: NFTTokenStatus) -> None:
        await session.execute(
            update(NFTToken).where(NFTToken.nft_token_id == nft_token_id).values(status=status)
        )

    @staticmethod
    def _log_outcome(action: str, user_id: int, target_id: int, result: Result) -> None:
        if result.ok:
            logger.info(f"✅ {action}: user={user_id} target={target_id}")
        else:
            logger.info(f"⛔ {action} 거절: user={user_id} target={target_id} reason={result.reason}")
