import httpx
import logging
import re
from decimal import Decimal
from itertools import count
from typing import Any, List, Optional, Protocol

from services.common.errors import ExternalUnavailable

logger = logging.getLogger(__name__)

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

# ERC-721 safeTransferFrom(address,address,uint256)
SAFE_TRANSFER_FROM_SELECTOR = "42842e0e"

WEI_PER_GWEI = Decimal(10) ** 9

def is_valid_wallet_address(address: str) -> bool:
    return bool(address) and WALLET_ADDRESS_PATTERN.match(address) is not None

def _pad_address(address: str) -> str:
    return address.lower().replace("0x", "").rjust(64, "0")

def _pad_uint(value: int) -> str:
    return format(value, "x").rjust(64, "0")

def encode_safe_transfer_from(from_address: str, to_address: str, token_id: str) -> str:
    return "0x" + SAFE_TRANSFER_FROM_SELECTOR + _pad_address(from_address) + _pad_address(to_address) + _pad_uint(int(token_id))

class ChainMetricsSource(Protocol):
    async def latest_block(self) -> int: ...

    async def gas_price(self) -> Decimal: ...

class NFTTransferClient(Protocol):
    async def transfer(self, contract_address: str, token_id: str, to_address: str) -> str: ...

    async def is_confirmed(self, tx_hash: str, min_confirmations: int = 3) -> bool: ...

class EthereumRPCClient:
    """
    JSON-RPC 노드 클라이언트

    NFT 전송은 노드가 관리하는 보관(vault) 계정으로 서명한다 (eth_sendTransaction).
    """

    def __init__(self, rpc_url: str, vault_address: str, timeout: float = 15.0):
        self.rpc_url = rpc_url
        self.vault_address = vault_address
        self.timeout = timeout
        self._ids = count(1)

    async def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.rpc_url, json=payload)
                response.raise_for_status()
                res_json = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalUnavailable(f"RPC {method} failed: {e}") from e

        if res_json.get("error"):
            message = res_json["error"].get("message", "unknown error")
            logger.error(f"⛔ RPC Error ({method}): {message}")
            raise ExternalUnavailable(f"RPC {method} error: {message}")
        return res_json.get("result")

    async def latest_block(self) -> int:
        return int(await self._call("eth_blockNumber"), 16)

    async def gas_price(self) -> Decimal:
        """가스 가격 (Gwei)"""
        wei = int(await self._call("eth_gasPrice"), 16)
        return Decimal(wei) / WEI_PER_GWEI

    async def transfer(self, contract_address: str, token_id: str, to_address: str) -> str:
        tx = {
            "from": self.vault_address,
            "to": contract_address,
            "data": encode_safe_transfer_from(self.vault_address, to_address, token_id),
        }
        tx_hash = await self._call("eth_sendTransaction", [tx])
        if not tx_hash:
            raise ExternalUnavailable("Transfer transaction was not accepted")
        return tx_hash

    async def is_confirmed(self, tx_hash: str, min_confirmations: int = 3) -> bool:
        receipt = await self._call("eth_getTransactionReceipt", [tx_hash])
        if not receipt or receipt.get("blockNumber") is None:
            return False
        if receipt.get("status") != "0x1":
            # 리버트된 트랜잭션은 대기해도 확정되지 않는다
            raise ExternalUnavailable(f"Transaction reverted: {tx_hash}")

        receipt_block = int(receipt["blockNumber"], 16)
        latest = await self.latest_block()
        return latest - receipt_block + 1 >= min_confirmations
