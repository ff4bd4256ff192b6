"""
Starknet JSON-RPC Transport
===========================

[RPC] Minimal async JSON-RPC client for the node endpoint:
- starknet_chainId
- starknet_call (read-only contract calls)
- starknet_getTransactionReceipt

[ENCODING] Felts travel as 0x hex strings. 256-bit integers are passed as
two 128-bit limbs (low, high). Entry-point selectors are keccak-250 of the
function name.

[USAGE]
    rpc = StarknetRpcClient("https://free-rpc.nethermind.io/sepolia-juno/v0_8")
    chain_id = await rpc.chain_id()
    result = await rpc.call(registry, "is_nullifier_used", [low, high])
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import aiohttp

from core.errors import ChainQueryError

logger = logging.getLogger(__name__)

# Lazy import
Web3 = None


def _ensure_web3():
    global Web3
    if Web3 is None:
        from web3 import Web3 as _Web3
        Web3 = _Web3
    return Web3


MASK_128 = (1 << 128) - 1
MASK_250 = (1 << 250) - 1

# Starknet JSON-RPC error code
TXN_HASH_NOT_FOUND = 29


def get_selector_from_name(name: str) -> int:
    """Starknet entry-point selector: keccak256(name) truncated to 250 bits."""
    Web3 = _ensure_web3()
    digest = Web3.keccak(text=name)
    return int.from_bytes(digest, "big") & MASK_250


def to_u256(value: int) -> Tuple[int, int]:
    """Split a 256-bit integer into (low, high) 128-bit limbs."""
    if value < 0 or value >> 256:
        raise ValueError(f"Value does not fit in u256: {value}")
    return value & MASK_128, value >> 128


def from_u256(low: int, high: int) -> int:
    return low + (high << 128)


def to_felt(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    return int(value, 0)


def felt_hex(value: Union[int, str]) -> str:
    return hex(to_felt(value))


class StarknetRpcClient:
    """
    JSON-RPC client over aiohttp.

    A session is opened per request, so one client can be shared by
    components without holding connection state between calls.
    """

    _ids = itertools.count(1)

    def __init__(self, rpc_url: str, timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.timeout = timeout

    async def request(self, method: str, params: Union[Dict[str, Any], List[Any], None] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params if params is not None else [],
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.rpc_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise ChainQueryError(f"RPC {method} failed: HTTP {resp.status}")
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError as e:
                        raise ChainQueryError(f"RPC {method} returned invalid JSON") from e
        except aiohttp.ClientError as e:
            raise ChainQueryError(f"RPC {method} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ChainQueryError(f"RPC {method} timed out after {self.timeout}s") from e

        if not isinstance(data, dict):
            raise ChainQueryError(f"RPC {method} returned a non-object response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            code = error.get("code") if isinstance(error, dict) else None
            raise ChainQueryError(f"RPC {method} error: {message}", code=code)
        return data.get("result")

    async def chain_id(self) -> str:
        return await self.request("starknet_chainId")

    async def call(
        self,
        contract_address: str,
        entry_point: str,
        calldata: Sequence[Union[int, str]] = (),
        block_id: Union[str, Dict[str, Any]] = "latest",
    ) -> List[str]:
        params = {
            "request": {
                "contract_address": felt_hex(contract_address),
                "entry_point_selector": hex(get_selector_from_name(entry_point)),
                "calldata": [felt_hex(v) for v in calldata],
            },
            "block_id": block_id,
        }
        result = await self.request("starknet_call", params)
        if not isinstance(result, list):
            raise ChainQueryError(f"starknet_call {entry_point} returned {type(result).__name__}, expected list")
        return result

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt, or None while the node does not know the transaction yet."""
        try:
            return await self.request("starknet_getTransactionReceipt", {"transaction_hash": tx_hash})
        except ChainQueryError as e:
            if e.code == TXN_HASH_NOT_FOUND:
                return None
            raise
