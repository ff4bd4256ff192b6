"""
Registry Reader
===============

[READ PATH] Read-only queries against the verification registry:
- is_nullifier_used(nullifier: u256) -> bool
- get_verification_record(nullifier: u256) -> VerificationRecord

[NORMALIZATION] Client responses are accepted in every shape the registry
bindings produce:
- wide integers: int, hex/decimal string, {"low", "high"} dict, (low, high) pair
  -> low + high * 2**128
- booleans: bool, 0/1 scalar, or a one-element wrapper around either
Any other shape raises ChainDecodeError; nothing is coerced to a default.

[CLIENT] The contract client is built by an injected factory, once per reader.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from core.errors import ChainDecodeError, ChainQueryError
from core.types import VerificationRecord
from chain.rpc import StarknetRpcClient, from_u256, to_felt, to_u256

logger = logging.getLogger(__name__)

NullifierLike = Union[int, str]


# ============================================================================
# Response normalization
# ============================================================================

def _scalar(value: Any, what: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError:
            raise ChainDecodeError(f"Cannot decode {what}: {value!r}") from None
    raise ChainDecodeError(f"Cannot decode {what}: unexpected {type(value).__name__}")


def normalize_wide_uint(value: Any, what: str = "u256") -> int:
    """Combine a single value or a (low, high) limb pair into one integer."""
    if isinstance(value, dict):
        if set(value) >= {"low", "high"}:
            return from_u256(_scalar(value["low"], what), _scalar(value["high"], what))
        raise ChainDecodeError(f"Cannot decode {what}: dict keys {sorted(value)}")
    if isinstance(value, (list, tuple)):
        if len(value) == 2:
            return from_u256(_scalar(value[0], what), _scalar(value[1], what))
        if len(value) == 1:
            return normalize_wide_uint(value[0], what)
        raise ChainDecodeError(f"Cannot decode {what}: sequence of length {len(value)}")
    return _scalar(value, what)


def normalize_bool(value: Any, what: str = "bool") -> bool:
    if isinstance(value, (list, tuple)):
        if len(value) == 1:
            return normalize_bool(value[0], what)
        raise ChainDecodeError(f"Cannot decode {what}: sequence of length {len(value)}")
    if isinstance(value, bool):
        return value
    scalar = _scalar(value, what)
    if scalar not in (0, 1):
        raise ChainDecodeError(f"Cannot decode {what}: {scalar} is not 0 or 1")
    return scalar == 1


def normalize_nullifier(nullifier: NullifierLike) -> int:
    try:
        return to_felt(nullifier)
    except (TypeError, ValueError):
        raise ChainDecodeError(f"Invalid nullifier: {nullifier!r}") from None


# ============================================================================
# Contract client
# ============================================================================

class RegistryClient:
    """Thin binding for the registry read functions over JSON-RPC."""

    def __init__(self, rpc: StarknetRpcClient, address: str):
        self.rpc = rpc
        self.address = address

    async def is_nullifier_used(self, nullifier: int) -> List[str]:
        low, high = to_u256(nullifier)
        return await self.rpc.call(self.address, "is_nullifier_used", [low, high])

    async def get_verification_record(self, nullifier: int) -> Dict[str, Any]:
        low, high = to_u256(nullifier)
        felts = await self.rpc.call(self.address, "get_verification_record", [low, high])
        # struct { nullifier: u256, attribute_key: u256, threshold_or_set_hash: u256, timestamp: u64, circuit_id: u8 }
        if len(felts) != 8:
            raise ChainDecodeError(f"get_verification_record returned {len(felts)} felts, expected 8")
        return {
            "nullifier": {"low": felts[0], "high": felts[1]},
            "attribute_key": {"low": felts[2], "high": felts[3]},
            "threshold_or_set_hash": {"low": felts[4], "high": felts[5]},
            "timestamp": felts[6],
            "circuit_id": felts[7],
        }


def registry_client_factory(
    rpc_url: str,
    address: str,
    timeout: float = 30.0,
) -> Callable[[], RegistryClient]:
    def factory() -> RegistryClient:
        return RegistryClient(StarknetRpcClient(rpc_url, timeout=timeout), address)
    return factory


# ============================================================================
# Chain Reader
# ============================================================================

class ChainReader:
    """
    Existence checks and record fetches for nullifiers.

    [USAGE]
        reader = ChainReader(registry_client_factory(config.network.rpc_url, registry))
        if await reader.exists(nullifier):
            record = await reader.record(nullifier)
    """

    def __init__(self, client_factory: Callable[[], Any]):
        self._client_factory = client_factory
        self._client: Optional[Any] = None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def exists(self, nullifier: NullifierLike) -> bool:
        value = normalize_nullifier(nullifier)
        try:
            raw = await self.client.is_nullifier_used(value)
        except ChainQueryError:
            raise
        except Exception as e:
            raise ChainQueryError(f"is_nullifier_used failed: {e}") from e
        used = normalize_bool(raw, "is_nullifier_used")
        logger.debug(f"[CHAIN] Nullifier {hex(value)} used={used}")
        return used

    async def record(self, nullifier: NullifierLike) -> VerificationRecord:
        value = normalize_nullifier(nullifier)
        if not await self.exists(value):
            return VerificationRecord.empty()

        try:
            raw = await self.client.get_verification_record(value)
        except ChainQueryError:
            raise
        except Exception as e:
            raise ChainQueryError(f"get_verification_record failed: {e}") from e

        if not isinstance(raw, dict):
            raise ChainDecodeError(f"Cannot decode verification record: {type(raw).__name__}")
        try:
            return VerificationRecord(
                exists=True,
                nullifier=normalize_wide_uint(raw["nullifier"], "nullifier"),
                attribute_key=normalize_wide_uint(raw["attribute_key"], "attribute_key"),
                threshold_or_set_hash=normalize_wide_uint(raw["threshold_or_set_hash"], "threshold_or_set_hash"),
                timestamp=normalize_wide_uint(raw["timestamp"], "timestamp"),
                circuit_id=normalize_wide_uint(raw["circuit_id"], "circuit_id"),
            )
        except KeyError as e:
            raise ChainDecodeError(f"Verification record is missing {e.args[0]}") from None
